# recurrence.py
"""
Expansão de agendamentos recorrentes em ocorrências concretas para exibição.

A expansão é uma função pura de (agendamentos base, janela): não altera o
agendamento armazenado e não depende do relógio. Cada ocorrência é uma cópia
do agendamento base com data própria, `recurrence_parent_id` apontando para a
série e um `OccurrenceId` (série + posição) que distingue "esta ocorrência"
de "a série inteira".
"""

from datetime import datetime, timedelta
from typing import Iterable, Iterator, List, Optional, Tuple

from dateutil.relativedelta import relativedelta

import schemas
from schemas import RecurrenceFrequency


def _js_weekday(value: datetime) -> int:
    """Dia da semana com domingo = 0."""
    return (value.weekday() + 1) % 7


def _step(rule: schemas.RecurrenceRule, k: int):
    if rule.frequency == RecurrenceFrequency.DAILY:
        return timedelta(days=k * rule.interval)
    if rule.frequency == RecurrenceFrequency.WEEKLY:
        return timedelta(weeks=k * rule.interval)
    if rule.frequency == RecurrenceFrequency.BIWEEKLY:
        return timedelta(weeks=2 * k * rule.interval)
    return relativedelta(months=k * rule.interval)


def _series(base: datetime, rule: schemas.RecurrenceRule) -> Iterator[datetime]:
    """Datas candidatas da série, em ordem, a partir da data base (série infinita)."""
    weekly = rule.frequency in (RecurrenceFrequency.WEEKLY, RecurrenceFrequency.BIWEEKLY)
    if weekly and rule.days_of_week:
        step_weeks = rule.interval * (2 if rule.frequency == RecurrenceFrequency.BIWEEKLY else 1)
        week_start = base - timedelta(days=_js_weekday(base))
        k = 0
        while True:
            week = week_start + timedelta(weeks=k * step_weeks)
            for day in rule.days_of_week:
                candidate = week + timedelta(days=day)
                if candidate >= base:
                    yield candidate
            k += 1
    else:
        k = 0
        while True:
            # Sempre a partir da base: 31/jan mensal vira 28/fev, 31/mar...
            yield base + _step(rule, k)
            k += 1


def _bounded_series(appointment: schemas.Appointment) -> Iterator[Tuple[int, datetime]]:
    """(índice, data) da série respeitando count e end_date. Datas de exceção ocupam posição."""
    rule = appointment.recurrence
    for index, when in enumerate(_series(appointment.date, rule)):
        if rule.count is not None and index >= rule.count:
            return
        if rule.end_date is not None and when.date() > rule.end_date:
            return
        yield index, when


def _make_occurrence(parent: schemas.Appointment, index: int, when: datetime) -> schemas.Appointment:
    occurrence_id = schemas.OccurrenceId(base_id=parent.id, occurrence_index=index)
    return parent.model_copy(update={
        'id': occurrence_id.key(),
        'date': when,
        'recurrence_parent_id': parent.id,
        'occurrence_id': occurrence_id,
        # Ocorrências não carregam a regra, senão seriam expandidas de novo
        'recurrence': None,
    })


def expand_appointment(appointment: schemas.Appointment, window: schemas.DateWindow) -> List[schemas.Appointment]:
    """Ocorrências de um agendamento dentro de [window.start, window.end)."""
    rule = appointment.recurrence
    if rule is None:
        return [appointment]

    exceptions = set(rule.exception_dates)
    occurrences = []
    for index, when in _bounded_series(appointment):
        aligned = window.align(when)
        if aligned >= window.end:
            break
        if aligned < window.start or when.date() in exceptions:
            continue
        occurrences.append(_make_occurrence(appointment, index, when))
    return occurrences


def expand(base_appointments: Iterable[schemas.Appointment], window: schemas.DateWindow) -> List[schemas.Appointment]:
    """
    Expande todos os agendamentos recorrentes da lista.

    Agendamentos sem recorrência passam inalterados; instâncias já expandidas
    (com `recurrence_parent_id`) são ignoradas para não duplicar a série.
    """
    expanded: List[schemas.Appointment] = []
    for appointment in base_appointments:
        if appointment.recurrence is not None:
            expanded.extend(expand_appointment(appointment, window))
        elif not appointment.recurrence_parent_id:
            expanded.append(appointment)
    return expanded


def occurrence_at(appointment: schemas.Appointment, index: int) -> Optional[datetime]:
    """Data da posição `index` da série, ou None se a série não chega lá."""
    if appointment.recurrence is None or index < 0:
        return None
    for position, when in _bounded_series(appointment):
        if position == index:
            return when
    return None


def is_recurring_instance(appointment: schemas.Appointment) -> bool:
    return bool(appointment.recurrence_parent_id)


def is_recurring_parent(appointment: schemas.Appointment) -> bool:
    return appointment.recurrence is not None


def get_parent_id(appointment: schemas.Appointment) -> str:
    return appointment.recurrence_parent_id or appointment.id
