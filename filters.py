# filters.py
"""
Filtros e projeções locais sobre a lista assinada.

Nada aqui consulta o Firestore: tudo é derivado da lista já recebida pela
assinatura ativa.
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, List, Optional, Set

import schemas
from schemas import AppointmentStatus, Specialty, TaskPriority, TaskStatus

PRIORITY_ORDER = {
    TaskPriority.HIGH: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.LOW: 2,
}


def local_day(value: datetime, tz: Optional[tzinfo] = None) -> date:
    """Dia de calendário de `value` no fuso de quem visualiza. Datas sem fuso já são locais."""
    if tz is not None and value.tzinfo is not None:
        value = value.astimezone(tz)
    return value.date()


def todays_appointments(appointments: Iterable[schemas.Appointment], today: date,
                        tz: Optional[tzinfo] = None) -> List[schemas.Appointment]:
    # `today` vem do chamador a cada chamada: uma sessão que atravessa a meia-noite
    # não fica presa no dia anterior.
    return [a for a in appointments if local_day(a.date, tz) == today]


def day_window(day: date, tz: Optional[tzinfo] = None) -> schemas.DateWindow:
    """Janela [00:00 do dia, 00:00 do dia seguinte) no fuso `tz`."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    return schemas.DateWindow(start=start, end=start + timedelta(days=1))


def filter_appointments(appointments: Iterable[schemas.Appointment],
                        statuses: Iterable[AppointmentStatus] = (),
                        specialties: Iterable[Specialty] = ()) -> List[schemas.Appointment]:
    """OU dentro de cada dimensão, E entre as dimensões. Conjunto vazio não restringe."""
    statuses = set(statuses)
    specialties = set(specialties)
    return [
        a for a in appointments
        if (not statuses or a.status in statuses)
        and (not specialties or a.specialty in specialties)
    ]


def in_window(appointments: Iterable[schemas.Appointment], window: schemas.DateWindow) -> List[schemas.Appointment]:
    return [a for a in appointments if window.contains(a.date)]


def local_time(value: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Instante com fuso: datas sem fuso recebem `tz` (UTC se ausente), datas com fuso são convertidas."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz or timezone.utc)
    return value.astimezone(tz) if tz is not None else value


def sort_by_date(appointments: Iterable[schemas.Appointment], window: Optional[schemas.DateWindow] = None,
                 tz: Optional[tzinfo] = None) -> List[schemas.Appointment]:
    if window is None:
        return sorted(appointments, key=lambda a: local_time(a.date, tz))
    return sorted(appointments, key=lambda a: window.align(a.date))


class LocalFilters:
    """Seleção de status/especialidade da tela de agenda."""

    def __init__(self, statuses: Iterable[AppointmentStatus] = (), specialties: Iterable[Specialty] = ()):
        self.statuses: Set[AppointmentStatus] = set(statuses)
        self.specialties: Set[Specialty] = set(specialties)

    def toggle_status(self, status: AppointmentStatus) -> None:
        if status in self.statuses:
            self.statuses.discard(status)
        else:
            self.statuses.add(status)

    def toggle_specialty(self, specialty: Specialty) -> None:
        if specialty in self.specialties:
            self.specialties.discard(specialty)
        else:
            self.specialties.add(specialty)

    def clear(self) -> None:
        self.statuses.clear()
        self.specialties.clear()

    @property
    def has_active_filters(self) -> bool:
        return bool(self.statuses or self.specialties)

    def apply(self, appointments: Iterable[schemas.Appointment]) -> List[schemas.Appointment]:
        return filter_appointments(appointments, self.statuses, self.specialties)

    def to_dict(self) -> dict:
        return {
            'statuses': sorted(s.value for s in self.statuses),
            'specialties': sorted(s.value for s in self.specialties),
        }


def _task_sort_key(task: schemas.Task):
    # Prioridade desc, depois vencimento asc; sem vencimento vai para o fim
    return (
        PRIORITY_ORDER.get(task.priority, len(PRIORITY_ORDER)),
        task.due_date is None,
        task.due_date or date.max,
    )


def sort_tasks(tasks: Iterable[schemas.Task]) -> List[schemas.Task]:
    return sorted(tasks, key=_task_sort_key)


def pending_tasks(tasks: Iterable[schemas.Task]) -> List[schemas.Task]:
    return sort_tasks(t for t in tasks if t.status == TaskStatus.PENDING)


def completed_tasks(tasks: Iterable[schemas.Task]) -> List[schemas.Task]:
    return [t for t in tasks if t.status == TaskStatus.COMPLETED]
