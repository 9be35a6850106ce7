# calendar_nav.py
"""
Navegação do calendário (dia / semana / mês) e a sessão de agenda que liga
navegação, assinatura, expansão de recorrências e filtros locais.
"""

import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Callable, List, Optional

from dateutil.relativedelta import relativedelta

import config
import filters
import recurrence
import schemas
from schemas import CalendarViewState, ViewMode
from stores import AppointmentStore
from tenant import ClinicContext

logger = logging.getLogger(__name__)

MESES = [
    "", "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
]
MESES_ABREV = ["", "jan", "fev", "mar", "abr", "mai", "jun", "jul", "ago", "set", "out", "nov", "dez"]


def _shift(anchor: date, view_mode: ViewMode, steps: int) -> date:
    if view_mode == ViewMode.DAY:
        return anchor + timedelta(days=steps)
    if view_mode == ViewMode.WEEK:
        return anchor + timedelta(weeks=steps)
    # 31/jan + 1 mês = 28 (ou 29)/fev
    return anchor + relativedelta(months=steps)


def start_of_week(day: date, week_starts_on: int = 0) -> date:
    """Início da semana de `day`; dias numerados com domingo = 0."""
    weekday = (day.weekday() + 1) % 7
    return day - timedelta(days=(weekday - week_starts_on) % 7)


class CalendarNavigator:
    """
    Máquina de estados {anchor_date, view_mode}.

    Cada transição substitui o estado inteiro (não há estado intermediário com
    modo e data divergentes) e depois avisa `on_transition`.
    """

    def __init__(self, anchor_date: Optional[date] = None, view_mode: ViewMode = ViewMode.DAY,
                 today: Callable[[], date] = date.today, week_starts_on: int = config.AGENDA_WEEK_STARTS_ON,
                 on_transition: Optional[Callable[[CalendarViewState], None]] = None):
        self._today = today
        self.week_starts_on = week_starts_on
        self.on_transition = on_transition
        self._state = CalendarViewState(anchor_date=anchor_date or today(), view_mode=view_mode)

    @property
    def state(self) -> CalendarViewState:
        return self._state

    @property
    def anchor_date(self) -> date:
        return self._state.anchor_date

    @property
    def view_mode(self) -> ViewMode:
        return self._state.view_mode

    def _transition(self, anchor_date: date, view_mode: ViewMode) -> CalendarViewState:
        self._state = CalendarViewState(anchor_date=anchor_date, view_mode=view_mode)
        logger.debug(f"Agenda em {view_mode.value} {anchor_date.isoformat()}")
        if self.on_transition:
            self.on_transition(self._state)
        return self._state

    # --- transições ---

    def go_to_previous(self) -> CalendarViewState:
        return self._transition(self.previous_anchor(), self.view_mode)

    def go_to_next(self) -> CalendarViewState:
        return self._transition(self.next_anchor(), self.view_mode)

    def go_to_today(self) -> CalendarViewState:
        return self._transition(self._today(), self.view_mode)

    def switch_view(self, view_mode: ViewMode) -> CalendarViewState:
        return self._transition(self.anchor_date, ViewMode(view_mode))

    def select_day(self, day: date) -> CalendarViewState:
        return self._transition(day, ViewMode.DAY)

    # --- derivados ---

    def previous_anchor(self) -> date:
        return _shift(self.anchor_date, self.view_mode, -1)

    def next_anchor(self) -> date:
        return _shift(self.anchor_date, self.view_mode, 1)

    def subscription_filter(self) -> schemas.SubscriptionFilter:
        # Semana e mês usam a assinatura sem filtro e estreitam localmente
        if self.view_mode == ViewMode.DAY:
            return schemas.SubscriptionFilter.by_date(self.anchor_date)
        return schemas.SubscriptionFilter.all()

    def _window_dates(self):
        anchor = self.anchor_date
        if self.view_mode == ViewMode.DAY:
            return anchor, anchor + timedelta(days=1)
        if self.view_mode == ViewMode.WEEK:
            start = start_of_week(anchor, self.week_starts_on)
            return start, start + timedelta(days=7)
        start = anchor.replace(day=1)
        return start, start + relativedelta(months=1)

    def query_window(self, tz: Optional[tzinfo] = None) -> schemas.DateWindow:
        start, end = self._window_dates()
        return schemas.DateWindow(
            start=datetime.combine(start, time.min, tzinfo=tz),
            end=datetime.combine(end, time.min, tzinfo=tz),
        )

    def week_dates(self) -> List[date]:
        start = start_of_week(self.anchor_date, self.week_starts_on)
        return [start + timedelta(days=i) for i in range(7)]

    def label(self) -> str:
        anchor = self.anchor_date
        if self.view_mode == ViewMode.DAY:
            return f"{anchor.day:02d} de {MESES[anchor.month]}"
        if self.view_mode == ViewMode.WEEK:
            dias = self.week_dates()
            inicio, fim = dias[0], dias[-1]
            if inicio.month == fim.month:
                return f"{inicio.day} - {fim.day} de {MESES[fim.month]}"
            return f"{inicio.day} de {MESES_ABREV[inicio.month]} - {fim.day} de {MESES_ABREV[fim.month]}"
        return f"{MESES[anchor.month]} de {anchor.year}"


def visible_appointments(navigator: CalendarNavigator, appointments, local_filters: filters.LocalFilters,
                         tz: Optional[tzinfo] = None) -> List[schemas.Appointment]:
    """Expande as séries na janela da visão (no fuso `tz`), aplica os filtros locais e ordena por data."""
    window = navigator.query_window(tz)
    expandidos = recurrence.expand(appointments, window)
    visiveis = filters.in_window(local_filters.apply(expandidos), window)
    return filters.sort_by_date(visiveis, window)


def build_agenda_response(navigator: CalendarNavigator, appointments, local_filters: filters.LocalFilters,
                          loading: bool = False, error: Optional[str] = None,
                          tz: Optional[tzinfo] = None) -> schemas.AgendaResponse:
    window = navigator.query_window(tz)
    return schemas.AgendaResponse(
        view_mode=navigator.view_mode,
        anchor_date=navigator.anchor_date,
        label=navigator.label(),
        window_start=window.start,
        window_end=window.end,
        previous_anchor=navigator.previous_anchor(),
        next_anchor=navigator.next_anchor(),
        week_dates=navigator.week_dates() if navigator.view_mode == ViewMode.WEEK else [],
        statuses=sorted(local_filters.statuses, key=lambda s: s.value),
        specialties=sorted(local_filters.specialties, key=lambda s: s.value),
        loading=loading,
        error=error,
        appointments=visible_appointments(navigator, appointments, local_filters, tz),
    )


class AgendaSession:
    """
    Tela de agenda: navegação + assinatura de agendamentos + filtros locais.

    Toda transição reemite o filtro da assinatura (por data no modo dia, sem
    filtro nos demais). A lista visível é expandida e estreitada localmente.
    """

    def __init__(self, context: ClinicContext, db, navigator: Optional[CalendarNavigator] = None,
                 local_filters: Optional[filters.LocalFilters] = None):
        self.navigator = navigator or CalendarNavigator()
        self.navigator.on_transition = self._on_transition
        self.filters = local_filters or filters.LocalFilters()
        self.store = AppointmentStore(context, db, filters=self.navigator.subscription_filter())

    def _on_transition(self, state: CalendarViewState) -> None:
        self.store.set_filters(self.navigator.subscription_filter())

    @property
    def context(self) -> ClinicContext:
        return self.store.context

    def set_context(self, context: ClinicContext) -> None:
        self.store.set_context(context)

    def add_listener(self, listener) -> Callable[[], None]:
        return self.store.add_listener(listener)

    def visible_appointments(self) -> List[schemas.Appointment]:
        return visible_appointments(self.navigator, self.store.appointments, self.filters, self.context.tz)

    def response(self) -> schemas.AgendaResponse:
        error = self.store.error
        return build_agenda_response(self.navigator, self.store.appointments, self.filters,
                                     loading=self.store.loading, error=str(error) if error else None,
                                     tz=self.context.tz)

    def frame(self) -> dict:
        return self.response().model_dump(mode='json')

    def close(self) -> None:
        self.store.close()
