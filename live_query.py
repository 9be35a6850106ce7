# live_query.py
"""
Gerenciador de assinatura em tempo real de uma coleção.

Um `LiveQuery` mantém no máximo uma assinatura ativa por vez. Toda troca de
escopo (clínica) ou de formato de filtro derruba a assinatura anterior antes
de abrir a nova. Frames atrasados de uma assinatura derrubada são descartados
pela geração capturada no momento da assinatura.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Generic, List, Optional, Tuple, TypeVar

import schemas
from errors import SubscriptionError
from tenant import Ready, Scoped, UNSCOPED

logger = logging.getLogger(__name__)

T = TypeVar("T")

Unsubscribe = Callable[[], None]
# source(scope_id, filter_shape, on_data, on_error) -> unsubscribe
SubscribeFn = Callable[[str, schemas.SubscriptionFilter, Callable[[List], None], Callable[[Exception], None]], Unsubscribe]
Listener = Callable[["QueryState"], None]


@dataclass(frozen=True)
class QueryState(Generic[T]):
    items: Tuple = field(default_factory=tuple)
    loading: bool = False
    error: Optional[Exception] = None


class LiveQuery(Generic[T]):

    def __init__(self, source: SubscribeFn, scope: Scoped = UNSCOPED,
                 filter_shape: Optional[schemas.SubscriptionFilter] = None, name: str = "consulta"):
        self._source = source
        self._scope = scope
        self._filter = filter_shape or schemas.SubscriptionFilter.all()
        self._name = name
        # _lock protege o estado; _subscribe_lock serializa troca de assinatura.
        # O teardown roda fora de _lock: o watch do Firestore espera a thread do callback.
        self._lock = threading.RLock()
        self._subscribe_lock = threading.Lock()
        self._listeners: List[Listener] = []
        self._generation = 0
        self._unsubscribe: Optional[Unsubscribe] = None
        self._closed = False
        self._state: QueryState = QueryState()
        self._resubscribe()

    # --- leitura ---

    @property
    def state(self) -> QueryState:
        with self._lock:
            return self._state

    @property
    def items(self) -> List[T]:
        return list(self.state.items)

    @property
    def loading(self) -> bool:
        return self.state.loading

    @property
    def error(self) -> Optional[Exception]:
        return self.state.error

    @property
    def scope(self) -> Scoped:
        return self._scope

    @property
    def filter_shape(self) -> schemas.SubscriptionFilter:
        return self._filter

    @property
    def active(self) -> bool:
        with self._lock:
            return self._unsubscribe is not None

    # --- ciclo de vida ---

    def set_scope(self, scope: Scoped) -> None:
        with self._lock:
            self._ensure_open()
            if scope == self._scope:
                return
            self._scope = scope
        self._resubscribe()

    def set_filter(self, filter_shape: schemas.SubscriptionFilter) -> None:
        with self._lock:
            self._ensure_open()
            if filter_shape == self._filter:
                return
            self._filter = filter_shape
        self._resubscribe()

    def refresh(self) -> None:
        """Reassina explicitamente (não há retry automático após erro)."""
        with self._lock:
            self._ensure_open()
        self._resubscribe()

    def close(self) -> None:
        with self._subscribe_lock:
            with self._lock:
                if self._closed:
                    return
                self._closed = True
                self._generation += 1
                unsubscribe, self._unsubscribe = self._unsubscribe, None
            if unsubscribe is not None:
                unsubscribe()
        logger.debug(f"LiveQuery {self._name} encerrado")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def remove():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return remove

    # --- internos ---

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError(f"LiveQuery {self._name} já foi encerrado.")

    def _resubscribe(self) -> None:
        with self._subscribe_lock:
            with self._lock:
                if self._closed:
                    return
                old_unsubscribe, self._unsubscribe = self._unsubscribe, None
                # A partir daqui qualquer frame da assinatura anterior é obsoleto
                self._generation += 1
                generation = self._generation
                scope, filter_shape = self._scope, self._filter
                ready = isinstance(scope, Ready)
                # Sem clínica: nada de consulta, lista vazia e sem loading
                self._set_state(QueryState(loading=ready))
                state = self._state

            if old_unsubscribe is not None:
                old_unsubscribe()
            self._notify(state)
            if not ready:
                return

            def on_data(items):
                self._on_data(generation, items)

            def on_error(exc):
                self._on_error(generation, exc)

            try:
                unsubscribe = self._source(scope.value, filter_shape, on_data, on_error)
            except Exception as e:
                logger.error(f"Erro ao assinar {self._name} ({scope.value}): {e}")
                self._on_error(generation, e)
                return

            with self._lock:
                if generation == self._generation:
                    self._unsubscribe, unsubscribe = unsubscribe, None
            if unsubscribe is not None:
                unsubscribe()

    def _on_data(self, generation: int, items) -> None:
        with self._lock:
            if generation != self._generation:
                logger.debug(f"Frame obsoleto de {self._name} descartado")
                return
            self._set_state(QueryState(items=tuple(items)))
            state = self._state
        self._notify(state)

    def _on_error(self, generation: int, exc: Exception) -> None:
        with self._lock:
            if generation != self._generation:
                return
            logger.error(f"Erro na assinatura de {self._name}: {exc}")
            if not isinstance(exc, SubscriptionError):
                wrapped = SubscriptionError(f"Falha ao acompanhar {self._name}: {exc}")
                wrapped.__cause__ = exc
                exc = wrapped
            self._set_state(QueryState(error=exc))
            state = self._state
        self._notify(state)

    def _set_state(self, state: QueryState) -> None:
        self._state = state

    def _notify(self, state: QueryState) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(state)
