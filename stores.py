# stores.py
"""
Stores por domínio no formato {dados, loading, error, mutações}.

Cada store recebe o `ClinicContext` explicitamente e compõe um `LiveQuery`.
As mutações vão direto para o Firestore e nunca mexem na lista local: a
assinatura (ou um `refresh()`) é quem reflete a mudança.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

import crud
import filters
import recurrence
import schemas
from errors import BackendError, PreconditionError
from live_query import LiveQuery, QueryState
from tenant import ClinicContext, Ready, Unscoped, require_clinic, require_patient

logger = logging.getLogger(__name__)


def call_backend(descricao: str, fn: Callable, *args, **kwargs):
    """Executa uma operação pontual no Firestore, embrulhando falhas inesperadas em BackendError."""
    try:
        return fn(*args, **kwargs)
    except (PreconditionError, ValueError, BackendError):
        raise
    except Exception as e:
        logger.error(f"Erro ao {descricao}: {e}")
        raise BackendError(f"Erro ao {descricao}: {e}") from e


class _ScopedStore:
    """Base comum: contexto da clínica + uma consulta em tempo real."""

    name = "store"

    def __init__(self, context: ClinicContext, db, filter_shape: Optional[schemas.SubscriptionFilter] = None):
        self._context = context
        self._db = db
        self._query = LiveQuery(self._subscribe, scope=self._scope_for(context),
                                filter_shape=filter_shape, name=self.name)

    # Subclasses implementam a assinatura concreta
    def _subscribe(self, clinic_id, filter_shape, on_data, on_error):
        raise NotImplementedError

    def _scope_for(self, context: ClinicContext):
        return context.scope

    @property
    def context(self) -> ClinicContext:
        return self._context

    @property
    def state(self) -> QueryState:
        return self._query.state

    @property
    def loading(self) -> bool:
        return self._query.loading

    @property
    def error(self) -> Optional[Exception]:
        return self._query.error

    @property
    def filter_shape(self) -> schemas.SubscriptionFilter:
        return self._query.filter_shape

    def set_context(self, context: ClinicContext) -> None:
        self._context = context
        self._query.set_scope(self._scope_for(context))

    def add_listener(self, listener) -> Callable[[], None]:
        return self._query.add_listener(listener)

    def refresh(self) -> None:
        self._query.refresh()

    def close(self) -> None:
        self._query.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class AppointmentStore(_ScopedStore):
    name = "agendamentos"

    def __init__(self, context: ClinicContext, db, filters: Optional[schemas.SubscriptionFilter] = None):
        super().__init__(context, db, filter_shape=filters)

    def _subscribe(self, clinic_id, filter_shape, on_data, on_error):
        return crud.assinar_agendamentos(self._db, clinic_id, filter_shape, on_data, on_error, tz=self._context.tz)

    @property
    def appointments(self) -> List[schemas.Appointment]:
        return self._query.items

    def todays_appointments(self, now: Optional[datetime] = None) -> List[schemas.Appointment]:
        """Agendamentos (inclusive ocorrências de séries) do dia corrente no fuso da clínica."""
        tz = self._context.tz
        now = now or datetime.now(tz)
        if now.tzinfo is not None:
            now = now.astimezone(tz)
        today = now.date()
        window = filters.day_window(today, tz)
        hoje = filters.todays_appointments(recurrence.expand(self.appointments, window), today, tz)
        return filters.sort_by_date(hoje, window)

    # --- filtro da assinatura ---

    def set_filters(self, filter_shape: schemas.SubscriptionFilter) -> None:
        self._query.set_filter(filter_shape)

    def clear_filters(self) -> None:
        self._query.set_filter(schemas.SubscriptionFilter.all())

    # --- mutações ---

    def add_appointment(self, data: Union[schemas.AppointmentCreate, Dict]) -> str:
        clinic_id = require_clinic(self._context)
        if isinstance(data, dict):
            crud.validar_campos_obrigatorios(data)
            data = schemas.AppointmentCreate.model_validate(data)
        return call_backend("criar agendamento", crud.criar_agendamento, self._db, clinic_id, data)

    def update_appointment(self, appointment_id: str,
                           data: Union[schemas.AppointmentUpdate, Dict]) -> Optional[schemas.Appointment]:
        clinic_id = require_clinic(self._context)
        return call_backend("atualizar agendamento", crud.atualizar_agendamento,
                            self._db, clinic_id, appointment_id, data)

    def update_status(self, appointment_id: str, status: schemas.AppointmentStatus) -> Optional[schemas.Appointment]:
        clinic_id = require_clinic(self._context)
        return call_backend("atualizar status do agendamento", crud.atualizar_status_agendamento,
                            self._db, clinic_id, appointment_id, status)

    def delete_appointment(self, appointment_id: str) -> bool:
        clinic_id = require_clinic(self._context)
        return call_backend("remover agendamento", crud.deletar_agendamento, self._db, clinic_id, appointment_id)

    def cancel_occurrence(self, occurrence_id: schemas.OccurrenceId) -> Optional[schemas.Appointment]:
        clinic_id = require_clinic(self._context)
        return call_backend("cancelar ocorrência", crud.cancelar_ocorrencia, self._db, clinic_id, occurrence_id)

    def detach_occurrence(self, occurrence_id: schemas.OccurrenceId,
                          data: Union[schemas.AppointmentUpdate, Dict]) -> Optional[str]:
        clinic_id = require_clinic(self._context)
        return call_backend("editar ocorrência", crud.destacar_ocorrencia, self._db, clinic_id, occurrence_id, data)


class TaskStore(_ScopedStore):
    name = "tarefas"

    def _subscribe(self, clinic_id, filter_shape, on_data, on_error):
        return crud.assinar_tarefas(self._db, clinic_id, filter_shape, on_data, on_error)

    @property
    def tasks(self) -> List[schemas.Task]:
        return filters.sort_tasks(self._query.items)

    @property
    def pending_tasks(self) -> List[schemas.Task]:
        return filters.pending_tasks(self._query.items)

    @property
    def completed_tasks(self) -> List[schemas.Task]:
        return filters.completed_tasks(self._query.items)

    def add_task(self, data: Union[schemas.TaskCreate, Dict]) -> str:
        clinic_id = require_clinic(self._context)
        if isinstance(data, dict):
            data = schemas.TaskCreate.model_validate(data)
        if not data.created_by and self._context.user_id:
            data = data.model_copy(update={'created_by': self._context.user_id})
        return call_backend("criar tarefa", crud.criar_tarefa, self._db, clinic_id, data)

    def update_task(self, task_id: str, data: Union[schemas.TaskUpdate, Dict]) -> Optional[schemas.Task]:
        clinic_id = require_clinic(self._context)
        return call_backend("atualizar tarefa", crud.atualizar_tarefa, self._db, clinic_id, task_id, data)

    def toggle_complete(self, task_id: str) -> Optional[schemas.Task]:
        clinic_id = require_clinic(self._context)
        return call_backend("concluir tarefa", crud.alternar_conclusao_tarefa, self._db, clinic_id, task_id)

    def delete_task(self, task_id: str) -> bool:
        clinic_id = require_clinic(self._context)
        return call_backend("remover tarefa", crud.deletar_tarefa, self._db, clinic_id, task_id)


class PatientCollectionStore(_ScopedStore):
    """
    Store genérico para as coleções por paciente (prontuários, exames,
    prescrições, teleconsultas, pagamentos). Sem paciente selecionado a lista
    fica vazia e nada é assinado.
    """

    def __init__(self, context: ClinicContext, db, collection: str, patient_id: Optional[str] = None):
        if collection not in crud.CLINIC_COLLECTIONS:
            raise ValueError(f"Coleção desconhecida: {collection}")
        self.collection = collection
        self.name = collection
        self._patient_field = crud.CLINIC_COLLECTIONS[collection]
        self._patient_id = patient_id
        super().__init__(context, db, filter_shape=self._filter_for(patient_id))

    @staticmethod
    def _filter_for(patient_id: Optional[str]) -> schemas.SubscriptionFilter:
        if patient_id:
            return schemas.SubscriptionFilter.by_patient(patient_id)
        return schemas.SubscriptionFilter.all()

    def _scope_for(self, context: ClinicContext):
        scope = context.scope
        if isinstance(scope, Ready) and not self._patient_id:
            return Unscoped("Nenhum paciente selecionado.")
        return scope

    def _subscribe(self, clinic_id, filter_shape, on_data, on_error):
        return crud.assinar_colecao(self._db, clinic_id, self.collection, on_data, on_error,
                                    filtros=[(self._patient_field, '==', filter_shape.patient_id)])

    @property
    def items(self) -> List[Dict]:
        return self._query.items

    @property
    def patient_id(self) -> Optional[str]:
        return self._patient_id

    def set_patient(self, patient_id: Optional[str]) -> None:
        self._patient_id = patient_id
        # Escopo e filtro mudam juntos; a ordem evita assinar o paciente antigo
        self._query.set_scope(Unscoped("Trocando paciente."))
        self._query.set_filter(self._filter_for(patient_id))
        self._query.set_scope(self._scope_for(self._context))

    def _ids(self):
        return require_clinic(self._context), require_patient(self._patient_id)

    def add(self, data: Dict) -> str:
        clinic_id, patient_id = self._ids()
        dados = dict(data)
        dados[self._patient_field] = patient_id
        return call_backend(f"criar documento em {self.collection}", crud.criar_documento,
                            self._db, clinic_id, self.collection, dados)

    def update(self, doc_id: str, data: Dict) -> bool:
        clinic_id, _ = self._ids()
        return call_backend(f"atualizar documento em {self.collection}", crud.atualizar_documento,
                            self._db, clinic_id, self.collection, doc_id, data)

    def delete(self, doc_id: str) -> bool:
        clinic_id, _ = self._ids()
        return call_backend(f"remover documento em {self.collection}", crud.deletar_documento,
                            self._db, clinic_id, self.collection, doc_id)
