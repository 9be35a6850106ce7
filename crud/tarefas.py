# crud/tarefas.py
"""
CRUD para gestão de tarefas da clínica
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Union
from firebase_admin import firestore
import schemas
from crud.colecoes import (
    colecao_da_clinica, montar_consulta, listar_documentos, buscar_documento,
    criar_documento, atualizar_documento, deletar_documento, assinar_consulta
)
from crud.utils import serializar

logger = logging.getLogger(__name__)

COLECAO = 'tasks'


def doc_to_task(doc) -> schemas.Task:
    data = doc.to_dict() or {}
    data['id'] = doc.id
    # created_at pode vir como sentinela enquanto o servidor não resolve o timestamp
    if not isinstance(data.get('created_at'), datetime):
        data.pop('created_at', None)
    return schemas.Task.model_validate(data)


def listar_tarefas(db: firestore.client, clinic_id: str, status: Optional[schemas.TaskStatus] = None) -> List[schemas.Task]:
    """Lista as tarefas da clínica, mais recentes primeiro."""
    filtros = [('status', '==', status.value)] if status else []
    return listar_documentos(db, clinic_id, COLECAO, filtros=filtros, ordem='created_at',
                             direcao=firestore.Query.DESCENDING, converter=doc_to_task)


def buscar_tarefa_por_id(db: firestore.client, clinic_id: str, task_id: str) -> Optional[schemas.Task]:
    return buscar_documento(db, clinic_id, COLECAO, task_id, converter=doc_to_task)


def criar_tarefa(db: firestore.client, clinic_id: str, tarefa_data: Union[schemas.TaskCreate, Dict]) -> str:
    if isinstance(tarefa_data, dict):
        tarefa_data = schemas.TaskCreate.model_validate(tarefa_data)
    tarefa_dict = serializar(tarefa_data)
    tarefa_dict['completed_at'] = None
    return criar_documento(db, clinic_id, COLECAO, tarefa_dict)


def atualizar_tarefa(db: firestore.client, clinic_id: str, task_id: str,
                     update_data: Union[schemas.TaskUpdate, Dict]) -> Optional[schemas.Task]:
    if isinstance(update_data, dict):
        update_data = schemas.TaskUpdate.model_validate(update_data)
    if not atualizar_documento(db, clinic_id, COLECAO, task_id, serializar(update_data, apenas_informados=True)):
        return None
    return buscar_tarefa_por_id(db, clinic_id, task_id)


def alternar_conclusao_tarefa(db: firestore.client, clinic_id: str, task_id: str) -> Optional[schemas.Task]:
    """Marca a tarefa como concluída (ou reabre uma já concluída)."""
    tarefa = buscar_tarefa_por_id(db, clinic_id, task_id)
    if tarefa is None:
        logger.warning(f"Tarefa {task_id} não encontrada")
        return None

    if tarefa.status == schemas.TaskStatus.COMPLETED:
        novo_status, concluida_em = schemas.TaskStatus.PENDING, None
    else:
        novo_status, concluida_em = schemas.TaskStatus.COMPLETED, datetime.now(timezone.utc)

    colecao_da_clinica(db, clinic_id, COLECAO).document(task_id).update({
        'status': novo_status.value,
        'completed_at': concluida_em,
        'updated_at': firestore.SERVER_TIMESTAMP,
    })
    logger.info(f"Tarefa {task_id} agora está {novo_status.value}")
    return buscar_tarefa_por_id(db, clinic_id, task_id)


def deletar_tarefa(db: firestore.client, clinic_id: str, task_id: str) -> bool:
    return deletar_documento(db, clinic_id, COLECAO, task_id)


def assinar_tarefas(db: firestore.client, clinic_id: str, filtro: schemas.SubscriptionFilter,
                    on_data: Callable[[List[schemas.Task]], None],
                    on_error: Optional[Callable[[Exception], None]] = None) -> Callable[[], None]:
    filtros = []
    if filtro.kind == schemas.FilterKind.PATIENT:
        filtros.append(('patient_id', '==', filtro.patient_id))
    elif filtro.kind == schemas.FilterKind.DATE:
        filtros.append(('due_date', '==', filtro.day.isoformat()))
    query = montar_consulta(db, clinic_id, COLECAO, filtros, 'created_at', firestore.Query.DESCENDING)
    return assinar_consulta(query, doc_to_task, on_data, on_error, descricao=f"tarefas ({clinic_id})")
