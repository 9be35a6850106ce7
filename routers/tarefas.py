# routers/tarefas.py
"""
Router para tarefas da clínica
"""

from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
import schemas
import crud
import filters
from auth import get_clinic_context
from database import get_db
from tenant import ClinicContext, require_clinic
from firebase_admin import firestore

router = APIRouter(prefix="/tarefas", tags=["Tarefas"])


def _tarefa_nao_encontrada(task_id: str):
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Tarefa {task_id} não encontrada.")


@router.get("", response_model=List[schemas.Task])
def listar_tarefas(
    status_tarefa: Optional[schemas.TaskStatus] = None,
    context: ClinicContext = Depends(get_clinic_context),
    db: firestore.client = Depends(get_db)
):
    """Lista as tarefas ordenadas por prioridade e vencimento."""
    return filters.sort_tasks(crud.listar_tarefas(db, require_clinic(context), status_tarefa))


@router.post("", response_model=schemas.Task, status_code=status.HTTP_201_CREATED)
def criar_tarefa(
    tarefa_data: schemas.TaskCreate,
    context: ClinicContext = Depends(get_clinic_context),
    db: firestore.client = Depends(get_db)
):
    clinic_id = require_clinic(context)
    if not tarefa_data.created_by:
        tarefa_data.created_by = context.user_id or ""
    task_id = crud.criar_tarefa(db, clinic_id, tarefa_data)
    return crud.buscar_tarefa_por_id(db, clinic_id, task_id)


@router.patch("/{task_id}", response_model=schemas.Task)
def atualizar_tarefa(
    task_id: str,
    update_data: schemas.TaskUpdate,
    context: ClinicContext = Depends(get_clinic_context),
    db: firestore.client = Depends(get_db)
):
    tarefa = crud.atualizar_tarefa(db, require_clinic(context), task_id, update_data)
    if tarefa is None:
        _tarefa_nao_encontrada(task_id)
    return tarefa


@router.post("/{task_id}/concluir", response_model=schemas.Task)
def alternar_conclusao(
    task_id: str,
    context: ClinicContext = Depends(get_clinic_context),
    db: firestore.client = Depends(get_db)
):
    """Conclui a tarefa, ou reabre se ela já estava concluída."""
    tarefa = crud.alternar_conclusao_tarefa(db, require_clinic(context), task_id)
    if tarefa is None:
        _tarefa_nao_encontrada(task_id)
    return tarefa


@router.delete("/{task_id}")
def deletar_tarefa(
    task_id: str,
    context: ClinicContext = Depends(get_clinic_context),
    db: firestore.client = Depends(get_db)
):
    if not crud.deletar_tarefa(db, require_clinic(context), task_id):
        _tarefa_nao_encontrada(task_id)
    return {"message": "Tarefa removida com sucesso."}
