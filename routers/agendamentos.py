# routers/agendamentos.py
"""
Router para agendamentos da clínica
"""

import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from firebase_admin import firestore

import crud
import filters
import recurrence
import schemas
from auth import get_clinic_context
from database import get_db
from tenant import ClinicContext, require_clinic

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agendamentos", tags=["Agendamentos"])


def _nao_encontrado(appointment_id: str):
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Agendamento {appointment_id} não encontrado."
    )


@router.get("", response_model=List[schemas.Appointment])
def listar_agendamentos(
    data: Optional[date] = Query(None, description="Dia no formato YYYY-MM-DD"),
    paciente_id: Optional[str] = Query(None),
    context: ClinicContext = Depends(get_clinic_context),
    db: firestore.client = Depends(get_db)
):
    """Lista os agendamentos brutos (séries não expandidas). Paciente tem precedência sobre data."""
    clinic_id = require_clinic(context)
    filtro = schemas.SubscriptionFilter.from_params(day=data, patient_id=paciente_id)
    if filtro.kind == schemas.FilterKind.PATIENT:
        return crud.listar_agendamentos_por_paciente(db, clinic_id, filtro.patient_id)
    if filtro.kind == schemas.FilterKind.DATE:
        return crud.listar_agendamentos_por_data(db, clinic_id, filtro.day, tz=context.tz)
    return crud.listar_agendamentos(db, clinic_id)


@router.get("/hoje", response_model=List[schemas.Appointment])
def listar_agendamentos_de_hoje(
    context: ClinicContext = Depends(get_clinic_context),
    db: firestore.client = Depends(get_db)
):
    """Agendamentos de hoje no fuso da clínica, com as ocorrências de séries recorrentes."""
    clinic_id = require_clinic(context)
    hoje = datetime.now(context.tz).date()
    janela = filters.day_window(hoje, context.tz)
    expandidos = recurrence.expand(crud.listar_agendamentos(db, clinic_id), janela)
    return filters.sort_by_date(filters.todays_appointments(expandidos, hoje, context.tz), janela)


@router.get("/{appointment_id}", response_model=schemas.Appointment)
def obter_agendamento(
    appointment_id: str,
    context: ClinicContext = Depends(get_clinic_context),
    db: firestore.client = Depends(get_db)
):
    agendamento = crud.buscar_agendamento_por_id(db, require_clinic(context), appointment_id)
    if agendamento is None:
        _nao_encontrado(appointment_id)
    return agendamento


@router.post("", response_model=schemas.AppointmentCreatedResponse, status_code=status.HTTP_201_CREATED)
def criar_agendamento(
    agendamento_data: schemas.AppointmentCreate,
    context: ClinicContext = Depends(get_clinic_context),
    db: firestore.client = Depends(get_db)
):
    """Cria um agendamento (avulso ou série recorrente)."""
    clinic_id = require_clinic(context)
    appointment_id = crud.criar_agendamento(db, clinic_id, agendamento_data)
    return schemas.AppointmentCreatedResponse(id=appointment_id)


@router.patch("/{appointment_id}", response_model=schemas.Appointment)
def atualizar_agendamento(
    appointment_id: str,
    update_data: schemas.AppointmentUpdate,
    context: ClinicContext = Depends(get_clinic_context),
    db: firestore.client = Depends(get_db)
):
    """Atualização parcial. Numa série, vale para a série inteira."""
    agendamento = crud.atualizar_agendamento(db, require_clinic(context), appointment_id, update_data)
    if agendamento is None:
        _nao_encontrado(appointment_id)
    return agendamento


@router.patch("/{appointment_id}/status", response_model=schemas.Appointment)
def atualizar_status(
    appointment_id: str,
    status_data: schemas.AppointmentStatusUpdate,
    context: ClinicContext = Depends(get_clinic_context),
    db: firestore.client = Depends(get_db)
):
    agendamento = crud.atualizar_status_agendamento(db, require_clinic(context), appointment_id, status_data.status)
    if agendamento is None:
        _nao_encontrado(appointment_id)
    return agendamento


@router.delete("/{appointment_id}")
def deletar_agendamento(
    appointment_id: str,
    context: ClinicContext = Depends(get_clinic_context),
    db: firestore.client = Depends(get_db)
):
    if not crud.deletar_agendamento(db, require_clinic(context), appointment_id):
        _nao_encontrado(appointment_id)
    return {"message": "Agendamento removido com sucesso."}

# --- Ocorrências de séries ---

@router.post("/{appointment_id}/ocorrencias/{indice}/cancelar", response_model=schemas.Appointment)
def cancelar_ocorrencia(
    appointment_id: str,
    indice: int = Path(..., ge=0),
    context: ClinicContext = Depends(get_clinic_context),
    db: firestore.client = Depends(get_db)
):
    """Cancela só esta ocorrência (o dia entra na lista de exceções da série)."""
    clinic_id = require_clinic(context)
    occurrence_id = schemas.OccurrenceId(base_id=appointment_id, occurrence_index=indice)
    serie = crud.cancelar_ocorrencia(db, clinic_id, occurrence_id)
    if serie is None:
        _nao_encontrado(occurrence_id.key())
    return serie


@router.patch("/{appointment_id}/ocorrencias/{indice}", response_model=schemas.AppointmentCreatedResponse,
              status_code=status.HTTP_201_CREATED)
def editar_ocorrencia(
    appointment_id: str,
    update_data: schemas.AppointmentUpdate,
    indice: int = Path(..., ge=0),
    context: ClinicContext = Depends(get_clinic_context),
    db: firestore.client = Depends(get_db)
):
    """Edita só esta ocorrência, destacando-a da série como um agendamento avulso."""
    clinic_id = require_clinic(context)
    occurrence_id = schemas.OccurrenceId(base_id=appointment_id, occurrence_index=indice)
    novo_id = crud.destacar_ocorrencia(db, clinic_id, occurrence_id, update_data)
    if novo_id is None:
        _nao_encontrado(occurrence_id.key())
    return schemas.AppointmentCreatedResponse(id=novo_id)
