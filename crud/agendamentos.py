# crud/agendamentos.py
"""
CRUD para gestão de agendamentos

Coleção: /clinics/{clinic_id}/appointments/{appointment_id}
A data é gravada como string ISO-8601 para permitir consultas por intervalo.
"""

from __future__ import annotations
import logging
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Union
from firebase_admin import firestore
import schemas
import filters
import recurrence
from crud.colecoes import (
    colecao_da_clinica, montar_consulta, listar_documentos, buscar_documento,
    criar_documento, atualizar_documento, deletar_documento, assinar_consulta
)
from crud.utils import serializar
from errors import AppointmentValidationError

logger = logging.getLogger(__name__)

COLECAO = 'appointments'
CAMPOS_OBRIGATORIOS = ('patient_id', 'date', 'procedure')


def doc_to_appointment(doc) -> schemas.Appointment:
    """Converte um DocumentSnapshot em Appointment."""
    data = doc.to_dict() or {}
    data['id'] = doc.id
    return schemas.Appointment.model_validate(data)


def validar_campos_obrigatorios(dados: Dict) -> None:
    """Barra a criação antes de qualquer chamada ao Firestore se faltar campo obrigatório."""
    faltando = []
    for campo in CAMPOS_OBRIGATORIOS:
        valor = dados.get(campo)
        if valor is None or (isinstance(valor, str) and not valor.strip()):
            faltando.append(campo)
    if faltando:
        raise AppointmentValidationError(faltando)


def _filtros_do_dia(dia: date, folga: int = 0) -> list:
    # `folga` alarga o intervalo em dias para pegar datas gravadas com fuso
    inicio = dia - timedelta(days=folga)
    proximo = dia + timedelta(days=1 + folga)
    return [
        ('date', '>=', f"{inicio.isoformat()}T00:00:00"),
        ('date', '<', f"{proximo.isoformat()}T00:00:00"),
    ]


def _do_dia_local(agendamentos: List[schemas.Appointment], dia: date, tz) -> List[schemas.Appointment]:
    """Mantém só os agendamentos que caem em `dia` no fuso da clínica, em ordem de data."""
    return filters.sort_by_date(filters.todays_appointments(agendamentos, dia, tz), tz=tz)


def listar_agendamentos(db: firestore.client, clinic_id: str) -> List[schemas.Appointment]:
    """Lista todos os agendamentos da clínica em ordem crescente de data."""
    return listar_documentos(db, clinic_id, COLECAO, ordem='date', converter=doc_to_appointment)


def listar_agendamentos_por_data(db: firestore.client, clinic_id: str, dia: date, tz=None) -> List[schemas.Appointment]:
    """
    Lista os agendamentos de um dia (YYYY-MM-DD).

    Com `tz`, o dia é o do fuso da clínica: a consulta pega um dia a mais de
    cada lado e o resultado é recortado localmente.
    """
    if tz is None:
        return listar_documentos(db, clinic_id, COLECAO, filtros=_filtros_do_dia(dia), ordem='date',
                                 converter=doc_to_appointment)
    agendamentos = listar_documentos(db, clinic_id, COLECAO, filtros=_filtros_do_dia(dia, folga=1), ordem='date',
                                     converter=doc_to_appointment)
    return _do_dia_local(agendamentos, dia, tz)


def listar_agendamentos_por_paciente(db: firestore.client, clinic_id: str, patient_id: str) -> List[schemas.Appointment]:
    """Lista os agendamentos de um paciente, do mais recente para o mais antigo."""
    return listar_documentos(db, clinic_id, COLECAO, filtros=[('patient_id', '==', patient_id)], ordem='date',
                             direcao=firestore.Query.DESCENDING, converter=doc_to_appointment)


def buscar_agendamento_por_id(db: firestore.client, clinic_id: str, appointment_id: str) -> Optional[schemas.Appointment]:
    return buscar_documento(db, clinic_id, COLECAO, appointment_id, converter=doc_to_appointment)


def criar_agendamento(db: firestore.client, clinic_id: str,
                      agendamento_data: Union[schemas.AppointmentCreate, Dict]) -> str:
    """Cria um novo agendamento e retorna o ID gerado."""
    if isinstance(agendamento_data, dict):
        validar_campos_obrigatorios(agendamento_data)
        agendamento_data = schemas.AppointmentCreate.model_validate(agendamento_data)

    agendamento_dict = serializar(agendamento_data)
    appointment_id = criar_documento(db, clinic_id, COLECAO, agendamento_dict)
    logger.info(f"Agendamento {appointment_id} criado para o paciente {agendamento_data.patient_id}")
    return appointment_id


def atualizar_agendamento(db: firestore.client, clinic_id: str, appointment_id: str,
                          update_data: Union[schemas.AppointmentUpdate, Dict]) -> Optional[schemas.Appointment]:
    """Atualização parcial. Retorna o agendamento atualizado ou None se não existir."""
    if isinstance(update_data, dict):
        update_data = schemas.AppointmentUpdate.model_validate(update_data)

    if not atualizar_documento(db, clinic_id, COLECAO, appointment_id, serializar(update_data, apenas_informados=True)):
        return None
    return buscar_agendamento_por_id(db, clinic_id, appointment_id)


def atualizar_status_agendamento(db: firestore.client, clinic_id: str, appointment_id: str,
                                 status: schemas.AppointmentStatus) -> Optional[schemas.Appointment]:
    return atualizar_agendamento(db, clinic_id, appointment_id, schemas.AppointmentUpdate(status=status))


def deletar_agendamento(db: firestore.client, clinic_id: str, appointment_id: str) -> bool:
    """Remoção física. A maioria dos fluxos prefere mudar o status para Cancelado."""
    return deletar_documento(db, clinic_id, COLECAO, appointment_id)


def assinar_agendamentos(db: firestore.client, clinic_id: str, filtro: schemas.SubscriptionFilter,
                         on_data: Callable[[List[schemas.Appointment]], None],
                         on_error: Optional[Callable[[Exception], None]] = None,
                         tz=None) -> Callable[[], None]:
    """
    Assina os agendamentos da clínica no formato de filtro pedido. Retorna a função de cancelamento.

    No filtro por dia com `tz`, cada snapshot é recortado para o dia no fuso da clínica.
    """
    entregar = on_data
    if filtro.kind == schemas.FilterKind.PATIENT:
        query = montar_consulta(db, clinic_id, COLECAO, [('patient_id', '==', filtro.patient_id)], 'date',
                                firestore.Query.DESCENDING)
        descricao = f"agendamentos do paciente {filtro.patient_id}"
    elif filtro.kind == schemas.FilterKind.DATE:
        query = montar_consulta(db, clinic_id, COLECAO, _filtros_do_dia(filtro.day, folga=1 if tz else 0), 'date')
        descricao = f"agendamentos de {filtro.day.isoformat()}"
        if tz is not None:
            def entregar(itens):
                on_data(_do_dia_local(itens, filtro.day, tz))
    else:
        query = montar_consulta(db, clinic_id, COLECAO, ordem='date')
        descricao = "agendamentos"
    return assinar_consulta(query, doc_to_appointment, entregar, on_error, descricao=f"{descricao} ({clinic_id})")

# =================================================================================
# OCORRÊNCIAS DE SÉRIES RECORRENTES
# =================================================================================

def _buscar_serie_e_data(db: firestore.client, clinic_id: str, occurrence_id: schemas.OccurrenceId):
    serie = buscar_agendamento_por_id(db, clinic_id, occurrence_id.base_id)
    if serie is None or serie.recurrence is None:
        logger.warning(f"Série {occurrence_id.base_id} não encontrada ou não recorrente")
        return None, None
    quando = recurrence.occurrence_at(serie, occurrence_id.occurrence_index)
    if quando is None:
        logger.warning(f"Ocorrência {occurrence_id.key()} fora da série")
    return serie, quando


def _adicionar_excecao(db: firestore.client, clinic_id: str, serie: schemas.Appointment, dia: date) -> None:
    regra = serie.recurrence
    if dia in regra.exception_dates:
        return
    nova_regra = regra.model_copy(update={'exception_dates': sorted([*regra.exception_dates, dia])})
    colecao_da_clinica(db, clinic_id, COLECAO).document(serie.id).update({
        'recurrence': serializar(nova_regra),
        'updated_at': firestore.SERVER_TIMESTAMP,
    })


def cancelar_ocorrencia(db: firestore.client, clinic_id: str,
                        occurrence_id: schemas.OccurrenceId) -> Optional[schemas.Appointment]:
    """Cancela uma única ocorrência adicionando seu dia à lista de exceções da série."""
    serie, quando = _buscar_serie_e_data(db, clinic_id, occurrence_id)
    if quando is None:
        return None
    _adicionar_excecao(db, clinic_id, serie, quando.date())
    logger.info(f"Ocorrência {occurrence_id.key()} ({quando.date()}) cancelada")
    return buscar_agendamento_por_id(db, clinic_id, serie.id)


def destacar_ocorrencia(db: firestore.client, clinic_id: str, occurrence_id: schemas.OccurrenceId,
                        update_data: Union[schemas.AppointmentUpdate, Dict]) -> Optional[str]:
    """
    Edita uma única ocorrência destacando-a da série: o dia vira exceção e um
    agendamento avulso é criado com os dados mesclados. Retorna o novo ID.
    """
    if isinstance(update_data, dict):
        update_data = schemas.AppointmentUpdate.model_validate(update_data)

    serie, quando = _buscar_serie_e_data(db, clinic_id, occurrence_id)
    if quando is None:
        return None

    dados = serie.model_dump(exclude={'id', 'recurrence_parent_id', 'occurrence_id', 'recurrence'})
    dados['date'] = quando
    dados.update(update_data.model_dump(exclude_unset=True, exclude={'recurrence'}))
    avulso = schemas.AppointmentCreate.model_validate(dados)

    # Duas escritas independentes, sem transação: exceção primeiro para não exibir duplicado
    _adicionar_excecao(db, clinic_id, serie, quando.date())
    novo_id = criar_agendamento(db, clinic_id, avulso)
    logger.info(f"Ocorrência {occurrence_id.key()} destacada como agendamento {novo_id}")
    return novo_id
