# routers/agenda.py
"""
Router da tela de agenda: visão dia/semana/mês com séries expandidas.

- GET /agenda: leitura pontual de uma visão.
- WS /agenda/ws: sessão ao vivo. O cliente envia comandos de navegação e
  filtro; o servidor responde com o quadro completo da agenda a cada comando
  e a cada mudança vinda do Firestore.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from firebase_admin import firestore

import crud
import schemas
from auth import get_clinic_context, get_ws_clinic_context
from calendar_nav import AgendaSession, CalendarNavigator, build_agenda_response
from database import get_db
from filters import LocalFilters
from tenant import ClinicContext, Ready, require_clinic

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agenda", tags=["Agenda"])


def _navegador(context: ClinicContext, view: schemas.ViewMode, data: Optional[date]) -> CalendarNavigator:
    return CalendarNavigator(anchor_date=data, view_mode=view, today=lambda: datetime.now(context.tz).date())


@router.get("", response_model=schemas.AgendaResponse)
def obter_agenda(
    view: schemas.ViewMode = Query(schemas.ViewMode.DAY),
    data: Optional[date] = Query(None, description="Data âncora (YYYY-MM-DD). Padrão: hoje."),
    status_filtro: List[schemas.AppointmentStatus] = Query([], alias="status"),
    especialidade: List[schemas.Specialty] = Query([]),
    context: ClinicContext = Depends(get_clinic_context),
    db: firestore.client = Depends(get_db)
):
    """Agenda da visão pedida, com recorrências expandidas e filtros locais aplicados."""
    clinic_id = require_clinic(context)
    navegador = _navegador(context, view, data)

    filtro = navegador.subscription_filter()
    if filtro.kind == schemas.FilterKind.DATE:
        agendamentos = crud.listar_agendamentos_por_data(db, clinic_id, filtro.day, tz=context.tz)
    else:
        agendamentos = crud.listar_agendamentos(db, clinic_id)

    return build_agenda_response(navegador, agendamentos, LocalFilters(status_filtro, especialidade), tz=context.tz)


def aplicar_comando(session: AgendaSession, mensagem: dict) -> None:
    """Aplica um comando recebido pelo WebSocket. Comando inválido lança ValueError."""
    if not isinstance(mensagem, dict):
        raise ValueError("Comando deve ser um objeto JSON com o campo 'action'.")
    acao = mensagem.get("action")
    navegador = session.navigator
    if acao == "previous":
        navegador.go_to_previous()
    elif acao == "next":
        navegador.go_to_next()
    elif acao == "today":
        navegador.go_to_today()
    elif acao == "view":
        navegador.switch_view(schemas.ViewMode(mensagem.get("view_mode")))
    elif acao == "select_day":
        navegador.select_day(date.fromisoformat(str(mensagem.get("date", ""))))
    elif acao == "toggle_status":
        session.filters.toggle_status(schemas.AppointmentStatus(mensagem.get("status")))
    elif acao == "toggle_specialty":
        session.filters.toggle_specialty(schemas.Specialty(mensagem.get("specialty")))
    elif acao == "clear_filters":
        session.filters.clear()
    elif acao == "refresh":
        session.store.refresh()
    else:
        raise ValueError(f"Ação desconhecida: {acao}")


@router.websocket("/ws")
async def agenda_ao_vivo(
    websocket: WebSocket,
    view: schemas.ViewMode = Query(schemas.ViewMode.DAY),
    data: Optional[date] = Query(None),
    context: ClinicContext = Depends(get_ws_clinic_context),
    db: firestore.client = Depends(get_db)
):
    await websocket.accept()

    if not isinstance(context.scope, Ready):
        await websocket.send_json({"type": "error", "detail": context.scope.reason})
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    loop = asyncio.get_running_loop()
    fila: asyncio.Queue = asyncio.Queue()
    session = AgendaSession(context, db, navigator=_navegador(context, view, data))

    # Snapshots do Firestore chegam em outra thread
    session.add_listener(lambda _state: loop.call_soon_threadsafe(fila.put_nowait, None))
    fila.put_nowait(None)

    async def receber():
        while True:
            mensagem = await websocket.receive_json()
            try:
                aplicar_comando(session, mensagem)
            except ValueError as e:
                await fila.put({"type": "error", "detail": str(e)})
                continue
            await fila.put(None)

    async def enviar():
        # Único escritor do socket
        while True:
            item = await fila.get()
            if item is None:
                await websocket.send_json({"type": "agenda", **session.frame()})
            else:
                await websocket.send_json(item)

    tarefas = [asyncio.create_task(receber()), asyncio.create_task(enviar())]
    try:
        concluidas, pendentes = await asyncio.wait(tarefas, return_when=asyncio.FIRST_COMPLETED)
        for tarefa in pendentes:
            tarefa.cancel()
        for tarefa in concluidas:
            erro = tarefa.exception()
            if erro is not None and not isinstance(erro, WebSocketDisconnect):
                logger.error(f"Erro na agenda ao vivo da clínica {context.clinic_id}: {erro}")
    finally:
        session.close()
        logger.info(f"Agenda ao vivo encerrada para a clínica {context.clinic_id}")
