# auth.py
"""
Dependências de autenticação e de contexto da clínica.

Não há fluxo de login aqui: o cliente envia o ID Token do Firebase e o
backend só o verifica, carrega o perfil e resolve a clínica ativa.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Query, WebSocketException, status
from fastapi.security import OAuth2PasswordBearer
from firebase_admin import auth

import schemas
from database import get_db
from tenant import ClinicContext, ClinicSession

logger = logging.getLogger(__name__)

# auto_error=False: a ausência do token vira 401 com mensagem própria
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


def decodificar_token(token: str = Depends(oauth2_scheme)) -> dict:
    """Verifica o ID Token do Firebase e devolve as claims decodificadas."""
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token de autenticação não fornecido."
        )
    try:
        return auth.verify_id_token(token)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Token inválido ou expirado: {e}"
        )


def decodificar_token_ws(token: Optional[str] = Query(None)) -> dict:
    """Mesma verificação para o WebSocket, onde o token vem na query string."""
    if not token:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason="Token não fornecido.")
    try:
        return auth.verify_id_token(token)
    except Exception as e:
        logger.warning(f"Token inválido no WebSocket: {e}")
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason="Token inválido ou expirado.")


def _carregar_sessao(decoded_token: dict, db) -> ClinicSession:
    session = ClinicSession(db)
    session.load(
        decoded_token['uid'],
        email=decoded_token.get('email', ''),
        display_name=decoded_token.get('name', ''),
    )
    return session


def get_clinic_session(decoded_token: dict = Depends(decodificar_token), db=Depends(get_db)):
    """Sessão de clínica por requisição, encerrada ao final."""
    session = _carregar_sessao(decoded_token, db)
    try:
        yield session
    finally:
        session.close()


def get_current_user_firebase(session: ClinicSession = Depends(get_clinic_session)) -> schemas.UserProfile:
    if session.user_profile is None:
        logger.error(f"Perfil não carregado: {session.error}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Não foi possível carregar o perfil do usuário."
        )
    return session.user_profile


def get_clinic_context(session: ClinicSession = Depends(get_clinic_session)) -> ClinicContext:
    """
    Contexto da clínica ativa. Um usuário sem clínica recebe um contexto sem
    escopo: as rotas que precisam de clínica respondem 409 antes de tocar o Firestore.
    """
    if session.error is not None:
        logger.error(f"Erro ao resolver a clínica: {session.error}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Não foi possível resolver a clínica do usuário."
        )
    return session.context


def get_ws_clinic_context(decoded_token: dict = Depends(decodificar_token_ws), db=Depends(get_db)) -> ClinicContext:
    session = _carregar_sessao(decoded_token, db)
    try:
        if session.error is not None:
            raise WebSocketException(code=status.WS_1011_INTERNAL_ERROR, reason="Erro ao resolver a clínica.")
        return session.context
    finally:
        session.close()
