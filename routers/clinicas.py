# routers/clinicas.py
"""
Router de perfil e clínica (onboarding multi-tenant)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

import schemas
from auth import get_clinic_session, get_current_user_firebase
from tenant import ClinicSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Clínicas"])


@router.get("/me", response_model=schemas.UserProfile)
def ler_perfil(current_user: schemas.UserProfile = Depends(get_current_user_firebase)):
    """Perfil do usuário autenticado. Criado na primeira chamada."""
    return current_user


@router.get("/clinica", response_model=schemas.Clinic)
def ler_clinica(session: ClinicSession = Depends(get_clinic_session)):
    if session.clinic is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuário ainda não possui clínica.")
    return session.clinic


@router.post("/clinicas", response_model=schemas.Clinic, status_code=status.HTTP_201_CREATED)
def criar_clinica(
    clinic_data: schemas.ClinicCreate,
    seed: bool = True,
    session: ClinicSession = Depends(get_clinic_session)
):
    """
    Cria a clínica do usuário, vincula-o como dono e semeia dados de demonstração.
    As etapas não são transacionais: uma falha no meio deixa o que já foi gravado.
    """
    if session.user_profile is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                            detail="Não foi possível carregar o perfil do usuário.")
    if session.user_profile.clinic_id:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Usuário já possui uma clínica.")

    session.create_clinic(clinic_data, seed=seed)
    return session.clinic


@router.patch("/clinica/configuracoes", response_model=schemas.Clinic)
def atualizar_configuracoes(
    settings: schemas.ClinicSettingsUpdate,
    session: ClinicSession = Depends(get_clinic_session)
):
    session.update_clinic_settings(settings)
    return session.clinic
