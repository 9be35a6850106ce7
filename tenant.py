# tenant.py
"""
Contexto de clínica (tenant) injetado explicitamente em stores e serviços.

Nenhuma consulta é emitida sem uma clínica resolvida: quem recebe um escopo
`Unscoped` devolve lista vazia e não assina nada.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union
from zoneinfo import ZoneInfo

import config
import schemas
from crud import clinicas
from errors import ClinicNotSelectedError, PatientNotSelectedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Unscoped:
    reason: str = "Nenhuma clínica selecionada."


@dataclass(frozen=True)
class Ready(Generic[T]):
    value: T


Scoped = Union[Unscoped, Ready]

UNSCOPED = Unscoped()


@dataclass(frozen=True)
class ClinicContext:
    clinic_id: Optional[str] = None
    timezone: str = config.DEFAULT_TIMEZONE
    user_id: Optional[str] = None

    @property
    def scope(self) -> Scoped:
        if not self.clinic_id:
            return UNSCOPED
        return Ready(self.clinic_id)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def require_clinic(scope) -> str:
    """Devolve o clinic_id ou lança ClinicNotSelectedError. Aceita ClinicContext ou Scoped."""
    if isinstance(scope, ClinicContext):
        scope = scope.scope
    if isinstance(scope, Ready) and scope.value:
        return scope.value
    raise ClinicNotSelectedError()


def require_patient(patient_id: Optional[str]) -> str:
    if not patient_id:
        raise PatientNotSelectedError()
    return patient_id


def context_from_profile(profile: Optional[schemas.UserProfile], clinic: Optional[schemas.Clinic]) -> ClinicContext:
    if profile is None or clinic is None:
        return ClinicContext(user_id=profile.id if profile else None)
    return ClinicContext(clinic_id=clinic.id, timezone=clinic.settings.timezone, user_id=profile.id)


class ClinicSession:
    """
    Provedor de longa duração do perfil do usuário e da clínica ativa.

    Leituras pontuais (sem listener): os dados mudam pouco e são recarregados
    após cada mutação. Um resultado que chega depois de `close()` ou de um
    `load()` mais recente é descartado.
    """

    def __init__(self, db):
        self._db = db
        self._lock = threading.RLock()
        self._generation = 0
        self._closed = False
        self.user_profile: Optional[schemas.UserProfile] = None
        self.clinic: Optional[schemas.Clinic] = None
        self.loading = False
        self.error: Optional[Exception] = None

    @property
    def context(self) -> ClinicContext:
        with self._lock:
            if self.error is not None:
                return ClinicContext(user_id=self.user_profile.id if self.user_profile else None)
            return context_from_profile(self.user_profile, self.clinic)

    @property
    def clinic_id(self) -> Optional[str]:
        return self.context.clinic_id

    @property
    def needs_onboarding(self) -> bool:
        with self._lock:
            return not self.loading and self.user_profile is not None and not self.user_profile.clinic_id

    def _begin(self) -> int:
        with self._lock:
            if self._closed:
                raise RuntimeError("Sessão de clínica encerrada.")
            self._generation += 1
            self.loading = True
            self.error = None
            return self._generation

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def load(self, firebase_uid: str, email: str = "", display_name: str = "") -> ClinicContext:
        """Carrega (ou cria) o perfil e depois a clínica vinculada."""
        generation = self._begin()
        try:
            profile = clinicas.buscar_usuario(self._db, firebase_uid)
            if profile is None:
                nome = display_name or (email.split('@')[0] if email else "Usuário")
                profile = clinicas.criar_usuario(self._db, firebase_uid, email=email, display_name=nome)

            clinic = None
            if profile.clinic_id:
                clinic = clinicas.buscar_clinica_por_id(self._db, profile.clinic_id)
        except Exception as e:
            logger.error(f"Erro ao inicializar perfil {firebase_uid}: {e}")
            with self._lock:
                if self._is_current(generation):
                    self.error = e
                    self.loading = False
            return self.context

        with self._lock:
            if not self._is_current(generation):
                logger.info(f"Resultado obsoleto do carregamento de {firebase_uid} descartado")
                return self.context
            self.user_profile = profile
            self.clinic = clinic
            self.loading = False
        return self.context

    def refresh_profile(self) -> None:
        with self._lock:
            profile = self.user_profile
        if profile is None:
            return
        self.load(profile.id, email=profile.email, display_name=profile.display_name)

    def refresh_clinic(self) -> None:
        with self._lock:
            generation = self._generation
            clinic_id = self.user_profile.clinic_id if self.user_profile else None
        if not clinic_id:
            return
        clinic = clinicas.buscar_clinica_por_id(self._db, clinic_id)
        with self._lock:
            if self._is_current(generation):
                self.clinic = clinic

    def create_clinic(self, data: schemas.ClinicCreate, seed: bool = True) -> str:
        """
        Cria a clínica, vincula o usuário como dono e (opcionalmente) semeia dados demo.
        Chamadas independentes, sem rollback: uma falha no meio deixa estado parcial e propaga.
        """
        with self._lock:
            profile = self.user_profile
        if profile is None:
            raise RuntimeError("É preciso estar logado para criar uma clínica.")

        clinic_id = clinicas.criar_clinica(self._db, profile.id, data)
        clinicas.vincular_usuario_clinica(self._db, profile.id, clinic_id, schemas.UserRole.OWNER)
        if seed:
            clinicas.semear_dados_demo(self._db, clinic_id, profile.display_name)

        self.refresh_profile()
        return clinic_id

    def update_clinic_settings(self, settings: schemas.ClinicSettingsUpdate) -> None:
        clinic_id = require_clinic(self.context)
        clinicas.atualizar_configuracoes_clinica(self._db, clinic_id, settings)
        self.refresh_clinic()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._generation += 1
