# schemas.py
"""
Schemas Pydantic da agenda multi-clínica.
"""

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from datetime import datetime, date, timezone
from typing import Optional, List
from enum import Enum

import config

# =================================================================================
# ENUMS
# =================================================================================

class AppointmentStatus(str, Enum):
    CONFIRMED = "Confirmado"
    PENDING = "Pendente"
    ARRIVED = "Chegou"
    IN_PROGRESS = "Atendendo"
    FINISHED = "Finalizado"
    CANCELED = "Cancelado"


class Specialty(str, Enum):
    MEDICINA = "medicina"
    NUTRICAO = "nutricao"
    PSICOLOGIA = "psicologia"


class RecurrenceFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class ViewMode(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class FilterKind(str, Enum):
    NONE = "none"
    DATE = "date"
    PATIENT = "patient"


class TaskPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class ClinicPlan(str, Enum):
    SOLO = "solo"
    CLINICA = "clinica"
    BLACK = "black"


class UserRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    PROFESSIONAL = "professional"
    RECEPTIONIST = "receptionist"

# =================================================================================
# RECORRÊNCIA
# =================================================================================

class RecurrenceRule(BaseModel):
    frequency: RecurrenceFrequency
    interval: int = Field(1, ge=1, description="Passo entre ocorrências, em unidades da frequência.")
    count: Optional[int] = Field(None, ge=0, description="Número máximo de ocorrências da série.")
    end_date: Optional[date] = Field(None, description="Último dia (inclusivo) da série.")
    exception_dates: List[date] = Field(default_factory=list, description="Dias pulados na série.")
    days_of_week: Optional[List[int]] = Field(None, description="0=domingo ... 6=sábado (apenas semanal/quinzenal).")

    @field_validator('days_of_week')
    @classmethod
    def _normalizar_dias(cls, dias):
        if not dias:
            return None
        for dia in dias:
            if dia < 0 or dia > 6:
                raise ValueError("Dias da semana devem estar entre 0 (domingo) e 6 (sábado).")
        return sorted(set(dias))


class OccurrenceId(BaseModel):
    """Identidade de uma ocorrência expandida: série + posição na série."""
    model_config = ConfigDict(frozen=True)

    base_id: str
    occurrence_index: int = Field(..., ge=0)

    def key(self) -> str:
        return f"{self.base_id}@{self.occurrence_index}"

# =================================================================================
# SCHEMAS DE AGENDAMENTOS
# =================================================================================

class AppointmentBase(BaseModel):
    patient_id: str
    patient_name: str = ""
    date: datetime
    duration_min: int = Field(config.DEFAULT_APPOINTMENT_DURATION, gt=0)
    procedure: str
    status: AppointmentStatus = AppointmentStatus.PENDING
    professional: str = ""
    specialty: Specialty = Specialty.MEDICINA
    notes: Optional[str] = None
    recurrence: Optional[RecurrenceRule] = None


class AppointmentCreate(AppointmentBase):

    @field_validator('patient_id', 'procedure')
    @classmethod
    def _nao_vazio(cls, valor: str):
        if not valor or not valor.strip():
            raise ValueError("Campo obrigatório não pode ser vazio.")
        return valor.strip()


class AppointmentUpdate(BaseModel):
    patient_id: Optional[str] = None
    patient_name: Optional[str] = None
    date: Optional[datetime] = None
    duration_min: Optional[int] = Field(None, gt=0)
    procedure: Optional[str] = None
    status: Optional[AppointmentStatus] = None
    professional: Optional[str] = None
    specialty: Optional[Specialty] = None
    notes: Optional[str] = None
    recurrence: Optional[RecurrenceRule] = None


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


class Appointment(AppointmentBase):
    id: str
    recurrence_parent_id: Optional[str] = Field(None, description="ID da série, para ocorrências expandidas.")
    occurrence_id: Optional[OccurrenceId] = None

    @property
    def is_occurrence(self) -> bool:
        return self.occurrence_id is not None


class AppointmentCreatedResponse(BaseModel):
    id: str

# =================================================================================
# ASSINATURA, JANELA E NAVEGAÇÃO
# =================================================================================

class SubscriptionFilter(BaseModel):
    """Formato da consulta ativa: todos, por dia ou por paciente. Apenas um por vez."""
    model_config = ConfigDict(frozen=True)

    kind: FilterKind = FilterKind.NONE
    day: Optional[date] = None
    patient_id: Optional[str] = None

    @model_validator(mode='after')
    def _consistente(self):
        if self.kind == FilterKind.DATE and self.day is None:
            raise ValueError("Filtro por data exige o campo 'day'.")
        if self.kind == FilterKind.PATIENT and not self.patient_id:
            raise ValueError("Filtro por paciente exige o campo 'patient_id'.")
        return self

    @classmethod
    def all(cls) -> "SubscriptionFilter":
        return cls()

    @classmethod
    def by_date(cls, day: date) -> "SubscriptionFilter":
        return cls(kind=FilterKind.DATE, day=day)

    @classmethod
    def by_patient(cls, patient_id: str) -> "SubscriptionFilter":
        return cls(kind=FilterKind.PATIENT, patient_id=patient_id)

    @classmethod
    def from_params(cls, day: Optional[date] = None, patient_id: Optional[str] = None) -> "SubscriptionFilter":
        # Paciente tem precedência sobre a data
        if patient_id:
            return cls.by_patient(patient_id)
        if day is not None:
            return cls.by_date(day)
        return cls.all()


class DateWindow(BaseModel):
    """Intervalo semiaberto [start, end)."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode='after')
    def _ordenado(self):
        if (self.start.tzinfo is None) != (self.end.tzinfo is None):
            raise ValueError("Início e fim da janela devem ter (ou não ter) fuso horário.")
        if self.end <= self.start:
            raise ValueError("O fim da janela deve ser posterior ao início.")
        return self

    def align(self, value: datetime) -> datetime:
        """
        Ajusta `value` para ser comparável com os limites da janela.

        Datas sem fuso são horário local da janela. Datas com fuso são
        convertidas para o fuso da janela; numa janela sem fuso, para UTC.
        """
        tz = self.start.tzinfo
        if value.tzinfo is None:
            return value if tz is None else value.replace(tzinfo=tz)
        if tz is None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.astimezone(tz)

    def contains(self, value: datetime) -> bool:
        value = self.align(value)
        return self.start <= value < self.end


class CalendarViewState(BaseModel):
    model_config = ConfigDict(frozen=True)

    anchor_date: date
    view_mode: ViewMode = ViewMode.DAY


class AgendaResponse(BaseModel):
    view_mode: ViewMode
    anchor_date: date
    label: str
    window_start: datetime
    window_end: datetime
    previous_anchor: date
    next_anchor: date
    week_dates: List[date] = Field(default_factory=list)
    statuses: List[AppointmentStatus] = Field(default_factory=list)
    specialties: List[Specialty] = Field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None
    appointments: List[Appointment]

# =================================================================================
# SCHEMAS DE TAREFAS
# =================================================================================

class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    patient_id: Optional[str] = None
    patient_name: Optional[str] = None
    due_date: Optional[date] = None
    created_by: str = ""

    @field_validator('title')
    @classmethod
    def _titulo_obrigatorio(cls, valor: str):
        if not valor or not valor.strip():
            raise ValueError("O título da tarefa é obrigatório.")
        return valor.strip()


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    patient_id: Optional[str] = None
    patient_name: Optional[str] = None
    due_date: Optional[date] = None


class Task(TaskCreate):
    id: str
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

# =================================================================================
# SCHEMAS DE CLÍNICA E USUÁRIO (MULTI-TENANT)
# =================================================================================

class WorkingHours(BaseModel):
    start: str = config.WORKING_HOURS_START
    end: str = config.WORKING_HOURS_END


class ClinicSettings(BaseModel):
    working_hours: WorkingHours = Field(default_factory=WorkingHours)
    default_appointment_duration: int = Field(config.DEFAULT_APPOINTMENT_DURATION, gt=0)
    specialties: List[Specialty] = Field(default_factory=lambda: [Specialty.MEDICINA])
    timezone: str = config.DEFAULT_TIMEZONE


class ClinicSettingsUpdate(BaseModel):
    working_hours: Optional[WorkingHours] = None
    default_appointment_duration: Optional[int] = Field(None, gt=0)
    specialties: Optional[List[Specialty]] = None
    timezone: Optional[str] = None


class ClinicCreate(BaseModel):
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    plan: ClinicPlan = ClinicPlan.SOLO
    settings: Optional[ClinicSettings] = None


class Clinic(BaseModel):
    id: str
    name: str
    owner_id: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    plan: ClinicPlan = ClinicPlan.SOLO
    settings: ClinicSettings = Field(default_factory=ClinicSettings)


class UserProfile(BaseModel):
    id: str = Field(..., description="Firebase UID do usuário.")
    email: str = ""
    display_name: str = ""
    clinic_id: Optional[str] = Field(None, description="Clínica ativa; None enquanto o onboarding não terminou.")
    role: Optional[UserRole] = None
    specialty: Optional[Specialty] = None
