# errors.py
"""
Hierarquia de erros da agenda.

- Pré-condição: falta um identificador de escopo (clínica, paciente). Lançado antes de qualquer chamada ao Firestore.
- Backend: falha vinda do Firestore (promessa rejeitada ou canal de erro da assinatura).
- Validação: campos obrigatórios vazios, detectados antes do envio.
"""


class PreconditionError(Exception):
    """Um identificador de escopo obrigatório está ausente."""


class ClinicNotSelectedError(PreconditionError):
    def __init__(self, message: str = "Nenhuma clínica selecionada."):
        super().__init__(message)


class PatientNotSelectedError(PreconditionError):
    def __init__(self, message: str = "Nenhum paciente selecionado."):
        super().__init__(message)


class BackendError(Exception):
    """Erro de operação no backend, guardando a exceção original em __cause__."""


class SubscriptionError(BackendError):
    """Erro entregue pelo canal de erro de uma assinatura em tempo real."""


class AppointmentValidationError(ValueError):
    def __init__(self, missing_fields):
        self.missing_fields = list(missing_fields)
        super().__init__(f"Campos obrigatórios não preenchidos: {', '.join(self.missing_fields)}")
