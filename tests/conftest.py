import pytest
from fastapi.testclient import TestClient

import schemas
from auth import decodificar_token, decodificar_token_ws
from database import get_db
from main import app
from tenant import ClinicContext
from tests.fakes import CLINIC_ID, USER_ID, USER_SEM_CLINICA, FakeFirestore


@pytest.fixture
def db():
    banco = FakeFirestore()
    banco.seed(f"users/{USER_ID}", {
        "email": "dono@clinica.com",
        "display_name": "Dra. Ana",
        "clinic_id": CLINIC_ID,
        "role": "owner",
        "specialty": "medicina",
    })
    banco.seed(f"clinics/{CLINIC_ID}", {
        "name": "Clínica Teste",
        "owner_id": USER_ID,
        "settings": schemas.ClinicSettings().model_dump(mode="json"),
    })
    return banco


@pytest.fixture
def contexto():
    return ClinicContext(clinic_id=CLINIC_ID, timezone="America/Sao_Paulo", user_id=USER_ID)


@pytest.fixture
def contexto_sem_clinica():
    return ClinicContext(user_id=USER_SEM_CLINICA)


@pytest.fixture
def agendamento_payload():
    return {
        "patient_id": "paciente-1",
        "patient_name": "Maria Silva",
        "date": "2025-01-06T09:00:00",
        "duration_min": 30,
        "procedure": "Consulta de rotina",
        "status": "Confirmado",
        "professional": "Dra. Ana",
        "specialty": "medicina",
    }


def _cliente(db, uid):
    claims = {"uid": uid, "email": f"{uid}@clinica.com", "name": uid}
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[decodificar_token] = lambda: claims
    app.dependency_overrides[decodificar_token_ws] = lambda: claims
    return TestClient(app)


@pytest.fixture
def client(db):
    yield _cliente(db, USER_ID)
    app.dependency_overrides.clear()


@pytest.fixture
def client_sem_clinica(db):
    yield _cliente(db, USER_SEM_CLINICA)
    app.dependency_overrides.clear()
