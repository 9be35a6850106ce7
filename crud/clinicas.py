# crud/clinicas.py
"""
CRUD para gestão de clínicas e perfis de usuário
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional
from firebase_admin import firestore
import schemas
from crud.utils import add_timestamps, serializar, remover_nulos
from crud import agendamentos

logger = logging.getLogger(__name__)


def buscar_usuario(db: firestore.client, firebase_uid: str) -> Optional[schemas.UserProfile]:
    """Busca o perfil em /users/{uid}."""
    doc = db.collection('users').document(firebase_uid).get()
    if not doc.exists:
        return None
    data = doc.to_dict()
    data['id'] = doc.id
    return schemas.UserProfile.model_validate(data)


def criar_usuario(db: firestore.client, firebase_uid: str, email: str = "", display_name: str = "") -> schemas.UserProfile:
    """Cria o perfil de um usuário recém-autenticado, ainda sem clínica."""
    usuario_dict = {
        'email': email,
        'display_name': display_name,
        'clinic_id': None,
        'role': None,
        'specialty': schemas.Specialty.MEDICINA.value,
    }
    db.collection('users').document(firebase_uid).set(add_timestamps(usuario_dict, is_update=False))
    logger.info(f"Perfil criado para o usuário {firebase_uid}")
    return schemas.UserProfile(id=firebase_uid, **usuario_dict)


def vincular_usuario_clinica(db: firestore.client, firebase_uid: str, clinic_id: str, role: schemas.UserRole) -> None:
    db.collection('users').document(firebase_uid).update(add_timestamps({
        'clinic_id': clinic_id,
        'role': role.value,
    }, is_update=True))
    logger.info(f"Usuário {firebase_uid} vinculado à clínica {clinic_id} como {role.value}")


def buscar_clinica_por_id(db: firestore.client, clinic_id: str) -> Optional[schemas.Clinic]:
    doc = db.collection('clinics').document(clinic_id).get()
    if not doc.exists:
        logger.warning(f"Clínica {clinic_id} não encontrada")
        return None
    data = doc.to_dict()
    data['id'] = doc.id
    return schemas.Clinic.model_validate(data)


def criar_clinica(db: firestore.client, owner_uid: str, clinic_data: schemas.ClinicCreate) -> str:
    """Cria a clínica com configurações padrão quando não informadas."""
    clinica_dict = serializar(clinic_data)
    clinica_dict['owner_id'] = owner_uid
    if not clinica_dict.get('settings'):
        clinica_dict['settings'] = serializar(schemas.ClinicSettings())

    doc_ref = db.collection('clinics').document()
    doc_ref.set(add_timestamps(clinica_dict, is_update=False))
    logger.info(f"Clínica {doc_ref.id} criada pelo usuário {owner_uid}")
    return doc_ref.id


def atualizar_configuracoes_clinica(db: firestore.client, clinic_id: str, settings: schemas.ClinicSettingsUpdate) -> bool:
    clinica = buscar_clinica_por_id(db, clinic_id)
    if clinica is None:
        return False
    atuais = serializar(clinica.settings)
    atuais.update(remover_nulos(serializar(settings, apenas_informados=True)))
    db.collection('clinics').document(clinic_id).update(add_timestamps({'settings': atuais}, is_update=True))
    logger.info(f"Configurações da clínica {clinic_id} atualizadas")
    return True


SEED_APPOINTMENTS = [
    # (dias a partir de hoje, hora, paciente, procedimento, especialidade, status)
    (0, 9, "Maria Silva (Demo)", "Consulta de rotina", schemas.Specialty.MEDICINA, schemas.AppointmentStatus.CONFIRMED),
    (0, 14, "Carlos Mendes (Demo)", "Avaliação nutricional", schemas.Specialty.NUTRICAO, schemas.AppointmentStatus.PENDING),
    (1, 10, "Ana Costa (Demo)", "Sessão de terapia", schemas.Specialty.PSICOLOGIA, schemas.AppointmentStatus.CONFIRMED),
]


def semear_dados_demo(db: firestore.client, clinic_id: str, professional_name: str, hoje: Optional[datetime] = None) -> Dict:
    """Cria agendamentos de demonstração para uma clínica nova."""
    hoje = (hoje or datetime.now()).replace(minute=0, second=0, microsecond=0)
    criados = []
    for indice, (dias, hora, paciente, procedimento, especialidade, status) in enumerate(SEED_APPOINTMENTS):
        dados = schemas.AppointmentCreate(
            patient_id=f"demo-{indice + 1}",
            patient_name=paciente,
            date=(hoje + timedelta(days=dias)).replace(hour=hora),
            procedure=procedimento,
            status=status,
            professional=professional_name,
            specialty=especialidade,
            notes="Demo",
        )
        criados.append(agendamentos.criar_agendamento(db, clinic_id, dados))
    logger.info(f"{len(criados)} agendamentos demo criados na clínica {clinic_id}")
    return {'appointments': criados}
