from datetime import date, datetime, timezone

import pytest

import schemas
from errors import AppointmentValidationError, BackendError, ClinicNotSelectedError, PatientNotSelectedError
from stores import AppointmentStore, PatientCollectionStore, TaskStore
from tenant import ClinicContext


def _novo_agendamento(**kwargs):
    dados = {
        "patient_id": "paciente-1",
        "patient_name": "Maria Silva",
        "date": datetime(2025, 1, 6, 9, 0),
        "procedure": "Consulta",
    }
    dados.update(kwargs)
    return schemas.AppointmentCreate(**dados)


def test_criar_agendamento_sem_clinica_falha_sem_chamar_o_firestore(db, contexto_sem_clinica):
    store = AppointmentStore(contexto_sem_clinica, db)

    with pytest.raises(ClinicNotSelectedError):
        store.add_appointment(_novo_agendamento())

    assert db.operations == []
    assert store.appointments == []
    assert store.loading is False


def test_todas_as_mutacoes_exigem_clinica(db, contexto_sem_clinica):
    store = AppointmentStore(contexto_sem_clinica, db)
    ocorrencia = schemas.OccurrenceId(base_id="a", occurrence_index=0)
    chamadas = [
        lambda: store.update_appointment("a", {"notes": "x"}),
        lambda: store.update_status("a", schemas.AppointmentStatus.FINISHED),
        lambda: store.delete_appointment("a"),
        lambda: store.cancel_occurrence(ocorrencia),
        lambda: store.detach_occurrence(ocorrencia, {"notes": "x"}),
    ]
    for chamada in chamadas:
        with pytest.raises(ClinicNotSelectedError):
            chamada()
    assert db.operations == []


def test_campos_obrigatorios_validados_antes_do_envio(db, contexto):
    store = AppointmentStore(contexto, db)
    operacoes_antes = list(db.operations)

    with pytest.raises(AppointmentValidationError) as erro:
        store.add_appointment({"patient_id": "", "date": "2025-01-06T09:00:00", "procedure": " "})

    assert erro.value.missing_fields == ["patient_id", "procedure"]
    assert db.operations == operacoes_antes


def test_mutacao_reflete_pela_assinatura(db, contexto):
    store = AppointmentStore(contexto, db)
    assert store.loading is False
    assert store.appointments == []

    appointment_id = store.add_appointment(_novo_agendamento())
    assert [a.id for a in store.appointments] == [appointment_id]

    store.update_status(appointment_id, schemas.AppointmentStatus.ARRIVED)
    assert store.appointments[0].status == schemas.AppointmentStatus.ARRIVED

    assert store.delete_appointment(appointment_id) is True
    assert store.appointments == []
    store.close()


def test_filtro_por_data_e_por_paciente(db, contexto):
    store = AppointmentStore(contexto, db)
    store.add_appointment(_novo_agendamento(date=datetime(2025, 1, 6, 9, 0)))
    store.add_appointment(_novo_agendamento(date=datetime(2025, 1, 7, 9, 0), patient_id="paciente-2"))

    store.set_filters(schemas.SubscriptionFilter.by_date(date(2025, 1, 7)))
    assert [a.patient_id for a in store.appointments] == ["paciente-2"]

    store.set_filters(schemas.SubscriptionFilter.by_patient("paciente-1"))
    assert [a.date.date() for a in store.appointments] == [date(2025, 1, 6)]

    store.clear_filters()
    assert len(store.appointments) == 2
    assert db.active_listeners == 1
    store.close()


def test_todays_appointments_inclui_ocorrencias(db, contexto):
    store = AppointmentStore(contexto, db)
    store.add_appointment(_novo_agendamento(
        date=datetime(2025, 1, 1, 8, 0),
        recurrence=schemas.RecurrenceRule(frequency=schemas.RecurrenceFrequency.WEEKLY),
    ))
    store.add_appointment(_novo_agendamento(date=datetime(2025, 1, 8, 11, 0)))
    store.add_appointment(_novo_agendamento(date=datetime(2025, 1, 9, 11, 0)))

    hoje = store.todays_appointments(now=datetime(2025, 1, 8, 12, 0, tzinfo=contexto.tz))

    assert [a.date for a in hoje] == [datetime(2025, 1, 8, 8, 0), datetime(2025, 1, 8, 11, 0)]
    assert hoje[0].is_occurrence


def test_hoje_com_datas_com_e_sem_fuso(db, contexto):
    store = AppointmentStore(contexto, db)
    store.add_appointment(_novo_agendamento(patient_id="local", date=datetime(2025, 1, 8, 11, 0)))
    # 13:00 UTC = 10:00 em São Paulo
    store.add_appointment(_novo_agendamento(patient_id="utc", date=datetime(2025, 1, 8, 13, 0, tzinfo=timezone.utc)))
    # 01:00 UTC do dia 8 ainda é dia 7 em São Paulo
    store.add_appointment(_novo_agendamento(patient_id="ontem", date=datetime(2025, 1, 8, 1, 0, tzinfo=timezone.utc)))

    hoje = store.todays_appointments(now=datetime(2025, 1, 8, 12, 0, tzinfo=contexto.tz))

    assert [a.patient_id for a in hoje] == ["utc", "local"]
    store.close()


def test_filtro_por_data_usa_o_dia_da_clinica(db, contexto):
    store = AppointmentStore(contexto, db)
    store.add_appointment(_novo_agendamento(patient_id="noite", date=datetime(2025, 1, 2, 1, 0, tzinfo=timezone.utc)))
    store.add_appointment(_novo_agendamento(patient_id="dia-2", date=datetime(2025, 1, 2, 0, 30)))
    store.add_appointment(_novo_agendamento(patient_id="dia-1", date=datetime(2025, 1, 1, 8, 0)))

    store.set_filters(schemas.SubscriptionFilter.by_date(date(2025, 1, 1)))

    assert [a.patient_id for a in store.appointments] == ["dia-1", "noite"]
    store.close()


def test_trocar_de_clinica_reassina(db, contexto):
    store = AppointmentStore(ClinicContext(), db)
    assert db.active_listeners == 0

    store.set_context(contexto)
    assert db.active_listeners == 1

    store.set_context(ClinicContext())
    assert db.active_listeners == 0
    assert store.appointments == []


def test_cancelar_e_destacar_ocorrencia(db, contexto):
    store = AppointmentStore(contexto, db)
    serie_id = store.add_appointment(_novo_agendamento(
        date=datetime(2025, 1, 1, 8, 0),
        recurrence=schemas.RecurrenceRule(frequency=schemas.RecurrenceFrequency.WEEKLY),
    ))

    serie = store.cancel_occurrence(schemas.OccurrenceId(base_id=serie_id, occurrence_index=1))
    assert serie.recurrence.exception_dates == [date(2025, 1, 8)]

    novo_id = store.detach_occurrence(schemas.OccurrenceId(base_id=serie_id, occurrence_index=2),
                                      {"date": "2025-01-15T10:30:00", "notes": "Remarcado"})
    avulso = next(a for a in store.appointments if a.id == novo_id)
    assert avulso.recurrence is None
    assert avulso.date == datetime(2025, 1, 15, 10, 30)
    assert avulso.notes == "Remarcado"
    serie = next(a for a in store.appointments if a.id == serie_id)
    assert serie.recurrence.exception_dates == [date(2025, 1, 8), date(2025, 1, 15)]
    store.close()


def test_falha_do_firestore_vira_backend_error(db, contexto, monkeypatch):
    store = AppointmentStore(contexto, db)

    def quebrar(*args, **kwargs):
        raise ConnectionError("sem rede")
    monkeypatch.setattr("crud.criar_agendamento", quebrar)

    with pytest.raises(BackendError) as erro:
        store.add_appointment(_novo_agendamento())
    assert isinstance(erro.value.__cause__, ConnectionError)
    assert store.appointments == []


def test_documento_invalido_vira_erro_da_assinatura(db, contexto):
    db.seed(f"clinics/{contexto.clinic_id}/appointments/quebrado", {"patient_id": "p", "date": "2025-01-06T09:00:00"})

    store = AppointmentStore(contexto, db)

    assert store.error is not None
    assert store.loading is False
    assert store.appointments == []


def test_tarefas_ordenadas_e_conclusao(db, contexto):
    store = TaskStore(contexto, db)
    baixa = store.add_task({"title": "Ligar para paciente", "priority": "low"})
    alta = store.add_task({"title": "Revisar exames", "priority": "high", "due_date": "2025-01-10"})

    assert [t.id for t in store.tasks] == [alta, baixa]
    assert store.tasks[0].created_by == contexto.user_id

    concluida = store.toggle_complete(alta)
    assert concluida.status == schemas.TaskStatus.COMPLETED
    assert concluida.completed_at is not None
    assert [t.id for t in store.pending_tasks] == [baixa]
    assert [t.id for t in store.completed_tasks] == [alta]

    reaberta = store.toggle_complete(alta)
    assert reaberta.completed_at is None
    store.close()


def test_colecao_por_paciente(db, contexto):
    store = PatientCollectionStore(contexto, db, "prescriptions")
    assert store.loading is False
    assert db.active_listeners == 0
    with pytest.raises(PatientNotSelectedError):
        store.add({"medication": "Dipirona"})

    store.set_patient("paciente-1")
    store.add({"medication": "Dipirona"})
    assert [i["medication"] for i in store.items] == ["Dipirona"]
    assert store.items[0]["patient_id"] == "paciente-1"

    store.set_patient("paciente-2")
    assert store.items == []
    assert db.active_listeners == 1
    store.close()
    assert db.active_listeners == 0


def test_colecao_desconhecida(db, contexto):
    with pytest.raises(ValueError):
        PatientCollectionStore(contexto, db, "feed")
