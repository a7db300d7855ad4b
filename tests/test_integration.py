"""
Integration tests for the MediSync application.

These tests verify the interactions between `MediSyncService`, the shared `ChatService`,
the adherence helpers and the AI gateway, following the workflows a patient or doctor
goes through in the app.
"""
from medisync import mock_data
from medisync.adherence import adherence_stats, low_stock_medications, todays_tasks
from medisync.chat import ChatService
from medisync.pharmacy import resolve_scan_matches
from medisync.service import MediSyncService

from conftest import FIXED_TODAY


def test_login_loads_seed_records_for_demo_patient(service):
    user = service.login("Sarah.J@example.com", "patient")
    assert user.id == mock_data.PATIENT_ID
    assert service.current_user is user
    assert [m.id for m in service.medications] == ["m1", "m2"]
    assert len(service.logs) == 21


def test_new_patient_starts_empty(service):
    user = service.login("new.person@example.com", "patient")
    assert user.name == "new.person"
    assert service.medications == [] and service.logs == []
    assert service.records_patient_id == user.id


def test_doctor_login_requires_demo_credentials(service):
    assert service.login("someone@clinic.com", "doctor") is None
    assert service.current_user is None
    assert service.login("", "patient") is None

    doctor = service.login("dr.ray@medisync.com", "doctor")
    assert doctor.is_doctor
    assert [p.id for p in service.patients_for(doctor)] == [mock_data.PATIENT_ID]


def test_signup_and_logout(service):
    assert service.signup("", "x@example.com") is None
    user = service.signup("Alex Kim", "alex@example.com")
    assert user.is_patient and service.current_user is user

    service.add_to_cart(service.products[0])
    service.logout()
    assert service.current_user is None
    assert service.cart == []


def test_take_and_skip_doses_update_logs_and_stock(service):
    service.login("new@example.com", "patient")
    med = service.add_medication(service.build_medication(
        "Atorvastatin", "20mg", "Daily", "21:00", "With dinner", prescribed_by="p-new", stock=1))

    log = service.take_dose(med.id, "21:00")
    assert log.scheduled_time == "2024-05-15T21:00:00"
    assert log.status == "taken" and log.taken_time
    assert med.stock == 0

    service.take_dose(med.id, "21:00")
    assert med.stock == 0

    skipped = service.skip_dose(med.id, "21:00")
    assert skipped.status == "skipped" and skipped.taken_time is None
    assert service.take_dose("missing", "21:00") is None

    tasks = todays_tasks(service.medications, service.logs, FIXED_TODAY)
    assert tasks[0].done


def test_refill_through_cart_checkout(patient_service):
    service = patient_service
    lisinopril = service.get_medication("m1")
    assert lisinopril in low_stock_medications(service.medications)

    service.request_refill("m1")
    service.request_refill("m1")
    assert service.cart_count == 2
    assert service.cart_total == 30.0

    order = service.checkout()
    assert order["total"] == 30.0
    assert lisinopril.stock == 4 + 60
    assert service.cart == []
    assert service.checkout() is None


def test_cart_quantity_rules_and_product_stock(patient_service):
    service = patient_service
    paracetamol = service.products[0]
    service.add_to_cart(paracetamol)
    service.add_to_cart(paracetamol, 2)
    assert len(service.cart) == 1 and service.cart_count == 3

    service.update_cart_quantity(paracetamol.id, -10)
    assert service.cart[0].quantity == 1
    assert service.update_cart_quantity("missing", 1) is False

    service.update_cart_quantity(paracetamol.id, 1)
    service.checkout()
    assert paracetamol.stock == 118

    service.add_to_cart(paracetamol)
    assert service.remove_from_cart(paracetamol.id) is True
    assert service.cart == []


def test_prescription_scan_fills_cart(patient_service, make_assistant):
    service = patient_service
    assistant, _, _ = make_assistant([{"productId": "prod-6", "quantity": 2}, {"productId": "prod-9"}])
    service.assistant = assistant

    matches = service.assistant.analyze_prescription_and_match("aW1n", service.products)
    for item in resolve_scan_matches(matches, service.products):
        service.add_to_cart(item["product"], item["quantity"])

    assert service.cart_count == 3
    assert round(service.cart_total, 2) == round(24.99 * 2 + 3.99, 2)


def test_doctor_prescription_reaches_loaded_patient(chat):
    service = MediSyncService(chat, today=lambda: FIXED_TODAY)
    doctor = service.login(mock_data.DOCTOR_EMAIL, "doctor")
    med = service.build_medication("Metoprolol", "25mg", "Daily", ["09:00"], "", prescribed_by=doctor.id)

    assert service.prescribe(med, mock_data.PATIENT_ID) is True
    assert service.get_medication(med.id).stock == 30
    assert service.prescribe(med, "someone-else") is False


def test_doctor_after_new_patient_logout_sees_demo_patient(service):
    """A doctor signing in after another patient's visit works on the demo patient's records."""
    service.login("newbie@example.com", "patient")
    service.logout()

    doctor = service.login(mock_data.DOCTOR_EMAIL, "doctor")
    assert service.records_patient_id == mock_data.PATIENT_ID
    assert [m.id for m in service.medications] == ["m1", "m2"]

    med = service.build_medication("Metoprolol", "25mg", "Daily", ["09:00"], "", prescribed_by=doctor.id)
    assert service.prescribe(med, mock_data.PATIENT_ID) is True


def test_doctor_and_patient_sessions_share_chat(storage, clock):
    chat = ChatService(storage, clock=clock)
    patient_session = MediSyncService(chat, today=lambda: FIXED_TODAY)
    doctor_session = MediSyncService(chat, today=lambda: FIXED_TODAY)
    patient = patient_session.login(mock_data.PATIENT_EMAIL, "patient")
    doctor = doctor_session.login(mock_data.DOCTOR_EMAIL, "doctor")

    patient_session.chat.send_message(patient.id, doctor.id, patient.role, "Dizziness is gone now.")
    history = doctor_session.chat.get_chat_history(doctor.id, patient.id)
    assert history[-1].text == "Dizziness is gone now."
    assert history[-1].sender_role == "patient"

    doctor_session.chat.delete_chat_history(doctor.id, patient.id)
    assert patient_session.chat.get_chat_history(patient.id, doctor.id) == []


def test_chat_history_survives_restart(storage_path, encryptor, clock):
    from medisync.storage import LocalStorage

    first = ChatService(LocalStorage(storage_path, encryptor), clock=clock)
    first.send_message("p1", "d1", "patient", "Persist me")

    second = ChatService(LocalStorage(storage_path, encryptor), clock=clock)
    assert second.get_chat_history("d1", "p1")[-1].text == "Persist me"


def test_profile_and_vitals_updates(patient_service):
    service = patient_service
    assert service.update_profile("Sarah J.", "68.5", "Hypertension, , Asthma", "Penicillin") is True
    details = service.current_user.details
    assert service.current_user.name == "Sarah J."
    assert details.weight == 68.5
    assert details.conditions == ["Hypertension", "Asthma"]
    assert details.allergies == ["Penicillin"]

    vitals = service.simulate_vitals()
    assert service.update_vitals(vitals) is True
    assert details.vitals is vitals and vitals.last_updated


def test_profile_edits_do_not_leak_into_seed_data(patient_service):
    patient_service.update_profile("Renamed")
    assert mock_data.mock_patient().name == "Sarah Jenkins"


def test_update_user_replaces_current_user(patient_service):
    replacement = mock_data.mock_patient()
    replacement.name = "Sarah Replacement"
    patient_service.update_user(replacement)
    assert patient_service.current_user.name == "Sarah Replacement"


def test_adherence_drops_after_skips(patient_service):
    service = patient_service
    before = adherence_stats(service.logs)["adherence"]
    for _ in range(5):
        service.skip_dose("m1", "09:00")
    after = adherence_stats(service.logs)
    assert after["adherence"] < before
    assert after["streak"] == 2
