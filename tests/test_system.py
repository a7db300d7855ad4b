"""
System-level tests for the MediSync application.

These tests walk through complete patient and doctor journeys across several sessions
sharing one encrypted chat store, then verify the state of every component afterwards.
"""
import datetime

from medisync import mock_data
from medisync.adherence import adherence_stats, weekly_adherence
from medisync.chat import ChatService
from medisync.storage import LocalStorage
from medisync.service import MediSyncService

from conftest import FIXED_TODAY, FakeClock


def test_end_to_end_patient_and_doctor_day(storage_path, encryptor, make_assistant):
    """
    Covers: patient login, AI interaction check, reminders, dose logging, refill checkout,
    AI-assisted chat between patient and doctor, a doctor prescription, chat deletion and
    persistence of the chat store across a restart.
    """
    clock = FakeClock()
    chat = ChatService(LocalStorage(storage_path, encryptor), clock=clock)

    assistant, model, _ = make_assistant(
        {"hasInteractions": True, "summary": "Moderate: Lisinopril may add to Metformin's effect on kidneys."},
        ["Thank you, doctor.", "I will monitor it.", "Should I call you?"],
        ["Please keep a BP diary.", "Any other symptoms?", "Good to hear."],
    )

    patient_session = MediSyncService(chat, assistant, today=lambda: FIXED_TODAY)
    patient = patient_session.login(mock_data.PATIENT_EMAIL, "patient")

    report = patient_session.assistant.check_drug_interactions(patient_session.medications)
    assert report.has_interactions
    assert report.summary.startswith("Moderate:")

    due = patient_session.reminders.check(
        patient_session.medications, patient_session.logs, datetime.datetime(2024, 5, 15, 20, 0))
    assert [r.medication_id for r in due] == ["m2"]
    patient_session.take_dose("m2", "20:00")
    assert patient_session.get_medication("m2").stock == 44

    patient_session.request_refill("m1")
    order = patient_session.checkout()
    assert order["items"] == [("Lisinopril", 1)]
    assert patient_session.get_medication("m1").stock == 34

    history = patient_session.chat.get_chat_history(patient.id, mock_data.DOCTOR_ID)
    replies = patient_session.assistant.generate_smart_replies(history[-1].text, "patient")
    patient_session.chat.send_message(patient.id, mock_data.DOCTOR_ID, "patient", replies[0])

    doctor_session = MediSyncService(chat, assistant, today=lambda: FIXED_TODAY)
    doctor = doctor_session.login(mock_data.DOCTOR_EMAIL, "doctor")
    assert doctor_session.chat.list_conversation_partners(doctor.id) == [patient.id]
    thread = doctor_session.chat.get_chat_history(doctor.id, patient.id)
    assert thread[-1].text == "Thank you, doctor."

    doctor_replies = doctor_session.assistant.generate_smart_replies(thread[-1].text, "doctor")
    doctor_session.chat.send_message(doctor.id, patient.id, "doctor", doctor_replies[0])
    assert len(model.calls) == 3

    med = doctor_session.build_medication("Metoprolol", "25mg", "Daily", ["07:00"], "Morning", doctor.id)
    assert doctor_session.prescribe(med, patient.id)
    # Records are per session: the patient's own list is unchanged.
    assert patient_session.get_medication(med.id) is None

    restarted = ChatService(LocalStorage(storage_path, encryptor), clock=clock)
    restored = restarted.get_chat_history(patient.id, doctor.id)
    assert [m.text for m in restored][-2:] == ["Thank you, doctor.", "Please keep a BP diary."]

    assert restarted.delete_chat_history(patient.id, doctor.id) == 4
    assert restarted.get_chat_history(patient.id, doctor.id) == []
    assert restarted.list_conversation_partners(doctor.id) == []

    stats = adherence_stats(patient_session.logs)
    assert stats["adherence"] == round(20 / 22 * 100)
    assert weekly_adherence(patient_session.logs, FIXED_TODAY)[-1]["taken"] == 3

    patient_session.logout()
    assert patient_session.current_user is None
    assert patient_session.cart == []
