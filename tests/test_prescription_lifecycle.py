import pytest

from healthqueue.errors import AlreadyDispensed, InvalidTransition, PatientNotFound, PrescriptionNotFound
from healthqueue.models.enums import PrescriptionStatus
from healthqueue.services.views import MedicineEntry

MEDICINES = [
    {"name": "Paracetamol 500mg", "dosage": "500mg", "frequency": "Twice daily", "duration": "3 days"},
]


@pytest.fixture
def prescribed(queue_engine, registration):
    patient = queue_engine.register_patient(registration())
    prescription = queue_engine.create_prescription(
        {"patient_id": patient.id, "diagnosis": "Viral fever", "medicines": MEDICINES}
    )
    return patient, prescription


def test_create_back_links_patient(queue_engine, prescribed, clock):
    patient, prescription = prescribed
    assert prescription.status == PrescriptionStatus.PENDING
    assert prescription.doctor_verified is False
    assert prescription.doctor_department == "General Medicine"
    assert prescription.created_at == clock.now
    assert prescription.medicines == [MedicineEntry(**MEDICINES[0])]
    refreshed = queue_engine.get_patient(patient.id)
    assert refreshed.prescription_id == prescription.id
    assert refreshed.diagnosis == "Viral fever"


def test_scenario_second_dispense_reports_already_dispensed(queue_engine, prescribed, clock):
    _, prescription = prescribed
    queue_engine.verify_prescription(prescription.id)
    clock.advance(5)
    forwarded = queue_engine.forward_prescription(prescription.id)
    assert forwarded.forwarded_at == clock.now
    clock.advance(5)
    dispensed = queue_engine.dispense_medicine(prescription.id)
    first_dispensed_at = dispensed.dispensed_at
    assert first_dispensed_at == clock.now

    clock.advance(5)
    with pytest.raises(AlreadyDispensed) as exc_info:
        queue_engine.dispense_medicine(prescription.id)
    assert exc_info.value.kind == "ALREADY_DISPENSED"
    assert queue_engine.get_prescription(prescription.id).dispensed_at == first_dispensed_at


def test_transitions_are_strictly_sequential(queue_engine, prescribed):
    _, prescription = prescribed
    with pytest.raises(InvalidTransition):
        queue_engine.forward_prescription(prescription.id)
    with pytest.raises(InvalidTransition):
        queue_engine.dispense_medicine(prescription.id)
    queue_engine.verify_prescription(prescription.id)
    with pytest.raises(InvalidTransition):
        queue_engine.verify_prescription(prescription.id)
    with pytest.raises(InvalidTransition):
        queue_engine.dispense_medicine(prescription.id)
    assert queue_engine.get_prescription(prescription.id).forwarded_at is None


def test_forwarded_listing_and_token_lookup(queue_engine, prescribed):
    patient, prescription = prescribed
    assert queue_engine.get_forwarded_prescriptions() == []
    queue_engine.verify_prescription(prescription.id)
    queue_engine.forward_prescription(prescription.id)
    assert [p.id for p in queue_engine.get_forwarded_prescriptions()] == [prescription.id]
    assert queue_engine.get_prescription_by_token(patient.token_number.lower()).id == prescription.id
    with pytest.raises(PrescriptionNotFound):
        queue_engine.get_prescription_by_token("PD-404")


def test_dispensing_refreshes_receipt_snapshot(queue_engine, prescribed):
    patient, prescription = prescribed
    visit = queue_engine.complete_consultation(patient.id)
    assert visit.receipt.prescription_id == prescription.id
    assert visit.receipt.prescription_status == PrescriptionStatus.PENDING

    queue_engine.verify_prescription(prescription.id)
    queue_engine.forward_prescription(prescription.id)
    queue_engine.dispense_medicine(prescription.id)
    assert queue_engine.get_receipt(visit.receipt.id).prescription_status == PrescriptionStatus.DISPENSED


def test_draft_uses_treatment_suggester(queue_engine, registration):
    patient = queue_engine.register_patient(registration(department="orthopedics"))
    draft = queue_engine.draft_prescription(patient.id, "Ankle sprain after fall")
    assert draft.ai_generated is True
    assert draft.doctor_verified is False
    assert draft.status == PrescriptionStatus.PENDING
    assert draft.doctor_department == "Orthopedics"
    assert draft.medicines[0].name == "Diclofenac Gel"


def test_draft_for_unknown_patient_skips_suggester(queue_engine):
    calls = []

    class RecordingSuggester:
        def suggest(self, diagnosis):
            calls.append(diagnosis)
            raise AssertionError("suggester should not be consulted")

    queue_engine.suggester = RecordingSuggester()
    with pytest.raises(PatientNotFound):
        queue_engine.draft_prescription("7f1d2f34-0000-4000-8000-000000000000", "Fever and cough")
    assert calls == []
