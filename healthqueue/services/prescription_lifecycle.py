from __future__ import annotations

import uuid
from datetime import datetime

from ..errors import AlreadyDispensed, InvalidTransition
from ..models.enums import DEPARTMENT_NAMES, PrescriptionStatus
from ..models.prescription import Prescription
from .views import MedicineEntry


def create_prescription(
    patient,
    diagnosis: str,
    medicines: list[MedicineEntry],
    now: datetime,
    *,
    doctor_department: str | None = None,
    ai_generated: bool = False,
) -> Prescription:
    """Start a prescription in ``pending`` and back-link it onto the patient."""
    prescription = Prescription(
        id=uuid.uuid4(),
        patient_id=patient.id,
        patient_name=patient.name,
        token_number=patient.token_number,
        department=patient.department,
        doctor_department=doctor_department or DEPARTMENT_NAMES[patient.department],
        diagnosis=diagnosis,
        medicines=[m.model_dump() for m in medicines],
        status=PrescriptionStatus.PENDING,
        ai_generated=ai_generated,
        doctor_verified=False,
        created_at=now,
    )
    patient.prescription_id = prescription.id
    patient.diagnosis = diagnosis
    return prescription


def verify(prescription: Prescription) -> Prescription:
    _require(prescription, PrescriptionStatus.PENDING, "verify")
    prescription.doctor_verified = True
    prescription.status = PrescriptionStatus.VERIFIED
    return prescription


def forward(prescription: Prescription, now: datetime) -> Prescription:
    _require(prescription, PrescriptionStatus.VERIFIED, "forward")
    if not prescription.doctor_verified:
        raise InvalidTransition(
            "Prescription must be verified by a doctor before forwarding",
            {"prescription": str(prescription.id)},
        )
    prescription.status = PrescriptionStatus.FORWARDED
    prescription.forwarded_at = now
    return prescription


def dispense(prescription: Prescription, now: datetime) -> Prescription:
    if prescription.status == PrescriptionStatus.DISPENSED:
        raise AlreadyDispensed(prescription.id)
    _require(prescription, PrescriptionStatus.FORWARDED, "dispense")
    prescription.status = PrescriptionStatus.DISPENSED
    prescription.dispensed_at = now
    return prescription


def _require(prescription: Prescription, expected: PrescriptionStatus, action: str) -> None:
    current = PrescriptionStatus(prescription.status)
    if current != expected:
        raise InvalidTransition(
            f"Cannot {action} a prescription in status {current.value}",
            {"prescription": str(prescription.id), "status": current.value, "expected": expected.value},
        )
