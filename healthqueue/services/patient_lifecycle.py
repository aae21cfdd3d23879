"""Visit state machine: waiting -> called -> consultation -> completed.

``emergency`` is both a flag and, while set through ``mark_emergency``, a
display status. Apart from refusing to act on a visit that has already
completed, any status may take any action.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta

from ..errors import InvalidInput, InvalidTransition
from ..models.enums import Department, PatientStatus
from ..models.patient import Patient
from ..models.receipt import VisitReceipt
from .receipt_integrity import mint_receipt
from .views import PatientRegistration

ESCALATION_LEVELS = (0, 1, 2)

_TRUST_BASE = 70
_TRUST_SPREAD = 40


def generate_trust_score(rng: random.Random) -> int:
    # Simulated until visit history exists: most patients land in 60-80.
    value = _TRUST_BASE + (rng.random() - 0.5) * _TRUST_SPREAD
    return min(100, max(0, round(value)))


def register(registration: PatientRegistration, token: str, now: datetime, trust_score: int) -> Patient:
    return Patient(
        token_number=token,
        name=registration.name,
        age=registration.age,
        department=registration.department,
        symptom=registration.symptom,
        symptom_severity=registration.symptom_severity,
        visit_type=registration.visit_type,
        is_elderly=registration.is_elderly,
        is_pregnant=registration.is_pregnant,
        is_disabled=registration.is_disabled,
        has_chronic_condition=registration.has_chronic_condition,
        status=PatientStatus.WAITING,
        arrival_time=now,
        escalation_level=0,
        is_emergency=False,
        is_late_arrival=False,
        trust_score=trust_score,
    )


def call(patient: Patient) -> Patient:
    require_open(patient, "call")
    if PatientStatus(patient.status) != PatientStatus.WAITING:
        raise InvalidTransition(
            f"Only waiting patients can be called, not {PatientStatus(patient.status).value}",
            {"patient": str(patient.id)},
        )
    patient.status = PatientStatus.CALLED
    return patient


def start_consultation(patient: Patient) -> Patient:
    require_open(patient, "start a consultation for")
    patient.status = PatientStatus.CONSULTATION
    return patient


def complete_consultation(
    patient: Patient,
    now: datetime,
    diagnosis: str | None = None,
    prescription=None,
) -> VisitReceipt:
    """Close the visit and return its newly minted receipt (not yet added to a session)."""
    require_open(patient, "complete")
    if diagnosis:
        patient.diagnosis = diagnosis
    patient.status = PatientStatus.COMPLETED
    patient.consultation_end_time = now
    receipt = mint_receipt(patient, now, prescription)
    patient.receipt_id = receipt.id
    return receipt


def mark_emergency(patient: Patient) -> Patient:
    require_open(patient, "mark emergency for")
    patient.is_emergency = True
    patient.status = PatientStatus.EMERGENCY
    return patient


def resolve_emergency(patient: Patient) -> Patient:
    require_open(patient, "resolve emergency for")
    patient.is_emergency = False
    patient.status = PatientStatus.WAITING
    return patient


def mark_late_arrival(patient: Patient) -> Patient:
    patient.is_late_arrival = True
    return patient


def escalate(patient: Patient, level) -> Patient:
    # Lowering is allowed: staff may overwrite a level they set by mistake.
    if isinstance(level, bool) or not isinstance(level, int) or level not in ESCALATION_LEVELS:
        raise InvalidInput(
            f"Escalation level must be one of {ESCALATION_LEVELS}, got {level!r}",
            {"patient": str(patient.id), "level": repr(level)},
        )
    patient.escalation_level = level
    return patient


def transfer(patient: Patient, department: Department, token: str) -> Patient:
    require_open(patient, "transfer")
    patient.department = Department(department)
    patient.token_number = token
    return patient


def set_status(patient: Patient, status: PatientStatus) -> Patient:
    """Direct staff override for statuses without side effects of their own."""
    require_open(patient, "change status of")
    status = PatientStatus(status)
    if status in (PatientStatus.COMPLETED, PatientStatus.EMERGENCY):
        raise InvalidTransition(
            f"Status {status.value} must go through its own transition",
            {"patient": str(patient.id)},
        )
    patient.status = status
    return patient


def is_no_show(patient, now: datetime, threshold_minutes: int) -> bool:
    if PatientStatus(patient.status) != PatientStatus.WAITING or not patient.is_late_arrival:
        return False
    return now - patient.arrival_time > timedelta(minutes=threshold_minutes)


def require_open(patient: Patient, action: str) -> None:
    if PatientStatus(patient.status) == PatientStatus.COMPLETED:
        raise InvalidTransition(
            f"Cannot {action} a patient whose visit is completed",
            {"patient": str(patient.id)},
        )
