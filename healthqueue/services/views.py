"""Inputs accepted by the queue engine and the read-only snapshots it returns.

Snapshots are frozen copies taken inside the engine's session; callers never
hold live ORM rows. None of them carry the priority score.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.enums import (
    Department,
    PatientStatus,
    PrescriptionStatus,
    ReceiptStatus,
    SymptomSeverity,
    VisitType,
)


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class PatientRegistration(StrictModel):
    name: str = Field(min_length=1, max_length=255)
    age: int = Field(ge=0, le=120)
    department: Department
    symptom: str = Field(min_length=1, max_length=100)
    symptom_severity: SymptomSeverity
    visit_type: VisitType = VisitType.ROUTINE
    is_elderly: bool = False
    is_pregnant: bool = False
    is_disabled: bool = False
    has_chronic_condition: bool = False

    @field_validator("name", "symptom")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class MedicineEntry(StrictModel):
    name: str
    dosage: str = ""
    frequency: str = ""
    duration: str = ""
    instructions: str = ""


class PrescriptionCreate(StrictModel):
    patient_id: UUID
    diagnosis: str = Field(min_length=1)
    medicines: list[MedicineEntry] = Field(default_factory=list)
    doctor_department: Optional[str] = None
    ai_generated: bool = False


class _Snapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)


class PatientView(_Snapshot):
    id: UUID
    token_number: str
    name: str
    age: int
    department: Department
    symptom: str
    symptom_severity: SymptomSeverity
    visit_type: VisitType
    is_elderly: bool
    is_pregnant: bool
    is_disabled: bool
    has_chronic_condition: bool
    status: PatientStatus
    arrival_time: datetime
    escalation_level: int
    is_emergency: bool
    is_late_arrival: bool
    trust_score: int
    receipt_id: Optional[UUID] = None
    prescription_id: Optional[UUID] = None
    diagnosis: Optional[str] = None
    consultation_end_time: Optional[datetime] = None


class PrescriptionView(_Snapshot):
    id: UUID
    patient_id: Optional[UUID] = None
    patient_name: str
    token_number: str
    department: Department
    doctor_department: str
    diagnosis: str
    medicines: list[MedicineEntry]
    status: PrescriptionStatus
    ai_generated: bool
    doctor_verified: bool
    created_at: datetime
    forwarded_at: Optional[datetime] = None
    dispensed_at: Optional[datetime] = None


class ReceiptView(_Snapshot):
    id: UUID
    patient_id: Optional[UUID] = None
    patient_name: str
    token_number: str
    department: Department
    visit_date: datetime
    doctor_role: str
    visit_type: VisitType
    diagnosis: Optional[str] = None
    prescription_id: Optional[UUID] = None
    prescription_status: Optional[PrescriptionStatus] = None
    status: ReceiptStatus
    scan_count: int
    created_at: datetime


class ScanOutcome(_Snapshot):
    receipt: ReceiptView
    fraud_detected: bool


class TreatmentSuggestion(_Snapshot):
    medicines: list[MedicineEntry]
    confidence: float = Field(ge=0.0, le=1.0)


class CompletedVisit(_Snapshot):
    patient: PatientView
    receipt: ReceiptView
