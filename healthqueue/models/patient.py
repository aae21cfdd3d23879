from sqlalchemy import Boolean, CheckConstraint, Enum, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import mapped_column

from .base import Base, UUIDMixin, TimestampMixin
from .enums import Department, PatientStatus, SymptomSeverity, VisitType
from .types import EncryptedString, UTCDateTime


class Patient(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "patients"
    __table_args__ = (
        CheckConstraint("age >= 0 AND age <= 120", name="ck_patients_age"),
        CheckConstraint("escalation_level >= 0 AND escalation_level <= 2", name="ck_patients_escalation"),
        CheckConstraint("trust_score >= 0 AND trust_score <= 100", name="ck_patients_trust"),
    )

    token_number = mapped_column(String(20), nullable=False, unique=True, index=True)
    name = mapped_column(EncryptedString, nullable=False)
    age = mapped_column(Integer, nullable=False)
    department = mapped_column(Enum(Department, name="department"), nullable=False, index=True)
    symptom = mapped_column(String(100), nullable=False)
    symptom_severity = mapped_column(Enum(SymptomSeverity, name="symptomseverity"), nullable=False)

    is_elderly = mapped_column(Boolean, default=False, nullable=False)
    is_pregnant = mapped_column(Boolean, default=False, nullable=False)
    is_disabled = mapped_column(Boolean, default=False, nullable=False)
    has_chronic_condition = mapped_column(Boolean, default=False, nullable=False)

    visit_type = mapped_column(Enum(VisitType, name="visittype"), default=VisitType.ROUTINE, nullable=False)
    status = mapped_column(
        Enum(PatientStatus, name="patientstatus"), default=PatientStatus.WAITING, nullable=False, index=True
    )
    arrival_time = mapped_column(UTCDateTime, nullable=False)
    escalation_level = mapped_column(Integer, default=0, nullable=False)
    is_emergency = mapped_column(Boolean, default=False, nullable=False)
    is_late_arrival = mapped_column(Boolean, default=False, nullable=False)
    trust_score = mapped_column(Integer, default=50, nullable=False)

    receipt_id = mapped_column(UUID(as_uuid=True), nullable=True)
    prescription_id = mapped_column(UUID(as_uuid=True), nullable=True)
    diagnosis = mapped_column(Text, nullable=True)
    consultation_end_time = mapped_column(UTCDateTime, nullable=True)
