from sqlalchemy import Boolean, Enum, ForeignKey, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import mapped_column

from .base import Base, UUIDMixin, utcnow
from .enums import Department, PrescriptionStatus
from .types import EncryptedString, UTCDateTime


class Prescription(Base, UUIDMixin):
    __tablename__ = "prescriptions"

    patient_id = mapped_column(
        UUID(as_uuid=True), ForeignKey("patients.id", ondelete="SET NULL"), nullable=True, index=True
    )
    patient_name = mapped_column(EncryptedString, nullable=False)
    token_number = mapped_column(String(20), nullable=False, index=True)
    department = mapped_column(Enum(Department, name="department"), nullable=False)
    doctor_department = mapped_column(String(100), nullable=False)
    diagnosis = mapped_column(Text, nullable=False)
    # [{name, dosage, frequency, duration, instructions}], kept in prescribing order
    medicines = mapped_column(JSON, nullable=False, default=list)
    status = mapped_column(
        Enum(PrescriptionStatus, name="prescriptionstatus"),
        default=PrescriptionStatus.PENDING,
        nullable=False,
        index=True,
    )
    ai_generated = mapped_column(Boolean, default=False, nullable=False)
    doctor_verified = mapped_column(Boolean, default=False, nullable=False)
    created_at = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    forwarded_at = mapped_column(UTCDateTime, nullable=True)
    dispensed_at = mapped_column(UTCDateTime, nullable=True)
