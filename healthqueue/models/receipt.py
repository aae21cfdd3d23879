from sqlalchemy import Enum, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import mapped_column

from .base import Base, UUIDMixin, utcnow
from .enums import Department, PrescriptionStatus, ReceiptStatus, VisitType
from .types import EncryptedString, UTCDateTime


class VisitReceipt(Base, UUIDMixin):
    __tablename__ = "receipts"

    patient_id = mapped_column(
        UUID(as_uuid=True), ForeignKey("patients.id", ondelete="SET NULL"), nullable=True, index=True
    )
    patient_name = mapped_column(EncryptedString, nullable=False)
    token_number = mapped_column(String(20), nullable=False, index=True)
    department = mapped_column(Enum(Department, name="department"), nullable=False)
    visit_date = mapped_column(UTCDateTime, nullable=False)
    doctor_role = mapped_column(String(100), nullable=False)
    visit_type = mapped_column(Enum(VisitType, name="visittype"), nullable=False)
    diagnosis = mapped_column(Text, nullable=True)
    prescription_id = mapped_column(UUID(as_uuid=True), ForeignKey("prescriptions.id"), nullable=True)
    prescription_status = mapped_column(Enum(PrescriptionStatus, name="prescriptionstatus"), nullable=True)
    status = mapped_column(
        Enum(ReceiptStatus, name="receiptstatus"), default=ReceiptStatus.ACTIVE, nullable=False
    )
    scan_count = mapped_column(Integer, default=0, nullable=False)
    created_at = mapped_column(UTCDateTime, default=utcnow, nullable=False)
