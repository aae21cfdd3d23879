from .base import Base
from .enums import (
    Department,
    DEPARTMENT_NAMES,
    DEPARTMENT_PREFIXES,
    PatientStatus,
    PrescriptionStatus,
    ReceiptStatus,
    SymptomSeverity,
    VisitType,
)
from .patient import Patient
from .prescription import Prescription
from .receipt import VisitReceipt
from .token_counter import TokenCounter
from .audit import AuditEvent, AuditAction

__all__ = [
    "Base",
    "Department",
    "DEPARTMENT_NAMES",
    "DEPARTMENT_PREFIXES",
    "PatientStatus",
    "PrescriptionStatus",
    "ReceiptStatus",
    "SymptomSeverity",
    "VisitType",
    "Patient",
    "Prescription",
    "VisitReceipt",
    "TokenCounter",
    "AuditEvent",
    "AuditAction",
]
