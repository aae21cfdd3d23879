from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from ..models.enums import DEPARTMENT_NAMES, Department, ReceiptStatus
from ..models.receipt import VisitReceipt

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    receipt: VisitReceipt
    fraud_detected: bool


def doctor_role_label(department: Department) -> str:
    return f"{DEPARTMENT_NAMES[Department(department)]} Physician"


def mint_receipt(patient, now: datetime, prescription=None) -> VisitReceipt:
    """Build the proof-of-visit receipt for a patient whose consultation just ended."""
    return VisitReceipt(
        id=uuid.uuid4(),
        patient_id=patient.id,
        patient_name=patient.name,
        token_number=patient.token_number,
        department=patient.department,
        visit_date=now,
        doctor_role=doctor_role_label(patient.department),
        visit_type=patient.visit_type,
        diagnosis=patient.diagnosis,
        prescription_id=getattr(prescription, "id", None),
        prescription_status=getattr(prescription, "status", None),
        status=ReceiptStatus.ACTIVE,
        scan_count=0,
        created_at=now,
    )


def scan(receipt: VisitReceipt) -> ScanResult:
    """Count a scan. Any scan after the first marks the receipt fulfilled and flags reuse.

    The flag is advisory: the scan is still recorded and the caller decides
    what to do with a reused receipt.
    """
    prior_count = receipt.scan_count or 0
    receipt.scan_count = prior_count + 1
    fraud_detected = prior_count >= 1
    if fraud_detected:
        receipt.status = ReceiptStatus.FULFILLED
        logger.warning(
            "Receipt reuse detected token=%s scans=%s", receipt.token_number, receipt.scan_count
        )
    return ScanResult(receipt=receipt, fraud_detected=fraud_detected)
