from typing import Optional
from uuid import UUID

from pydantic import Field, StrictInt

from ..models.enums import Department, PatientStatus
from ..services.views import StrictModel


class StatusUpdateRequest(StrictModel):
    status: PatientStatus


class EscalateRequest(StrictModel):
    level: StrictInt


class CompleteConsultationRequest(StrictModel):
    diagnosis: Optional[str] = None


class TransferRequest(StrictModel):
    department: Department


class DraftPrescriptionRequest(StrictModel):
    patient_id: UUID
    diagnosis: str = Field(min_length=1)


class WaitEstimateResponse(StrictModel):
    patient_id: UUID
    estimated_wait_minutes: int
