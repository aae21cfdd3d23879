from uuid import UUID

from fastapi import APIRouter, Depends, status

from ..roles import require_role
from ..services.queue_engine import QueueEngine
from ..services.views import PrescriptionCreate, PrescriptionView
from .deps import get_queue_engine
from .schemas import DraftPrescriptionRequest

router = APIRouter(prefix="/prescriptions", tags=["prescriptions"])


@router.post("", response_model=PrescriptionView, status_code=status.HTTP_201_CREATED)
def create_prescription(
    payload: PrescriptionCreate,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("create_prescription")),
):
    return engine.create_prescription(payload, actor=actor)


@router.post("/draft", response_model=PrescriptionView, status_code=status.HTTP_201_CREATED)
def draft_prescription(
    payload: DraftPrescriptionRequest,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("create_prescription")),
):
    return engine.draft_prescription(payload.patient_id, payload.diagnosis, actor=actor)


@router.get("/forwarded", response_model=list[PrescriptionView])
def get_forwarded_prescriptions(engine: QueueEngine = Depends(get_queue_engine)):
    return engine.get_forwarded_prescriptions()


@router.get("/by-token/{token}", response_model=PrescriptionView)
def get_prescription_by_token(token: str, engine: QueueEngine = Depends(get_queue_engine)):
    return engine.get_prescription_by_token(token)


@router.get("/{prescription_id}", response_model=PrescriptionView)
def get_prescription(prescription_id: UUID, engine: QueueEngine = Depends(get_queue_engine)):
    return engine.get_prescription(prescription_id)


@router.post("/{prescription_id}/verify", response_model=PrescriptionView)
def verify_prescription(
    prescription_id: UUID,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("verify_prescription")),
):
    return engine.verify_prescription(prescription_id, actor=actor)


@router.post("/{prescription_id}/forward", response_model=PrescriptionView)
def forward_prescription(
    prescription_id: UUID,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("forward_prescription")),
):
    return engine.forward_prescription(prescription_id, actor=actor)


@router.post("/{prescription_id}/dispense", response_model=PrescriptionView)
def dispense_medicine(
    prescription_id: UUID,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("dispense")),
):
    return engine.dispense_medicine(prescription_id, actor=actor)
