from uuid import UUID

from fastapi import APIRouter, Depends, Header, Request, Response, status

from ..roles import check_role, escalation_action, require_role
from ..services.queue_engine import QueueEngine
from ..services.views import CompletedVisit, PatientRegistration, PatientView
from .deps import get_queue_engine
from .schemas import (
    CompleteConsultationRequest,
    EscalateRequest,
    StatusUpdateRequest,
    TransferRequest,
    WaitEstimateResponse,
)

router = APIRouter(prefix="/patients", tags=["patients"])


@router.post("", response_model=PatientView, status_code=status.HTTP_201_CREATED)
def register_patient(
    payload: PatientRegistration,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("view")),
):
    return engine.register_patient(payload, actor=actor)


@router.get("/by-token/{token}", response_model=PatientView)
def get_patient_by_token(token: str, engine: QueueEngine = Depends(get_queue_engine)):
    return engine.get_patient_by_token(token)


@router.get("/{patient_id}", response_model=PatientView)
def get_patient(patient_id: UUID, engine: QueueEngine = Depends(get_queue_engine)):
    return engine.get_patient(patient_id)


@router.get("/{patient_id}/wait", response_model=WaitEstimateResponse)
def get_estimated_wait(patient_id: UUID, engine: QueueEngine = Depends(get_queue_engine)):
    minutes = engine.get_estimated_wait(patient_id)
    return WaitEstimateResponse(patient_id=patient_id, estimated_wait_minutes=minutes)


@router.post("/{patient_id}/status", response_model=PatientView)
def update_status(
    patient_id: UUID,
    payload: StatusUpdateRequest,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("view")),
):
    return engine.update_status(patient_id, payload.status, actor=actor)


@router.post("/{patient_id}/emergency", response_model=PatientView)
def mark_emergency(
    patient_id: UUID,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("mark_emergency")),
):
    return engine.mark_emergency(patient_id, actor=actor)


@router.post("/{patient_id}/emergency/resolve", response_model=PatientView)
def resolve_emergency(
    patient_id: UUID,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("resolve_emergency")),
):
    return engine.resolve_emergency(patient_id, actor=actor)


@router.post("/{patient_id}/late", response_model=PatientView)
def mark_late_arrival(
    patient_id: UUID,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("mark_late")),
):
    return engine.mark_late_arrival(patient_id, actor=actor)


@router.post("/{patient_id}/escalate", response_model=PatientView)
def escalate(
    patient_id: UUID,
    payload: EscalateRequest,
    request: Request,
    engine: QueueEngine = Depends(get_queue_engine),
    x_staff_role: str | None = Header(default=None),
):
    # The required permission depends on the requested level.
    check_role(x_staff_role, escalation_action(payload.level), getattr(request.state, "request_id", None))
    actor = x_staff_role.lower() if x_staff_role else "SYSTEM"
    return engine.escalate(patient_id, payload.level, actor=actor)


@router.post("/{patient_id}/consultation/start", response_model=PatientView)
def start_consultation(
    patient_id: UUID,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("start_consultation")),
):
    return engine.start_consultation(patient_id, actor=actor)


@router.post("/{patient_id}/consultation/complete", response_model=CompletedVisit)
def complete_consultation(
    patient_id: UUID,
    payload: CompleteConsultationRequest | None = None,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("complete")),
):
    diagnosis = payload.diagnosis if payload else None
    return engine.complete_consultation(patient_id, diagnosis, actor=actor)


@router.post("/{patient_id}/transfer", response_model=PatientView)
def transfer_department(
    patient_id: UUID,
    payload: TransferRequest,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("transfer")),
):
    return engine.transfer_department(patient_id, payload.department, actor=actor)


@router.delete("/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_patient(
    patient_id: UUID,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("view")),
):
    engine.remove_patient(patient_id, actor=actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
