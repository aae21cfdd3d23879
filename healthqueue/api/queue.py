from fastapi import APIRouter, Depends

from ..models.enums import Department
from ..roles import require_role
from ..services.queue_engine import QueueEngine
from ..services.views import PatientView
from .deps import get_queue_engine

router = APIRouter(prefix="/queue", tags=["queue"])


@router.get("", response_model=list[PatientView])
def get_sorted_queue(
    department: Department | None = None,
    engine: QueueEngine = Depends(get_queue_engine),
):
    return engine.get_sorted_queue(department)


@router.post("/{department}/call-next", response_model=PatientView)
def call_next(
    department: Department,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("call_next")),
):
    return engine.call_next(department, actor=actor)


@router.get("/no-shows", response_model=list[PatientView])
def list_no_shows(
    department: Department | None = None,
    engine: QueueEngine = Depends(get_queue_engine),
):
    return engine.list_no_shows(department)
