from uuid import UUID

from fastapi import APIRouter, Depends

from ..roles import require_role
from ..services.queue_engine import QueueEngine
from ..services.views import ReceiptView, ScanOutcome
from .deps import get_queue_engine

router = APIRouter(prefix="/receipts", tags=["receipts"])


@router.get("/{receipt_id}", response_model=ReceiptView)
def get_receipt(receipt_id: UUID, engine: QueueEngine = Depends(get_queue_engine)):
    return engine.get_receipt(receipt_id)


@router.post("/{receipt_id}/scan", response_model=ScanOutcome)
def scan_receipt(
    receipt_id: UUID,
    engine: QueueEngine = Depends(get_queue_engine),
    actor: str = Depends(require_role("view")),
):
    return engine.scan_receipt(receipt_id, actor=actor)
