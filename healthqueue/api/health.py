from fastapi import APIRouter, Depends
from sqlalchemy import text

from ..services.queue_engine import QueueEngine
from .deps import get_queue_engine

router = APIRouter(tags=["health"])


@router.get("/health")
def health(engine: QueueEngine = Depends(get_queue_engine)):
    with engine.SessionLocal() as db:
        db.execute(text("SELECT 1"))
    return {"status": "ok"}
