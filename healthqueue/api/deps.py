from fastapi import Request

from ..services.queue_engine import QueueEngine


def get_queue_engine(request: Request) -> QueueEngine:
    return request.app.state.queue_engine
