import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import get_settings
from .logging_config import configure_logging
from .database import init_db
from .errors import QueueError
from .services.event_bus import attach_event_relay
from .services.queue_engine import QueueEngine
from .api.health import router as health_router
from .api.patients import router as patients_router
from .api.queue import router as queue_router
from .api.prescriptions import router as prescriptions_router
from .api.receipts import router as receipts_router

logger = logging.getLogger(__name__)


def create_app(queue_engine: QueueEngine | None = None) -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(title="HealthQueue", version="0.1.0")
    app.state.queue_engine = queue_engine

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(QueueError)
    async def queue_error_handler(request: Request, exc: QueueError):
        if exc.status_code >= 500:
            logger.error("%s: %s", exc.kind, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.kind, "detail": exc.message},
        )

    @app.on_event("startup")
    def startup() -> None:
        init_db()
        if app.state.queue_engine is None:
            app.state.queue_engine = QueueEngine(settings=settings)
        engine = app.state.queue_engine
        engine.initialize()
        attach_event_relay(engine.event_bus, settings)

    app.include_router(health_router, prefix="/api/v1")
    app.include_router(patients_router, prefix="/api/v1")
    app.include_router(queue_router, prefix="/api/v1")
    app.include_router(prescriptions_router, prefix="/api/v1")
    app.include_router(receipts_router, prefix="/api/v1")

    return app


app = create_app()
