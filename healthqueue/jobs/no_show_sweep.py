import logging

from ..config import get_settings
from ..database import init_db
from ..logging_config import configure_logging
from ..services.event_bus import DomainEvent, attach_event_relay
from ..services.queue_engine import QueueEngine

logger = logging.getLogger(__name__)


def no_show_sweep(engine: QueueEngine | None = None) -> int:
    """Report late arrivals who never showed up. Removal stays a staff decision."""
    logger.info("Starting no-show sweep")
    engine = engine or QueueEngine()
    no_shows = engine.list_no_shows()
    now = engine.clock()
    for patient in no_shows:
        engine.event_bus.publish(
            DomainEvent(
                name="patient.no_show",
                entity_type="Patient",
                entity_id=str(patient.id),
                occurred_at=now,
                payload={"token": patient.token_number, "department": patient.department.value},
            )
        )
        logger.info("No-show token=%s department=%s", patient.token_number, patient.department.value)
    logger.info("Flagged %s no-show patients", len(no_shows))
    return len(no_shows)


if __name__ == "__main__":
    settings = get_settings()
    configure_logging(settings)
    init_db()
    sweep_engine = QueueEngine()
    attach_event_relay(sweep_engine.event_bus, settings)
    no_show_sweep(sweep_engine)
