import enum
from sqlalchemy import Enum, String, JSON
from sqlalchemy.orm import mapped_column
from .base import Base, UUIDMixin
from .types import UTCDateTime


class AuditAction(str, enum.Enum):
    REGISTER = "REGISTER"
    STATUS_CHANGE = "STATUS_CHANGE"
    ESCALATE = "ESCALATE"
    FLAG = "FLAG"
    TRANSFER = "TRANSFER"
    REMOVE = "REMOVE"
    CREATE = "CREATE"
    VERIFY = "VERIFY"
    FORWARD = "FORWARD"
    DISPENSE = "DISPENSE"
    SCAN = "SCAN"


class AuditEvent(Base, UUIDMixin):
    __tablename__ = "audit_events"

    actor = mapped_column(String(64), nullable=False)
    action = mapped_column(Enum(AuditAction), nullable=False)
    entity_type = mapped_column(String(64), nullable=False)
    entity_id = mapped_column(String(64), nullable=False)
    details = mapped_column(JSON, nullable=True)
    timestamp = mapped_column(UTCDateTime, nullable=False)
