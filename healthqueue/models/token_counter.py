from sqlalchemy import Enum, Integer
from sqlalchemy.orm import mapped_column

from .base import Base, utcnow
from .enums import Department
from .types import UTCDateTime


class TokenCounter(Base):
    __tablename__ = "token_counters"

    department = mapped_column(Enum(Department, name="department"), primary_key=True)
    counter = mapped_column(Integer, default=0, nullable=False)
    updated_at = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
