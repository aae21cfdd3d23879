from __future__ import annotations

import logging
import threading

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from ..errors import ConcurrencyConflict, CounterStateError
from ..models.enums import DEPARTMENT_PREFIXES, Department
from ..models.token_counter import TokenCounter

logger = logging.getLogger(__name__)


def format_token(department: Department, counter: int) -> str:
    return f"{DEPARTMENT_PREFIXES[Department(department)]}-{counter:03d}"


def ensure_token_counters(db: Session) -> int:
    """Seed a zero counter for every department that lacks one."""
    existing = set(db.scalars(select(TokenCounter.department)).all())
    created = 0
    for department in Department:
        if department not in existing:
            db.add(TokenCounter(department=department, counter=0))
            created += 1
    if created:
        db.flush()
    return created


class TokenAllocator:
    """Issues ``<PREFIX>-<NNN>`` tokens from the per-department counters.

    The increment runs as one ``UPDATE ... SET counter = counter + 1`` and the
    new value is read back inside the same transaction, so the row stays
    write-locked until the caller commits. A per-department lock also keeps
    threads in this process from racing each other for the row.
    """

    def __init__(self) -> None:
        self._locks = {department: threading.Lock() for department in Department}

    def next_token(self, db: Session, department: Department) -> str:
        department = Department(department)
        with self._locks[department]:
            counter = self._increment(db, department)
        token = format_token(department, counter)
        logger.debug("Allocated token %s", token)
        return token

    def _increment(self, db: Session, department: Department) -> int:
        try:
            result = db.execute(
                update(TokenCounter)
                .where(TokenCounter.department == department)
                .values(counter=TokenCounter.counter + 1)
                .execution_options(synchronize_session=False)
            )
        except DBAPIError as exc:
            raise ConcurrencyConflict(
                f"Token counter update failed for {department.value}",
                {"department": department.value},
            ) from exc

        if result.rowcount != 1:
            raise CounterStateError(f"No token counter row for {department.value}")

        counter = db.scalar(
            select(TokenCounter.counter).where(TokenCounter.department == department)
        )
        if counter is None or counter < 1:
            raise CounterStateError(f"Token counter for {department.value} is corrupt: {counter!r}")
        return counter
