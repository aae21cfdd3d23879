from __future__ import annotations

import random
from datetime import datetime
from typing import Iterable

from ..models.enums import Department, PatientStatus
from .queue_ordering import ACTIVE_QUEUE_STATUSES, rank_of, sort_queue


def estimate_wait_minutes(
    patient,
    queue: Iterable,
    now: datetime,
    rng: random.Random,
    average_minutes: float = 10.0,
    jitter_minutes: float = 2.0,
) -> int:
    """Approximate minutes until ``patient`` is seen, from their rank in the department.

    Deliberately rough: ``rank * average`` plus a little noise, never negative.
    Patients outside the active queue (completed, emergency) get 0.
    """
    department = Department(patient.department)
    active = [
        p
        for p in queue
        if Department(p.department) == department and PatientStatus(p.status) in ACTIVE_QUEUE_STATUSES
    ]
    position = rank_of(patient.id, sort_queue(active, department, now=now))
    if position is None:
        return 0

    jitter = rng.uniform(-jitter_minutes, jitter_minutes)
    return max(0, round(position * average_minutes + jitter))
