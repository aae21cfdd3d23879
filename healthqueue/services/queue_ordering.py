from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Sequence

from ..models.enums import Department, PatientStatus
from .scoring import calculate_priority_score

ACTIVE_QUEUE_STATUSES = frozenset(
    {PatientStatus.WAITING, PatientStatus.CALLED, PatientStatus.CONSULTATION}
)

_STATUS_RANK = {
    PatientStatus.CALLED: 0,
    PatientStatus.CONSULTATION: 1,
}
_OTHER_ACTIVE_RANK = 2


def _status_rank(patient) -> int:
    return _STATUS_RANK.get(PatientStatus(patient.status), _OTHER_ACTIVE_RANK)


def _sort_key(patient, now: datetime) -> tuple:
    # Token and id only break ties the four ordering rules leave open.
    return (
        _status_rank(patient),
        0 if patient.is_emergency else 1,
        -calculate_priority_score(patient, now),
        patient.arrival_time,
        patient.token_number or "",
        str(patient.id),
    )


def compare_patients(a, b, now: datetime) -> int:
    """Return -1 if ``a`` is seen before ``b``, 1 if after, 0 if indistinguishable."""
    key_a = _sort_key(a, now)
    key_b = _sort_key(b, now)
    if key_a < key_b:
        return -1
    if key_a > key_b:
        return 1
    return 0


def sort_queue(
    patients: Iterable,
    department: Department | None = None,
    now: datetime | None = None,
) -> list:
    """Order patients for display and calling.

    Called patients first, then those in consultation, then everyone else
    active: emergencies ahead, then by priority score, then by arrival.
    Completed patients follow in the order they were given. ``department``
    of ``None`` orders all departments together under the same rules.
    """
    now = now or datetime.now(timezone.utc)
    if department is not None:
        department = Department(department)
        patients = [p for p in patients if Department(p.department) == department]

    active = []
    completed = []
    for patient in patients:
        if PatientStatus(patient.status) == PatientStatus.COMPLETED:
            completed.append(patient)
        else:
            active.append(patient)

    keyed = [(_sort_key(p, now), p) for p in active]
    keyed.sort(key=lambda item: item[0])
    return [p for _, p in keyed] + completed


def rank_of(patient_id, ordered: Sequence) -> int | None:
    for index, patient in enumerate(ordered):
        if patient.id == patient_id:
            return index
    return None
