"""Internal priority score for queue ordering.

The weights below are private to this module. Nothing outside it should read
them, and no API payload may carry a score: patients who could see the
formula could learn to game it.
"""

from __future__ import annotations

from datetime import datetime

from ..models.enums import SymptomSeverity, VisitType

_AGE_ELDERLY_THRESHOLD = 60
_AGE_CHILD_THRESHOLD = 5
_AGE_ELDERLY_BONUS = 15
_AGE_CHILD_BONUS = 12

# Self-reported severity is capped so claims cannot escalate without bound.
_SEVERITY_CAP = {
    SymptomSeverity.MILD: 10,
    SymptomSeverity.MODERATE: 25,
    SymptomSeverity.SEVERE: 40,
}

_VULNERABILITY_BONUS = {
    "is_elderly": 15,
    "is_pregnant": 20,
    "is_disabled": 15,
    "has_chronic_condition": 10,
}

_WAIT_POINTS_PER_MINUTE = 0.5
_MAX_WAIT_BONUS = 50

_TRUST_FACTOR = 0.1

_ESCALATION_BONUS = {0: 0, 1: 10, 2: 25}

_VISIT_TYPE_BONUS = {
    VisitType.ROUTINE: 0,
    VisitType.FOLLOWUP: 5,
    VisitType.REFERRAL: 10,
}

_LATE_PENALTY = 15


def calculate_priority_score(patient, now: datetime) -> float:
    """Score a patient at ``now``; higher is seen sooner, never below zero."""
    score = float(_SEVERITY_CAP[SymptomSeverity(patient.symptom_severity)])

    if patient.age >= _AGE_ELDERLY_THRESHOLD:
        score += _AGE_ELDERLY_BONUS
    elif patient.age <= _AGE_CHILD_THRESHOLD:
        score += _AGE_CHILD_BONUS

    for flag, bonus in _VULNERABILITY_BONUS.items():
        if getattr(patient, flag, False):
            score += bonus

    score += _wait_bonus(patient.arrival_time, now)
    score += (patient.trust_score or 0) * _TRUST_FACTOR
    score += _ESCALATION_BONUS.get(patient.escalation_level or 0, 0)
    score += _VISIT_TYPE_BONUS[VisitType(patient.visit_type)]

    if patient.is_late_arrival:
        score -= _LATE_PENALTY

    return max(0.0, score)


def _wait_bonus(arrival_time: datetime, now: datetime) -> float:
    waited_minutes = max(0.0, (now - arrival_time).total_seconds() / 60)
    return min(waited_minutes * _WAIT_POINTS_PER_MINUTE, _MAX_WAIT_BONUS)
