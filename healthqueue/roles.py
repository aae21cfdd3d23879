import logging

from fastapi import Header, Request

from .config import get_settings

logger = logging.getLogger(__name__)

STAFF_PERMISSIONS = {
    "receptionist": {"view", "escalate_low", "mark_late", "transfer"},
    "nurse": {"view", "escalate_low", "escalate_medium", "mark_late", "mark_emergency"},
    "doctor": {
        "view",
        "call_next",
        "start_consultation",
        "complete",
        "resolve_emergency",
        "generate_receipt",
        "create_prescription",
        "verify_prescription",
        "forward_prescription",
    },
    "medicine_staff": {"view", "dispense", "verify_prescription"},
}


def can_perform(role: str | None, action: str) -> bool:
    return action in STAFF_PERMISSIONS.get((role or "").lower(), set())


def escalation_action(level: int) -> str:
    return "escalate_medium" if level >= 2 else "escalate_low"


def require_role(action: str):
    """Advisory check: a missing or mismatched role is logged, never refused.

    Returns the actor name recorded in the audit trail.
    """

    def dependency(
        request: Request,
        x_staff_role: str | None = Header(default=None),
    ) -> str:
        check_role(x_staff_role, action, getattr(request.state, "request_id", None))
        return x_staff_role.lower() if x_staff_role else "SYSTEM"

    return dependency


def check_role(role: str | None, action: str, request_id: str | None = None) -> bool:
    if not get_settings().ADVISORY_ROLE_CHECKS or role is None:
        return True
    allowed = can_perform(role, action)
    if not allowed:
        logger.warning(
            "Role %s is not expected to perform %s (request_id=%s)", role, action, request_id
        )
    return allowed
