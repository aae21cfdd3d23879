from healthqueue.roles import can_perform, escalation_action


def test_permission_table():
    assert can_perform("doctor", "call_next")
    assert can_perform("Nurse", "escalate_medium")
    assert not can_perform("receptionist", "escalate_medium")
    assert can_perform("medicine_staff", "dispense")
    assert not can_perform("medicine_staff", "create_prescription")
    assert not can_perform(None, "view")
    assert not can_perform("janitor", "view")


def test_escalation_action_by_level():
    assert escalation_action(1) == "escalate_low"
    assert escalation_action(2) == "escalate_medium"
