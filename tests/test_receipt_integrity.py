import pytest

from healthqueue.errors import ReceiptNotFound
from healthqueue.models.enums import ReceiptStatus


def test_scenario_second_scan_flags_reuse(queue_engine, registration):
    patient = queue_engine.register_patient(registration())
    receipt = queue_engine.complete_consultation(patient.id, "Common cold").receipt
    assert receipt.scan_count == 0
    assert receipt.status == ReceiptStatus.ACTIVE

    first = queue_engine.scan_receipt(receipt.id)
    assert first.receipt.scan_count == 1
    assert first.receipt.status == ReceiptStatus.ACTIVE
    assert first.fraud_detected is False

    second = queue_engine.scan_receipt(receipt.id)
    assert second.receipt.scan_count == 2
    assert second.receipt.status == ReceiptStatus.FULFILLED
    assert second.fraud_detected is True


def test_scan_count_equals_number_of_scans(queue_engine, registration):
    patient = queue_engine.register_patient(registration())
    receipt = queue_engine.complete_consultation(patient.id).receipt
    outcomes = [queue_engine.scan_receipt(receipt.id) for _ in range(4)]
    assert [o.receipt.scan_count for o in outcomes] == [1, 2, 3, 4]
    assert [o.fraud_detected for o in outcomes] == [False, True, True, True]
    assert queue_engine.get_receipt(receipt.id).status == ReceiptStatus.FULFILLED


def test_reuse_is_logged_without_receipt_id(queue_engine, registration, caplog):
    patient = queue_engine.register_patient(registration())
    receipt = queue_engine.complete_consultation(patient.id).receipt
    queue_engine.scan_receipt(receipt.id)
    with caplog.at_level("WARNING", logger="healthqueue.services.receipt_integrity"):
        queue_engine.scan_receipt(receipt.id)
    assert "Receipt reuse detected token=GM-001" in caplog.text
    assert str(receipt.id) not in caplog.text


def test_unknown_receipt(queue_engine):
    with pytest.raises(ReceiptNotFound):
        queue_engine.scan_receipt("0b7c3a0e-1111-4222-8333-444455556666")
