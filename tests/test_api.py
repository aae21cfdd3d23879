import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client(queue_engine):
    from healthqueue.main import create_app

    with TestClient(create_app(queue_engine)) as test_client:
        yield test_client


def _register(client, **overrides):
    payload = {
        "name": "Ravi Kumar",
        "age": 42,
        "department": "general_medicine",
        "symptom": "fever",
        "symptom_severity": "moderate",
    }
    payload.update(overrides)
    response = client.post("/api/v1/patients", json=payload, headers={"X-Staff-Role": "receptionist"})
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.headers["X-Request-ID"]


def test_register_and_lookup(client):
    patient = _register(client)
    assert patient["token_number"] == "GM-001"
    assert "score" not in patient
    assert client.get(f"/api/v1/patients/{patient['id']}").json()["name"] == "Ravi Kumar"
    assert client.get("/api/v1/patients/by-token/gm-001").json()["id"] == patient["id"]


def test_registration_rejects_unknown_fields(client):
    response = client.post(
        "/api/v1/patients",
        json={
            "name": "A",
            "age": 30,
            "department": "general_medicine",
            "symptom": "fever",
            "symptom_severity": "mild",
            "priority_score": 999,
        },
    )
    assert response.status_code == 422


def test_full_visit_flow(client):
    patient = _register(client, symptom_severity="severe")
    called = client.post("/api/v1/queue/general_medicine/call-next", headers={"X-Staff-Role": "doctor"})
    assert called.json()["id"] == patient["id"]
    assert called.json()["status"] == "called"

    started = client.post(f"/api/v1/patients/{patient['id']}/consultation/start")
    assert started.json()["status"] == "consultation"

    draft = client.post(
        "/api/v1/prescriptions/draft",
        json={"patient_id": patient["id"], "diagnosis": "Fever with chills"},
    ).json()
    assert draft["ai_generated"] is True

    completed = client.post(
        f"/api/v1/patients/{patient['id']}/consultation/complete", json={"diagnosis": "Fever with chills"}
    ).json()
    receipt_id = completed["receipt"]["id"]
    assert completed["patient"]["status"] == "completed"

    for step in ("verify", "forward", "dispense"):
        response = client.post(f"/api/v1/prescriptions/{draft['id']}/{step}")
        assert response.status_code == 200, response.text

    again = client.post(f"/api/v1/prescriptions/{draft['id']}/dispense")
    assert again.status_code == 409
    assert again.json() == {"error": "ALREADY_DISPENSED", "detail": "Prescription has already been dispensed"}

    assert client.post(f"/api/v1/receipts/{receipt_id}/scan").json()["fraud_detected"] is False
    second = client.post(f"/api/v1/receipts/{receipt_id}/scan").json()
    assert second["fraud_detected"] is True
    assert second["receipt"]["status"] == "fulfilled"
    assert client.get(f"/api/v1/receipts/{receipt_id}").json()["prescription_status"] == "dispensed"


def test_error_kinds_map_to_status_codes(client):
    empty = client.post("/api/v1/queue/pediatrics/call-next")
    assert empty.status_code == 409
    assert empty.json()["error"] == "NO_PATIENTS_WAITING"

    missing = client.get("/api/v1/patients/7f1d2f34-0000-4000-8000-000000000000")
    assert missing.status_code == 404
    assert missing.json()["error"] == "NOT_FOUND"

    patient = _register(client)
    bad = client.post(f"/api/v1/patients/{patient['id']}/escalate", json={"level": 5})
    assert bad.status_code == 422
    assert bad.json()["error"] == "INVALID_INPUT"


def test_escalation_level_must_be_an_integer(client):
    patient = _register(client)
    for level in (True, "2", 1.0):
        response = client.post(f"/api/v1/patients/{patient['id']}/escalate", json={"level": level})
        assert response.status_code == 422, level
    current = client.get(f"/api/v1/patients/{patient['id']}").json()
    assert current["escalation_level"] == 0


def test_sorted_queue_and_wait(client):
    mild = _register(client, symptom_severity="mild")
    severe = _register(client, symptom_severity="severe", age=70)
    queue = client.get("/api/v1/queue", params={"department": "general_medicine"}).json()
    assert [p["id"] for p in queue] == [severe["id"], mild["id"]]
    wait = client.get(f"/api/v1/patients/{mild['id']}/wait").json()
    assert 8 <= wait["estimated_wait_minutes"] <= 12


def test_transfer_and_remove(client):
    patient = _register(client)
    moved = client.post(f"/api/v1/patients/{patient['id']}/transfer", json={"department": "pediatrics"})
    assert moved.json()["token_number"] == "PD-001"
    assert client.delete(f"/api/v1/patients/{patient['id']}").status_code == 204
    assert client.get(f"/api/v1/patients/{patient['id']}").status_code == 404


def test_role_mismatch_is_logged_not_refused(client, caplog):
    patient = _register(client)
    with caplog.at_level("WARNING", logger="healthqueue.roles"):
        response = client.post(
            f"/api/v1/patients/{patient['id']}/emergency", headers={"X-Staff-Role": "receptionist"}
        )
    assert response.status_code == 200
    assert response.json()["is_emergency"] is True
    assert "receptionist is not expected to perform mark_emergency" in caplog.text


def test_no_shows_listing(client, queue_engine, clock):
    patient = _register(client)
    client.post(f"/api/v1/patients/{patient['id']}/late", headers={"X-Staff-Role": "nurse"})
    clock.advance(40)
    no_shows = client.get("/api/v1/queue/no-shows").json()
    assert [p["id"] for p in no_shows] == [patient["id"]]
