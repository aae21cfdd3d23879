import os
import random
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from cryptography.fernet import Fernet

# Ensure critical env vars are set before healthqueue imports
os.environ.setdefault("FIELD_ENCRYPTION_KEY", Fernet.generate_key().decode("utf-8"))
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("TREATMENT_SUGGESTER_MODE", "keyword")
os.environ.setdefault("ADVISORY_ROLE_CHECKS", "true")

START = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> datetime:
        self.now = self.now + timedelta(minutes=minutes)
        return self.now


@pytest.fixture
def db_session(tmp_path, monkeypatch):
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")

    from healthqueue.config import get_settings
    from healthqueue.database import reset_engine, get_engine, get_sessionmaker
    from healthqueue.models.base import Base

    get_settings.cache_clear()
    reset_engine()
    engine = get_engine()
    Base.metadata.create_all(bind=engine)

    SessionLocal = get_sessionmaker()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        reset_engine()
        get_settings.cache_clear()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def queue_engine(db_session, clock):
    from healthqueue.database import get_sessionmaker
    from healthqueue.services.queue_engine import QueueEngine

    engine = QueueEngine(SessionLocal=get_sessionmaker(), clock=clock, rng=random.Random(7))
    engine.initialize()
    return engine


@pytest.fixture
def make_patient():
    """Transient patients for the pure ordering and scoring functions."""
    from healthqueue.models.enums import Department, PatientStatus, SymptomSeverity, VisitType
    from healthqueue.models.patient import Patient

    counter = iter(range(1, 10_000))

    def factory(**overrides):
        n = next(counter)
        fields = dict(
            id=uuid.uuid4(),
            token_number=f"GM-{n:03d}",
            name=f"Patient {n}",
            age=30,
            department=Department.GENERAL_MEDICINE,
            symptom="fever",
            symptom_severity=SymptomSeverity.MILD,
            is_elderly=False,
            is_pregnant=False,
            is_disabled=False,
            has_chronic_condition=False,
            visit_type=VisitType.ROUTINE,
            status=PatientStatus.WAITING,
            arrival_time=START,
            escalation_level=0,
            is_emergency=False,
            is_late_arrival=False,
            trust_score=70,
        )
        fields.update(overrides)
        return Patient(**fields)

    return factory


@pytest.fixture
def registration():
    def factory(**overrides):
        fields = {
            "name": "Asha Rao",
            "age": 30,
            "department": "general_medicine",
            "symptom": "fever",
            "symptom_severity": "mild",
        }
        fields.update(overrides)
        return fields

    return factory
