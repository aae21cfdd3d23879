import random

from faker import Faker

from healthqueue.config import get_settings
from healthqueue.database import init_db
from healthqueue.models.enums import Department, PatientStatus, SymptomSeverity, VisitType
from healthqueue.services.queue_engine import QueueEngine

fake = Faker("en_IN")

SYMPTOMS = {
    Department.GENERAL_MEDICINE: ["fever", "cold", "headache", "chest_pain", "breathing"],
    Department.PEDIATRICS: ["fever", "vaccination", "rashes", "respiratory"],
    Department.ORTHOPEDICS: ["joint_pain", "back_pain", "fracture", "sprain"],
    Department.GYNECOLOGY: ["prenatal", "menstrual", "postnatal"],
}


def generate_synthetic_queue(engine: QueueEngine, count: int = 40, seed: int | None = None) -> list:
    rng = random.Random(seed)
    if seed is not None:
        Faker.seed(seed)

    registered = []
    for _ in range(count):
        department = rng.choice(list(Department))
        if department == Department.PEDIATRICS:
            age = rng.randint(0, 14)
        else:
            age = rng.randint(16, 90)
        patient = engine.register_patient(
            {
                "name": fake.name(),
                "age": age,
                "department": department,
                "symptom": rng.choice(SYMPTOMS[department]),
                "symptom_severity": rng.choice(list(SymptomSeverity)),
                "visit_type": rng.choices(list(VisitType), weights=[7, 2, 1])[0],
                "is_elderly": age >= 60,
                "is_pregnant": department == Department.GYNECOLOGY and rng.random() < 0.4,
                "is_disabled": rng.random() < 0.05,
                "has_chronic_condition": rng.random() < 0.15,
            },
            actor="SYNTHETIC",
        )
        registered.append(patient)

        # A realistic mix of in-flight visits (roughly 20% late, 5% emergency).
        roll = rng.random()
        if roll < 0.05:
            engine.mark_emergency(patient.id, actor="SYNTHETIC")
        elif roll < 0.25:
            engine.mark_late_arrival(patient.id, actor="SYNTHETIC")
        elif roll < 0.35:
            engine.escalate(patient.id, rng.choice([1, 2]), actor="SYNTHETIC")

    for department in Department:
        waiting = [
            p for p in engine.get_sorted_queue(department) if p.status == PatientStatus.WAITING
        ]
        if waiting:
            called = engine.call_next(department, actor="SYNTHETIC")
            engine.start_consultation(called.id, actor="SYNTHETIC")

    return registered


if __name__ == "__main__":
    settings = get_settings()
    if settings.ENVIRONMENT != "dev" or not settings.SYNTHETIC_DATA_MODE:
        raise SystemExit("Synthetic data generation is only permitted in dev with SYNTHETIC_DATA_MODE=true")

    init_db()
    engine = QueueEngine(settings=settings)
    engine.initialize()
    generate_synthetic_queue(engine, count=40)

    print("Synthetic data generation complete")
