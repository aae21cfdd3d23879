"""The single writer over queue state.

Every mutating operation takes the engine lock, runs in its own session,
writes an audit row, commits, and only then publishes its domain events.
Reads open their own session and return frozen snapshots, so callers never
hold live ORM rows and never see a priority score.
"""

from __future__ import annotations

import logging
import random
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..database import get_sessionmaker
from ..errors import (
    InvalidInput,
    NoPatientsWaiting,
    PatientNotFound,
    PrescriptionNotFound,
    ReceiptNotFound,
    UpstreamUnavailable,
)
from ..models.audit import AuditAction
from ..models.enums import Department, PatientStatus, PrescriptionStatus
from ..models.patient import Patient
from ..models.prescription import Prescription
from ..models.receipt import VisitReceipt
from . import patient_lifecycle, prescription_lifecycle, receipt_integrity
from .audit_logger import create_audit_event
from .event_bus import DomainEvent, EventBus
from .queue_ordering import ACTIVE_QUEUE_STATUSES, sort_queue
from .token_allocator import TokenAllocator, ensure_token_counters
from .treatment_suggester import build_treatment_suggester
from .views import (
    CompletedVisit,
    MedicineEntry,
    PatientRegistration,
    PatientView,
    PrescriptionCreate,
    PrescriptionView,
    ReceiptView,
    ScanOutcome,
)
from .wait_estimator import estimate_wait_minutes

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Changes:
    """Events collected during one mutation, published after commit."""

    def __init__(self, now: datetime) -> None:
        self.now = now
        self.events: list[DomainEvent] = []

    def emit(self, name: str, entity_type: str, entity_id, **payload: Any) -> None:
        self.events.append(
            DomainEvent(
                name=name,
                entity_type=entity_type,
                entity_id=str(entity_id),
                occurred_at=self.now,
                payload=payload,
            )
        )


class QueueEngine:
    def __init__(
        self,
        SessionLocal=None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
        token_allocator: TokenAllocator | None = None,
        suggester=None,
        event_bus: EventBus | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.SessionLocal = SessionLocal or get_sessionmaker()
        self.clock = clock or _utcnow
        self.rng = rng or random.Random()
        self.token_allocator = token_allocator or TokenAllocator()
        self.suggester = suggester or build_treatment_suggester(self.settings, rng=self.rng)
        self.event_bus = event_bus or EventBus()
        self._lock = threading.RLock()

    def initialize(self) -> int:
        with self._session() as db:
            created = ensure_token_counters(db)
            db.commit()
        if created:
            logger.info("Seeded %s token counters", created)
        return created

    # -- session plumbing -------------------------------------------------

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
        except OperationalError as exc:
            db.rollback()
            raise UpstreamUnavailable("Queue store unavailable", {"error": type(exc).__name__}) from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @contextmanager
    def _mutation(self) -> Iterator[tuple[Session, _Changes]]:
        with self._lock:
            changes = _Changes(self.clock())
            with self._session() as db:
                yield db, changes
                db.commit()
        for event in changes.events:
            self.event_bus.publish(event)

    def _audit(
        self,
        db: Session,
        changes: _Changes,
        actor: str,
        action: AuditAction,
        entity_type: str,
        entity_id,
        details: dict[str, Any] | None = None,
    ) -> None:
        create_audit_event(
            db,
            actor=actor,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            details=details,
            timestamp=changes.now,
        )

    # -- lookups ----------------------------------------------------------

    @staticmethod
    def _parse_id(value, not_found):
        if isinstance(value, UUID):
            return value
        try:
            return UUID(str(value))
        except (TypeError, ValueError):
            raise not_found(value) from None

    def _load_patient(self, db: Session, patient_id) -> Patient:
        patient = db.get(Patient, self._parse_id(patient_id, PatientNotFound))
        if patient is None:
            raise PatientNotFound(patient_id)
        return patient

    def _load_prescription(self, db: Session, prescription_id) -> Prescription:
        prescription = db.get(Prescription, self._parse_id(prescription_id, PrescriptionNotFound))
        if prescription is None:
            raise PrescriptionNotFound(prescription_id)
        return prescription

    def _load_receipt(self, db: Session, receipt_id) -> VisitReceipt:
        receipt = db.get(VisitReceipt, self._parse_id(receipt_id, ReceiptNotFound))
        if receipt is None:
            raise ReceiptNotFound(receipt_id)
        return receipt

    # -- patient lifecycle ------------------------------------------------

    def register_patient(self, fields: PatientRegistration | dict, actor: str = "SYSTEM") -> PatientView:
        if not isinstance(fields, PatientRegistration):
            try:
                fields = PatientRegistration.model_validate(fields)
            except ValidationError as exc:
                errors = exc.errors(include_url=False, include_context=False)
                raise InvalidInput("Invalid registration", {"errors": errors}) from exc

        with self._mutation() as (db, changes):
            token = self.token_allocator.next_token(db, fields.department)
            trust_score = patient_lifecycle.generate_trust_score(self.rng)
            patient = patient_lifecycle.register(fields, token, changes.now, trust_score)
            db.add(patient)
            db.flush()
            self._audit(
                db, changes, actor, AuditAction.REGISTER, "Patient", patient.id,
                {"token": token, "department": fields.department.value},
            )
            changes.emit("patient.registered", "Patient", patient.id, token=token,
                         department=fields.department.value)
            view = PatientView.model_validate(patient)
        logger.info("Registered patient token=%s department=%s", token, fields.department.value)
        return view

    def _patient_transition(
        self,
        patient_id,
        apply: Callable[[Patient], Any],
        event_name: str,
        action: AuditAction,
        actor: str,
        details: dict[str, Any] | None = None,
    ) -> PatientView:
        with self._mutation() as (db, changes):
            patient = self._load_patient(db, patient_id)
            previous = PatientStatus(patient.status)
            apply(patient)
            current = PatientStatus(patient.status)
            audit_details = {"from": previous.value, "to": current.value}
            audit_details.update(details or {})
            self._audit(db, changes, actor, action, "Patient", patient.id, audit_details)
            changes.emit(event_name, "Patient", patient.id, token=patient.token_number, **audit_details)
            view = PatientView.model_validate(patient)
        logger.info("%s token=%s status=%s", event_name, view.token_number, view.status.value)
        return view

    def update_status(self, patient_id, status, actor: str = "SYSTEM") -> PatientView:
        try:
            status = PatientStatus(status)
        except ValueError:
            raise InvalidInput(f"Unknown patient status: {status!r}") from None
        if status == PatientStatus.COMPLETED:
            return self.complete_consultation(patient_id, actor=actor).patient
        if status == PatientStatus.EMERGENCY:
            return self.mark_emergency(patient_id, actor=actor)
        return self._patient_transition(
            patient_id,
            lambda p: patient_lifecycle.set_status(p, status),
            "patient.status_changed",
            AuditAction.STATUS_CHANGE,
            actor,
        )

    def mark_emergency(self, patient_id, actor: str = "SYSTEM") -> PatientView:
        return self._patient_transition(
            patient_id, patient_lifecycle.mark_emergency, "patient.emergency_marked", AuditAction.FLAG, actor,
            {"flag": "emergency"},
        )

    def resolve_emergency(self, patient_id, actor: str = "SYSTEM") -> PatientView:
        return self._patient_transition(
            patient_id, patient_lifecycle.resolve_emergency, "patient.emergency_resolved", AuditAction.FLAG,
            actor, {"flag": "emergency_resolved"},
        )

    def mark_late_arrival(self, patient_id, actor: str = "SYSTEM") -> PatientView:
        return self._patient_transition(
            patient_id, patient_lifecycle.mark_late_arrival, "patient.late_arrival_marked", AuditAction.FLAG,
            actor, {"flag": "late_arrival"},
        )

    def escalate(self, patient_id, level, actor: str = "SYSTEM") -> PatientView:
        return self._patient_transition(
            patient_id,
            lambda p: patient_lifecycle.escalate(p, level),
            "patient.escalated",
            AuditAction.ESCALATE,
            actor,
            {"level": level},
        )

    def start_consultation(self, patient_id, actor: str = "SYSTEM") -> PatientView:
        return self._patient_transition(
            patient_id, patient_lifecycle.start_consultation, "patient.consultation_started",
            AuditAction.STATUS_CHANGE, actor,
        )

    def call_next(self, department, actor: str = "SYSTEM") -> PatientView:
        department = self._parse_department(department)
        with self._mutation() as (db, changes):
            waiting = db.scalars(
                select(Patient).where(
                    Patient.department == department,
                    Patient.status == PatientStatus.WAITING,
                )
            ).all()
            if not waiting:
                raise NoPatientsWaiting(department.value)
            patient = sort_queue(waiting, department, now=changes.now)[0]
            patient_lifecycle.call(patient)
            self._audit(
                db, changes, actor, AuditAction.STATUS_CHANGE, "Patient", patient.id,
                {"from": PatientStatus.WAITING.value, "to": PatientStatus.CALLED.value},
            )
            changes.emit("patient.called", "Patient", patient.id, token=patient.token_number,
                         department=department.value)
            view = PatientView.model_validate(patient)
        logger.info("Called token=%s department=%s", view.token_number, department.value)
        return view

    def complete_consultation(
        self, patient_id, diagnosis: str | None = None, actor: str = "SYSTEM"
    ) -> CompletedVisit:
        with self._mutation() as (db, changes):
            patient = self._load_patient(db, patient_id)
            previous = PatientStatus(patient.status)
            prescription = db.get(Prescription, patient.prescription_id) if patient.prescription_id else None
            receipt = patient_lifecycle.complete_consultation(patient, changes.now, diagnosis, prescription)
            db.add(receipt)
            db.flush()
            self._audit(
                db, changes, actor, AuditAction.STATUS_CHANGE, "Patient", patient.id,
                {"from": previous.value, "to": PatientStatus.COMPLETED.value},
            )
            self._audit(db, changes, actor, AuditAction.CREATE, "VisitReceipt", receipt.id,
                        {"token": receipt.token_number})
            changes.emit("patient.completed", "Patient", patient.id, token=patient.token_number)
            changes.emit("receipt.created", "VisitReceipt", receipt.id, token=receipt.token_number)
            result = CompletedVisit(
                patient=PatientView.model_validate(patient),
                receipt=ReceiptView.model_validate(receipt),
            )
        logger.info("Completed consultation token=%s", result.patient.token_number)
        return result

    def transfer_department(self, patient_id, new_department, actor: str = "SYSTEM") -> PatientView:
        new_department = self._parse_department(new_department)
        with self._mutation() as (db, changes):
            patient = self._load_patient(db, patient_id)
            patient_lifecycle.require_open(patient, "transfer")
            old_department = Department(patient.department)
            old_token = patient.token_number
            token = self.token_allocator.next_token(db, new_department)
            patient_lifecycle.transfer(patient, new_department, token)
            details = {
                "from_department": old_department.value,
                "to_department": new_department.value,
                "old_token": old_token,
                "token": token,
            }
            self._audit(db, changes, actor, AuditAction.TRANSFER, "Patient", patient.id, details)
            changes.emit("patient.transferred", "Patient", patient.id, **details)
            view = PatientView.model_validate(patient)
        logger.info("Transferred %s -> %s", old_token, token)
        return view

    def remove_patient(self, patient_id, actor: str = "SYSTEM") -> None:
        with self._mutation() as (db, changes):
            patient = self._load_patient(db, patient_id)
            token = patient.token_number
            # Receipts and prescriptions outlive the patient row.
            db.execute(
                update(Prescription)
                .where(Prescription.patient_id == patient.id)
                .values(patient_id=None)
                .execution_options(synchronize_session=False)
            )
            db.execute(
                update(VisitReceipt)
                .where(VisitReceipt.patient_id == patient.id)
                .values(patient_id=None)
                .execution_options(synchronize_session=False)
            )
            db.delete(patient)
            self._audit(db, changes, actor, AuditAction.REMOVE, "Patient", patient.id,
                        {"token": token, "status": PatientStatus(patient.status).value})
            changes.emit("patient.removed", "Patient", patient.id, token=token)
        logger.info("Removed patient token=%s", token)

    # -- prescriptions ----------------------------------------------------

    def create_prescription(self, fields: PrescriptionCreate | dict, actor: str = "SYSTEM") -> PrescriptionView:
        if not isinstance(fields, PrescriptionCreate):
            try:
                fields = PrescriptionCreate.model_validate(fields)
            except ValidationError as exc:
                errors = exc.errors(include_url=False, include_context=False)
                raise InvalidInput("Invalid prescription", {"errors": errors}) from exc
        return self._create_prescription(
            fields.patient_id,
            fields.diagnosis,
            fields.medicines,
            doctor_department=fields.doctor_department,
            ai_generated=fields.ai_generated,
            actor=actor,
        )

    def draft_prescription(self, patient_id, diagnosis: str, actor: str = "SYSTEM") -> PrescriptionView:
        if not diagnosis or not diagnosis.strip():
            raise InvalidInput("Diagnosis is required to draft a prescription")
        # The suggester may be remote: check the patient first, and call it
        # outside the write lock.
        self.get_patient(patient_id)
        suggestion = self.suggester.suggest(diagnosis)
        return self._create_prescription(
            patient_id,
            diagnosis.strip(),
            suggestion.medicines,
            ai_generated=True,
            actor=actor,
            confidence=suggestion.confidence,
        )

    def _create_prescription(
        self,
        patient_id,
        diagnosis: str,
        medicines: list[MedicineEntry],
        *,
        doctor_department: str | None = None,
        ai_generated: bool = False,
        actor: str = "SYSTEM",
        confidence: float | None = None,
    ) -> PrescriptionView:
        with self._mutation() as (db, changes):
            patient = self._load_patient(db, patient_id)
            prescription = prescription_lifecycle.create_prescription(
                patient,
                diagnosis,
                medicines,
                changes.now,
                doctor_department=doctor_department,
                ai_generated=ai_generated,
            )
            db.add(prescription)
            db.flush()
            details = {"token": patient.token_number, "ai_generated": ai_generated}
            if confidence is not None:
                details["confidence"] = round(confidence, 3)
            self._audit(db, changes, actor, AuditAction.CREATE, "Prescription", prescription.id, details)
            changes.emit("prescription.created", "Prescription", prescription.id, **details)
            view = PrescriptionView.model_validate(prescription)
        logger.info("Created prescription token=%s ai_generated=%s", view.token_number, ai_generated)
        return view

    def _prescription_transition(
        self,
        prescription_id,
        apply: Callable[[Prescription, datetime], Any],
        event_name: str,
        action: AuditAction,
        actor: str,
        db_hook: Callable[[Session, Prescription], None] | None = None,
    ) -> PrescriptionView:
        with self._mutation() as (db, changes):
            prescription = self._load_prescription(db, prescription_id)
            previous = PrescriptionStatus(prescription.status)
            apply(prescription, changes.now)
            if db_hook is not None:
                db_hook(db, prescription)
            details = {"from": previous.value, "to": PrescriptionStatus(prescription.status).value}
            self._audit(db, changes, actor, action, "Prescription", prescription.id, details)
            changes.emit(event_name, "Prescription", prescription.id, token=prescription.token_number, **details)
            view = PrescriptionView.model_validate(prescription)
        logger.info("%s token=%s", event_name, view.token_number)
        return view

    def verify_prescription(self, prescription_id, actor: str = "SYSTEM") -> PrescriptionView:
        return self._prescription_transition(
            prescription_id,
            lambda p, now: prescription_lifecycle.verify(p),
            "prescription.verified",
            AuditAction.VERIFY,
            actor,
        )

    def forward_prescription(self, prescription_id, actor: str = "SYSTEM") -> PrescriptionView:
        return self._prescription_transition(
            prescription_id, prescription_lifecycle.forward, "prescription.forwarded", AuditAction.FORWARD, actor
        )

    def dispense_medicine(self, prescription_id, actor: str = "SYSTEM") -> PrescriptionView:
        return self._prescription_transition(
            prescription_id,
            prescription_lifecycle.dispense,
            "prescription.dispensed",
            AuditAction.DISPENSE,
            actor,
            db_hook=self._refresh_receipt_snapshots,
        )

    @staticmethod
    def _refresh_receipt_snapshots(db: Session, prescription: Prescription) -> None:
        db.execute(
            update(VisitReceipt)
            .where(VisitReceipt.prescription_id == prescription.id)
            .values(prescription_status=prescription.status)
            .execution_options(synchronize_session=False)
        )

    # -- receipts ---------------------------------------------------------

    def scan_receipt(self, receipt_id, actor: str = "SYSTEM") -> ScanOutcome:
        with self._mutation() as (db, changes):
            receipt = self._load_receipt(db, receipt_id)
            result = receipt_integrity.scan(receipt)
            self._audit(
                db, changes, actor, AuditAction.SCAN, "VisitReceipt", receipt.id,
                {"scan_count": receipt.scan_count, "fraud_detected": result.fraud_detected},
            )
            changes.emit("receipt.scanned", "VisitReceipt", receipt.id, scan_count=receipt.scan_count)
            if result.fraud_detected:
                changes.emit(
                    "receipt.reuse_detected", "VisitReceipt", receipt.id,
                    token=receipt.token_number, scan_count=receipt.scan_count,
                )
            outcome = ScanOutcome(
                receipt=ReceiptView.model_validate(receipt),
                fraud_detected=result.fraud_detected,
            )
        return outcome

    # -- reads ------------------------------------------------------------

    def get_patient(self, patient_id) -> PatientView:
        with self._session() as db:
            return PatientView.model_validate(self._load_patient(db, patient_id))

    def get_patient_by_token(self, token: str) -> PatientView:
        token = (token or "").strip().upper()
        with self._session() as db:
            patient = db.scalar(select(Patient).where(Patient.token_number == token))
            if patient is None:
                raise PatientNotFound(token)
            return PatientView.model_validate(patient)

    def get_prescription(self, prescription_id) -> PrescriptionView:
        with self._session() as db:
            return PrescriptionView.model_validate(self._load_prescription(db, prescription_id))

    def get_prescription_by_token(self, token: str) -> PrescriptionView:
        # A token may carry several prescriptions over time; the newest wins.
        token = (token or "").strip().upper()
        with self._session() as db:
            prescription = db.scalar(
                select(Prescription)
                .where(Prescription.token_number == token)
                .order_by(Prescription.created_at.desc())
                .limit(1)
            )
            if prescription is None:
                raise PrescriptionNotFound(token)
            return PrescriptionView.model_validate(prescription)

    def get_receipt(self, receipt_id) -> ReceiptView:
        with self._session() as db:
            return ReceiptView.model_validate(self._load_receipt(db, receipt_id))

    def get_sorted_queue(self, department=None) -> list[PatientView]:
        if department is not None:
            department = self._parse_department(department)
        now = self.clock()
        with self._session() as db:
            query = select(Patient).order_by(Patient.arrival_time, Patient.id)
            if department is not None:
                query = query.where(Patient.department == department)
            patients = db.scalars(query).all()
            return [PatientView.model_validate(p) for p in sort_queue(patients, department, now=now)]

    def get_estimated_wait(self, patient_id) -> int:
        now = self.clock()
        # Under the write lock both reads see the same committed state.
        with self._lock, self._session() as db:
            patient = self._load_patient(db, patient_id)
            queue = db.scalars(
                select(Patient).where(
                    Patient.department == patient.department,
                    Patient.status.in_(list(ACTIVE_QUEUE_STATUSES)),
                )
            ).all()
            return estimate_wait_minutes(
                patient,
                queue,
                now,
                self.rng,
                average_minutes=self.settings.WAIT_AVERAGE_MINUTES,
                jitter_minutes=self.settings.WAIT_JITTER_MINUTES,
            )

    def get_forwarded_prescriptions(self) -> list[PrescriptionView]:
        with self._session() as db:
            prescriptions = db.scalars(
                select(Prescription)
                .where(Prescription.status == PrescriptionStatus.FORWARDED)
                .order_by(Prescription.forwarded_at.asc())
            ).all()
            return [PrescriptionView.model_validate(p) for p in prescriptions]

    def list_no_shows(self, department=None) -> list[PatientView]:
        if department is not None:
            department = self._parse_department(department)
        now = self.clock()
        with self._session() as db:
            query = select(Patient).where(
                Patient.status == PatientStatus.WAITING,
                Patient.is_late_arrival.is_(True),
            )
            if department is not None:
                query = query.where(Patient.department == department)
            candidates = db.scalars(query.order_by(Patient.arrival_time.asc())).all()
            threshold = self.settings.NO_SHOW_THRESHOLD_MINUTES
            return [
                PatientView.model_validate(p)
                for p in candidates
                if patient_lifecycle.is_no_show(p, now, threshold)
            ]

    def notify_external_change(self, entity_type: str, entity_id) -> None:
        """Announce a write made outside the engine so listeners can reload."""
        self.event_bus.publish(
            DomainEvent(
                name="store.changed",
                entity_type=entity_type,
                entity_id=str(entity_id),
                occurred_at=self.clock(),
            )
        )

    @staticmethod
    def _parse_department(value) -> Department:
        try:
            return Department(value)
        except ValueError:
            raise InvalidInput(
                f"Unknown department: {value!r}",
                {"allowed": [d.value for d in Department]},
            ) from None

