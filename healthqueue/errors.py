class QueueError(Exception):
    """Recoverable failure of a queue operation, reported to the caller by kind."""

    kind = "QUEUE_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFound(QueueError):
    kind = "NOT_FOUND"
    status_code = 404


class PatientNotFound(NotFound):
    def __init__(self, ref):
        super().__init__(f"Patient not found: {ref}", {"patient": str(ref)})


class PrescriptionNotFound(NotFound):
    def __init__(self, ref):
        super().__init__(f"Prescription not found: {ref}", {"prescription": str(ref)})


class ReceiptNotFound(NotFound):
    def __init__(self, ref):
        super().__init__("Receipt not found", {"receipt": str(ref)})


class InvalidInput(QueueError):
    kind = "INVALID_INPUT"
    status_code = 422


class InvalidTransition(QueueError):
    kind = "INVALID_TRANSITION"
    status_code = 409


class AlreadyDispensed(InvalidTransition):
    kind = "ALREADY_DISPENSED"

    def __init__(self, prescription_id):
        super().__init__(
            "Prescription has already been dispensed",
            {"prescription": str(prescription_id)},
        )


class NoPatientsWaiting(QueueError):
    kind = "NO_PATIENTS_WAITING"
    status_code = 409

    def __init__(self, department):
        super().__init__(
            f"No patients waiting in {department}",
            {"department": str(department)},
        )


class ConcurrencyConflict(QueueError):
    kind = "CONCURRENCY_CONFLICT"
    status_code = 409


class UpstreamUnavailable(QueueError):
    kind = "UPSTREAM_UNAVAILABLE"
    status_code = 503


class CounterStateError(RuntimeError):
    """Token counter storage is missing or corrupt; not recoverable per request."""
