import enum


class Department(str, enum.Enum):
    GENERAL_MEDICINE = "general_medicine"
    PEDIATRICS = "pediatrics"
    ORTHOPEDICS = "orthopedics"
    GYNECOLOGY = "gynecology"


# Adding a department means extending both tables; counters are seeded at startup.
DEPARTMENT_PREFIXES = {
    Department.GENERAL_MEDICINE: "GM",
    Department.PEDIATRICS: "PD",
    Department.ORTHOPEDICS: "OR",
    Department.GYNECOLOGY: "GY",
}

DEPARTMENT_NAMES = {
    Department.GENERAL_MEDICINE: "General Medicine",
    Department.PEDIATRICS: "Pediatrics",
    Department.ORTHOPEDICS: "Orthopedics",
    Department.GYNECOLOGY: "Gynecology",
}


class PatientStatus(str, enum.Enum):
    WAITING = "waiting"
    CALLED = "called"
    CONSULTATION = "consultation"
    EMERGENCY = "emergency"
    COMPLETED = "completed"


class SymptomSeverity(str, enum.Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class VisitType(str, enum.Enum):
    ROUTINE = "routine"
    FOLLOWUP = "followup"
    REFERRAL = "referral"


class PrescriptionStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    FORWARDED = "forwarded"
    DISPENSED = "dispensed"


class ReceiptStatus(str, enum.Enum):
    ACTIVE = "active"
    FULFILLED = "fulfilled"
    INVALID = "invalid"
