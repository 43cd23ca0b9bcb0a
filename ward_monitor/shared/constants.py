from enum import Enum


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"

    @property
    def rank(self) -> int:
        return 2 if self is Severity.CRITICAL else 1


class FindingCategory(str, Enum):
    VITALS = "vitals"
    TREND = "trend"
    LAB = "lab"


class Direction(str, Enum):
    HIGH = "high"
    LOW = "low"
    ABNORMAL = "abnormal"


class PatientStatus(str, Enum):
    WAITING_FOR_TRIAGE = "Waiting for Triage"
    WAITING_FOR_DOCTOR = "Waiting for Doctor"
    IN_TREATMENT = "In Treatment"
    DISCHARGED = "Discharged"
