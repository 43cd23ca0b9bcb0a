from dataclasses import dataclass, field
from datetime import datetime

from ward_monitor.shared.constants import Direction, FindingCategory, Severity


def format_value(value: float) -> str:
    """Render a measurement without a trailing .0 for whole numbers."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


@dataclass(frozen=True)
class Finding:
    patient_id: str
    patient_name: str
    category: FindingCategory
    severity: Severity
    parameter: str
    message: str
    value: float | str | None = None
    threshold: float | None = None
    direction: Direction | None = None

    @property
    def suppression_key(self) -> str:
        return f"{self.patient_id}:{self.parameter}"


@dataclass(frozen=True)
class TrendAssessment:
    deteriorating: bool
    parameters: list[str]
    findings: list[Finding] = field(default_factory=list)


@dataclass
class Alert:
    alert_id: str
    patient_id: str
    patient_name: str
    severity: Severity
    category: FindingCategory
    parameter: str
    message: str
    created_at: datetime
    direction: Direction | None = None
    value: float | str | None = None
    threshold: float | None = None
    acknowledged: bool = False
    acknowledged_at: datetime | None = None


@dataclass(frozen=True)
class AlertCounts:
    critical: int
    warning: int
    total_unacknowledged: int
    total: int
