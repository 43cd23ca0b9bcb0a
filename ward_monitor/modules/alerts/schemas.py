from datetime import datetime

from ward_monitor.modules.alerts.models import Alert, AlertCounts
from ward_monitor.shared.constants import Direction, FindingCategory, Severity
from ward_monitor.shared.schemas import CamelModel


class AlertPayload(CamelModel):
    """Alert shape shared by the HTTP feed and the push channels."""

    event: str = "alert"
    alert_id: str
    patient_id: str
    patient_name: str
    severity: Severity
    category: FindingCategory
    parameter: str
    message: str
    direction: Direction | None = None
    value: float | str | None = None
    threshold: float | None = None
    created_at: datetime
    acknowledged: bool = False
    acknowledged_at: datetime | None = None

    @classmethod
    def from_alert(cls, alert: Alert, event: str = "alert") -> "AlertPayload":
        return cls(
            event=event,
            alert_id=alert.alert_id,
            patient_id=alert.patient_id,
            patient_name=alert.patient_name,
            severity=alert.severity,
            category=alert.category,
            parameter=alert.parameter,
            message=alert.message,
            direction=alert.direction,
            value=alert.value,
            threshold=alert.threshold,
            created_at=alert.created_at,
            acknowledged=alert.acknowledged,
            acknowledged_at=alert.acknowledged_at,
        )


class AlertAckPayload(CamelModel):
    """Broadcast to subscribers after alerts are acknowledged."""

    event: str = "alert_acknowledged"
    alert_ids: list[str]
    timestamp: datetime


class AlertCountsResponse(CamelModel):
    critical: int
    warning: int
    total_unacknowledged: int
    total: int

    @classmethod
    def from_counts(cls, counts: AlertCounts) -> "AlertCountsResponse":
        return cls(
            critical=counts.critical,
            warning=counts.warning,
            total_unacknowledged=counts.total_unacknowledged,
            total=counts.total,
        )


class AcknowledgeResponse(CamelModel):
    alert_id: str
    acknowledged: bool


class AcknowledgeAllResponse(CamelModel):
    acknowledged: int
    total_unacknowledged: int
