"""Badge counts and acknowledgment over an alert list.

These helpers hold no state of their own; the monitor service owns the list
and calls them while it is the only writer.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from ward_monitor.modules.alerts.models import Alert, AlertCounts
from ward_monitor.shared.constants import Severity


def summarize(alerts: Iterable[Alert]) -> AlertCounts:
    """Count unacknowledged alerts by severity, as shown on badges."""
    critical = 0
    warning = 0
    total = 0
    for alert in alerts:
        total += 1
        if alert.acknowledged:
            continue
        if alert.severity is Severity.CRITICAL:
            critical += 1
        else:
            warning += 1
    return AlertCounts(
        critical=critical,
        warning=warning,
        total_unacknowledged=critical + warning,
        total=total,
    )


def acknowledge(alerts: Iterable[Alert], alert_id: str, now: datetime | None = None) -> bool:
    """Flag one alert as acknowledged. Unknown or evicted ids are a no-op."""
    for alert in alerts:
        if alert.alert_id != alert_id:
            continue
        if not alert.acknowledged:
            alert.acknowledged = True
            alert.acknowledged_at = now or datetime.now(timezone.utc)
        return True
    return False


def acknowledge_all(alerts: Iterable[Alert], now: datetime | None = None) -> int:
    """Acknowledge every pending alert and return how many changed."""
    stamp = now or datetime.now(timezone.utc)
    changed = 0
    for alert in alerts:
        if alert.acknowledged:
            continue
        alert.acknowledged = True
        alert.acknowledged_at = stamp
        changed += 1
    return changed
