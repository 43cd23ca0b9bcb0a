from datetime import timedelta

from ward_monitor.modules.alerts import aggregator
from ward_monitor.modules.alerts.models import Alert
from ward_monitor.shared.constants import FindingCategory, Severity
from tests.modules.alerts.helpers import BASE_TIME


def _alert(alert_id: str, severity: Severity, acknowledged: bool = False) -> Alert:
    return Alert(
        alert_id=alert_id,
        patient_id="p1",
        patient_name="Asha Rao",
        severity=severity,
        category=FindingCategory.VITALS,
        parameter="pulse",
        message="test",
        created_at=BASE_TIME,
        acknowledged=acknowledged,
    )


def test_summarize_counts_pending_by_severity() -> None:
    alerts = [
        _alert("a1", Severity.CRITICAL),
        _alert("a2", Severity.CRITICAL, acknowledged=True),
        _alert("a3", Severity.WARNING),
        _alert("a4", Severity.WARNING),
    ]

    counts = aggregator.summarize(alerts)

    assert counts.critical == 1
    assert counts.warning == 2
    assert counts.total_unacknowledged == 3
    assert counts.total == 4


def test_summarize_empty() -> None:
    counts = aggregator.summarize([])

    assert (counts.critical, counts.warning, counts.total_unacknowledged, counts.total) == (0, 0, 0, 0)


def test_acknowledge_stamps_alert_once() -> None:
    alerts = [_alert("a1", Severity.CRITICAL)]
    first = BASE_TIME + timedelta(minutes=1)

    assert aggregator.acknowledge(alerts, "a1", first) is True
    assert aggregator.acknowledge(alerts, "a1", first + timedelta(minutes=1)) is True
    assert alerts[0].acknowledged is True
    assert alerts[0].acknowledged_at == first


def test_acknowledge_unknown_id() -> None:
    alerts = [_alert("a1", Severity.CRITICAL)]

    assert aggregator.acknowledge(alerts, "missing") is False
    assert alerts[0].acknowledged is False


def test_acknowledge_all_returns_changed_count() -> None:
    alerts = [
        _alert("a1", Severity.CRITICAL),
        _alert("a2", Severity.WARNING, acknowledged=True),
        _alert("a3", Severity.WARNING),
    ]

    assert aggregator.acknowledge_all(alerts, BASE_TIME) == 2
    assert aggregator.acknowledge_all(alerts, BASE_TIME) == 0
    assert aggregator.summarize(alerts).total_unacknowledged == 0
