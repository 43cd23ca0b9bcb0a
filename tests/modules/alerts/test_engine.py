import asyncio
from datetime import datetime, timedelta

import pytest

from ward_monitor.modules.alerts.config import MonitorRulesConfig
from ward_monitor.modules.alerts.engine import MonitorService
from ward_monitor.modules.alerts.models import Alert
from ward_monitor.shared.constants import FindingCategory, Severity
from tests.modules.alerts.helpers import BASE_TIME, make_snapshot


def _at(seconds: float) -> datetime:
    return BASE_TIME + timedelta(seconds=seconds)


async def test_critical_heart_rate_creates_alert(service: MonitorService) -> None:
    created = await service.replace_roster([make_snapshot(vitals={"pulse": 160})], now=_at(0))

    assert len(created) == 1
    alert = created[0]
    assert alert.severity is Severity.CRITICAL
    assert alert.category is FindingCategory.VITALS
    assert alert.parameter == "pulse"
    assert alert.patient_id == "p1"
    assert alert.created_at == _at(0)
    assert alert.acknowledged is False
    assert "tachycardia" in alert.message.lower()
    assert service.get_counts().critical == 1


async def test_spo2_trend_creates_warning(service: MonitorService) -> None:
    snapshot = make_snapshot(history=[{"spo2": 90}, {"spo2": 97}])

    created = await service.replace_roster([snapshot], now=_at(0))

    trend_alerts = [alert for alert in created if alert.category is FindingCategory.TREND]
    assert len(trend_alerts) == 1
    assert trend_alerts[0].parameter == "spo2-trend"
    assert trend_alerts[0].severity is Severity.WARNING
    assert "SpO2 dropped from 97% to 90%" in trend_alerts[0].message


async def test_current_vitals_fall_back_to_latest_history(service: MonitorService) -> None:
    snapshot = make_snapshot(history=[{"pulse": 155}, {"pulse": 150}])

    created = await service.replace_roster([snapshot], now=_at(0))

    assert [alert.parameter for alert in created] == ["pulse"]


async def test_standing_condition_is_rate_limited(service: MonitorService) -> None:
    roster = [make_snapshot(vitals={"pulse": 160})]

    first = await service.replace_roster(roster, now=_at(0))
    second = await service.evaluate(now=_at(10))
    third = await service.evaluate(now=_at(20))

    assert len(first) == 1
    assert second == []
    assert third == []
    assert len(service.get_alerts()) == 1

    resurfaced = await service.evaluate(now=_at(60))

    assert len(resurfaced) == 1
    assert len(service.get_alerts()) == 2


async def test_critical_lab_creates_alert(service: MonitorService) -> None:
    snapshot = make_snapshot(
        results=[
            {
                "id": "r1",
                "name": "Potassium",
                "value": "6.8",
                "unit": "mmol/L",
                "isAbnormal": True,
                "isCritical": True,
            }
        ]
    )

    created = await service.replace_roster([snapshot], now=_at(0))

    assert len(created) == 1
    assert created[0].category is FindingCategory.LAB
    assert created[0].severity is Severity.CRITICAL
    assert created[0].parameter == "lab:potassium"


async def test_discharged_patients_are_not_evaluated(service: MonitorService) -> None:
    roster = [
        make_snapshot("p1", status="Discharged", vitals={"pulse": 190}),
        make_snapshot("p2", name="Ben Ortiz", status="discharged", vitals={"spo2": 70}),
    ]

    created = await service.replace_roster(roster, now=_at(0))

    assert created == []
    assert len(service.roster) == 2


async def test_failing_patient_does_not_block_others(
    service: MonitorService, monkeypatch: pytest.MonkeyPatch
) -> None:
    evaluate_patient = service.evaluate_patient

    def flaky(snapshot):
        if snapshot.id == "p1":
            raise RuntimeError("bad snapshot")
        return evaluate_patient(snapshot)

    monkeypatch.setattr(service, "evaluate_patient", flaky)
    roster = [
        make_snapshot("p1", vitals={"pulse": 160}),
        make_snapshot("p2", name="Ben Ortiz", vitals={"pulse": 160}),
    ]

    created = await service.replace_roster(roster, now=_at(0))

    assert [alert.patient_id for alert in created] == ["p2"]


async def test_history_is_capped_most_recent_first(rules: MonitorRulesConfig) -> None:
    service = MonitorService(rules=rules, clock=lambda: BASE_TIME, history_limit=3)
    created: list[Alert] = []
    for index in range(5):
        snapshot = make_snapshot(f"p{index}", name=f"Patient {index}", vitals={"pulse": 160})
        created.extend(await service.upsert_patient(snapshot, now=_at(index)))

    feed = service.get_alerts()

    assert service.history_limit == 3
    assert len(created) == 5
    assert [alert.patient_id for alert in feed] == ["p4", "p3", "p2"]
    assert await service.acknowledge(created[0].alert_id) is False


async def test_default_history_limit_comes_from_rules(rules: MonitorRulesConfig) -> None:
    rules.alert_history_limit = 7

    assert MonitorService(rules=rules).history_limit == 7


async def test_acknowledge_is_idempotent(service: MonitorService) -> None:
    created = await service.replace_roster([make_snapshot(vitals={"pulse": 160})], now=_at(0))
    alert_id = created[0].alert_id

    assert await service.acknowledge(alert_id) is True
    assert await service.acknowledge(alert_id) is True
    assert await service.acknowledge("unknown") is False

    feed = service.get_alerts()
    assert feed[0].acknowledged is True
    assert feed[0].acknowledged_at == BASE_TIME
    assert service.get_counts().critical == 0
    assert service.get_counts().total == 1


async def test_acknowledge_all(service: MonitorService) -> None:
    await service.replace_roster(
        [make_snapshot(vitals={"pulse": 160, "spo2": 91, "rr": 26})], now=_at(0)
    )

    assert await service.acknowledge_all() == 3
    assert await service.acknowledge_all() == 0
    counts = service.get_counts()
    assert (counts.critical, counts.warning, counts.total_unacknowledged) == (0, 0, 0)
    assert service.get_alerts(unacknowledged_only=True) == []


async def test_feed_filters_and_returns_copies(service: MonitorService) -> None:
    await service.replace_roster([make_snapshot(vitals={"pulse": 160, "spo2": 91})], now=_at(0))

    critical = service.get_alerts(severity=Severity.CRITICAL)
    warning = service.get_alerts(severity=Severity.WARNING)

    assert [alert.parameter for alert in critical] == ["pulse"]
    assert [alert.parameter for alert in warning] == ["spo2"]

    critical[0].acknowledged = True
    assert service.get_counts().critical == 1


async def test_replacing_roster_drops_absent_patients(service: MonitorService) -> None:
    await service.replace_roster(
        [make_snapshot("p1"), make_snapshot("p2", name="Ben Ortiz")], now=_at(0)
    )
    await service.replace_roster([make_snapshot("p2", name="Ben Ortiz")], now=_at(1))

    assert [snapshot.id for snapshot in service.roster] == ["p2"]
    assert service.remove_patient("p2") is True
    assert service.remove_patient("p2") is False


async def test_listeners_receive_new_alerts(service: MonitorService) -> None:
    everything: list[Alert] = []
    critical_only: list[Alert] = []
    service.manager.add_listener(everything.append)
    service.manager.add_listener(critical_only.append, critical_only=True)

    await service.replace_roster([make_snapshot(vitals={"pulse": 160, "spo2": 91})], now=_at(0))

    assert {alert.parameter for alert in everything} == {"pulse", "spo2"}
    assert [alert.parameter for alert in critical_only] == ["pulse"]


async def test_combined_trend_finding(rules: MonitorRulesConfig) -> None:
    rules.combine_trend_findings = True
    service = MonitorService(rules=rules, clock=lambda: BASE_TIME)
    snapshot = make_snapshot(history=[{"pulse": 110, "spo2": 90}, {"pulse": 85, "spo2": 97}])

    created = await service.replace_roster([snapshot], now=_at(0))

    trend_alerts = [alert for alert in created if alert.category is FindingCategory.TREND]
    assert [alert.parameter for alert in trend_alerts] == ["trend"]
    assert "Heart rate increased by 25 bpm" in trend_alerts[0].message
    assert "SpO2 dropped from 97% to 90%" in trend_alerts[0].message


async def test_periodic_evaluation_resurfaces_standing_alerts(rules: MonitorRulesConfig) -> None:
    ticks = iter(range(1000))
    service = MonitorService(rules=rules, clock=lambda: _at(61 * next(ticks)))
    await service.replace_roster([make_snapshot(vitals={"pulse": 160})])

    service.start(0.01)
    service.start(0.01)
    assert service.running is True
    await asyncio.sleep(0.1)
    await service.stop()

    assert service.running is False
    assert len(service.get_alerts()) > 1


async def test_start_with_zero_interval_does_nothing(service: MonitorService) -> None:
    service.start(0)

    assert service.running is False
    await service.stop()


async def test_reset_clears_state(service: MonitorService) -> None:
    await service.replace_roster([make_snapshot(vitals={"pulse": 160})], now=_at(0))

    service.reset()

    assert service.roster == []
    assert service.get_alerts() == []
    created = await service.replace_roster([make_snapshot(vitals={"pulse": 160})], now=_at(1))
    assert len(created) == 1
