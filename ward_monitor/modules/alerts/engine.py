from __future__ import annotations

import asyncio
import uuid
from collections import deque
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Iterable

import structlog

from ward_monitor.modules.alerts import aggregator
from ward_monitor.modules.alerts.config import MonitorRulesConfig
from ward_monitor.modules.alerts.labs import LabAbnormalityEvaluator
from ward_monitor.modules.alerts.manager import AlertConnectionManager
from ward_monitor.modules.alerts.models import Alert, AlertCounts, Finding
from ward_monitor.modules.alerts.schemas import AlertAckPayload
from ward_monitor.modules.alerts.suppression import AlertSuppressor
from ward_monitor.modules.alerts.thresholds import ThresholdEvaluator
from ward_monitor.modules.alerts.trends import TrendDetector
from ward_monitor.modules.roster.models import PatientSnapshot
from ward_monitor.shared.constants import Severity

log = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MonitorService:
    """
    Watch the roster and maintain the alert feed.

    Every roster update (and the optional periodic tick) runs one
    evaluation pass: findings are computed off the event loop from the
    immutable snapshots, then filtered through the suppressor and prepended
    to a capped alert history. Passes are serialized by a lock; the alert
    history and suppression entries are only touched on the event loop.
    """

    def __init__(
        self,
        rules: MonitorRulesConfig,
        manager: AlertConnectionManager | None = None,
        clock: Callable[[], datetime] | None = None,
        history_limit: int | None = None,
    ) -> None:
        self._rules = rules
        self._manager = manager or AlertConnectionManager()
        self._clock = clock or _utc_now
        self._thresholds = ThresholdEvaluator(rules)
        self._trends = TrendDetector(rules)
        self._labs = LabAbnormalityEvaluator(rules)
        self._suppressor = AlertSuppressor(rules.suppression)
        self._alerts: deque[Alert] = deque(maxlen=history_limit or rules.alert_history_limit)
        self._roster: dict[str, PatientSnapshot] = {}
        self._evaluation_lock = asyncio.Lock()
        self._periodic_task: asyncio.Task | None = None

    @property
    def manager(self) -> AlertConnectionManager:
        return self._manager

    @property
    def history_limit(self) -> int:
        return self._alerts.maxlen or 0

    # ========== Roster intake ==========

    @property
    def roster(self) -> list[PatientSnapshot]:
        return list(self._roster.values())

    async def replace_roster(
        self, snapshots: Iterable[PatientSnapshot], now: datetime | None = None
    ) -> list[Alert]:
        """Swap in a full roster and evaluate it. Patients absent from it stop being monitored."""
        self._roster = {snapshot.id: snapshot for snapshot in snapshots}
        return await self.evaluate(now)

    async def upsert_patient(
        self, snapshot: PatientSnapshot, now: datetime | None = None
    ) -> list[Alert]:
        self._roster[snapshot.id] = snapshot
        return await self.evaluate(now)

    def remove_patient(self, patient_id: str) -> bool:
        return self._roster.pop(patient_id, None) is not None

    # ========== Evaluation ==========

    async def evaluate(self, now: datetime | None = None) -> list[Alert]:
        """Run one evaluation pass over the current roster and return the alerts it created."""
        async with self._evaluation_lock:
            tick = now or self._clock()
            snapshots = list(self._roster.values())
            findings = await asyncio.to_thread(self.collect_findings, snapshots)
            created = self._admit(findings, tick)

        log_method = log.info if created else log.debug
        log_method(
            "evaluation pass complete",
            patients=len(snapshots),
            findings=len(findings),
            alerts_created=len(created),
        )
        for alert in created:
            await self._manager.publish(alert)
        return created

    def collect_findings(self, snapshots: Iterable[PatientSnapshot]) -> list[Finding]:
        findings: list[Finding] = []
        for snapshot in snapshots:
            if snapshot.is_discharged:
                continue
            try:
                findings.extend(self.evaluate_patient(snapshot))
            except Exception:
                # that patient's alerts go stale for this pass; the others still run
                log.exception("patient evaluation failed", patient_id=snapshot.id)
        return findings

    def evaluate_patient(self, snapshot: PatientSnapshot) -> list[Finding]:
        findings = self._thresholds.evaluate(snapshot.current_vitals, snapshot.id, snapshot.name)
        findings.extend(self._labs.evaluate(snapshot.results, snapshot.id, snapshot.name))

        trend_pair = snapshot.trend_pair
        if trend_pair:
            current, previous = trend_pair
            assessment = self._trends.detect(current, previous, snapshot.id, snapshot.name)
            if self._rules.combine_trend_findings:
                combined = self._trends.combined_finding(assessment)
                if combined:
                    findings.append(combined)
            else:
                findings.extend(assessment.findings)
        return findings

    def _admit(self, findings: list[Finding], now: datetime) -> list[Alert]:
        created: list[Alert] = []
        for finding in findings:
            if not self._suppressor.should_emit(finding, now):
                continue
            alert = Alert(
                alert_id=uuid.uuid4().hex,
                patient_id=finding.patient_id,
                patient_name=finding.patient_name,
                severity=finding.severity,
                category=finding.category,
                parameter=finding.parameter,
                message=finding.message,
                created_at=now,
                direction=finding.direction,
                value=finding.value,
                threshold=finding.threshold,
            )
            if len(self._alerts) == self._alerts.maxlen:
                log.debug("alert evicted", alert_id=self._alerts[-1].alert_id)
            self._alerts.appendleft(alert)
            created.append(alert)
            log.info(
                "alert created",
                alert_id=alert.alert_id,
                patient_id=alert.patient_id,
                parameter=alert.parameter,
                severity=alert.severity.value,
            )
        return created

    # ========== Feed ==========

    def get_alerts(
        self, unacknowledged_only: bool = False, severity: Severity | None = None
    ) -> list[Alert]:
        """Most-recent-first copies of the alert history."""
        return [
            replace(alert)
            for alert in self._alerts
            if (not unacknowledged_only or not alert.acknowledged)
            and (severity is None or alert.severity is severity)
        ]

    def get_counts(self) -> AlertCounts:
        return aggregator.summarize(self._alerts)

    async def acknowledge(self, alert_id: str) -> bool:
        pending = any(
            alert.alert_id == alert_id and not alert.acknowledged for alert in self._alerts
        )
        found = aggregator.acknowledge(self._alerts, alert_id, self._clock())
        if pending:
            log.info("alert acknowledged", alert_id=alert_id)
            await self._broadcast_ack([alert_id])
        return found

    async def acknowledge_all(self) -> int:
        pending_ids = [alert.alert_id for alert in self._alerts if not alert.acknowledged]
        changed = aggregator.acknowledge_all(self._alerts, self._clock())
        if pending_ids:
            log.info("alerts acknowledged", count=changed)
            await self._broadcast_ack(pending_ids)
        return changed

    async def _broadcast_ack(self, alert_ids: list[str]) -> None:
        payload = AlertAckPayload(alert_ids=alert_ids, timestamp=self._clock())
        await self._manager.send(payload.model_dump(by_alias=True, mode="json"))

    # ========== Lifecycle ==========

    def start(self, interval_seconds: float) -> None:
        """Re-evaluate periodically so elapsed suppression windows resurface standing conditions."""
        if interval_seconds <= 0:
            return
        if self._periodic_task and not self._periodic_task.done():
            return
        self._periodic_task = asyncio.create_task(self._run_periodic(interval_seconds))
        log.info("monitor started", interval_seconds=interval_seconds)

    async def stop(self) -> None:
        task, self._periodic_task = self._periodic_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        log.info("monitor stopped")

    @property
    def running(self) -> bool:
        return self._periodic_task is not None and not self._periodic_task.done()

    def reset(self) -> None:
        """Drop roster, alerts and suppression state. Nothing external needs rolling back."""
        self._roster.clear()
        self._alerts.clear()
        self._suppressor.clear()

    async def _run_periodic(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.evaluate()
            except Exception:
                log.exception("periodic evaluation failed")
