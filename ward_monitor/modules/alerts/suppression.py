from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import structlog

from ward_monitor.modules.alerts.config import SuppressionConfig
from ward_monitor.modules.alerts.models import Finding
from ward_monitor.shared.constants import Severity

log = structlog.get_logger(__name__)


@dataclass
class SuppressionEntry:
    last_emitted_at: datetime
    severity: Severity


class AlertSuppressor:
    """
    Rate-limit alerts per (patient, parameter).

    A finding is approved when its key has never fired, when it escalates
    above the severity that last fired, or when the window for its own
    severity has elapsed since the last emission. Entries are never cleared;
    they simply stop suppressing once their window has passed.
    """

    def __init__(self, config: SuppressionConfig) -> None:
        self._config = config
        self._entries: dict[str, SuppressionEntry] = {}

    def should_emit(self, finding: Finding, now: datetime) -> bool:
        key = finding.suppression_key
        entry = self._entries.get(key)
        if entry is None or self._window_elapsed(entry, finding.severity, now):
            self._entries[key] = SuppressionEntry(last_emitted_at=now, severity=finding.severity)
            return True
        if finding.severity.rank > entry.severity.rank:
            log.info("alert escalated inside suppression window", key=key, severity=finding.severity.value)
            self._entries[key] = SuppressionEntry(last_emitted_at=now, severity=finding.severity)
            return True

        log.debug(
            "finding suppressed",
            key=key,
            severity=finding.severity.value,
            seconds_since_last=(now - entry.last_emitted_at).total_seconds(),
        )
        return False

    def last_emission(self, patient_id: str, parameter: str) -> SuppressionEntry | None:
        return self._entries.get(f"{patient_id}:{parameter}")

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _window_elapsed(self, entry: SuppressionEntry, severity: Severity, now: datetime) -> bool:
        elapsed = (now - entry.last_emitted_at).total_seconds()
        return elapsed >= self._config.window_for(severity)
