from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

import structlog
from pydantic import ValidationError

from ward_monitor.modules.roster.models import PatientSnapshot

log = structlog.get_logger(__name__)


@dataclass
class RosterParseResult:
    snapshots: list[PatientSnapshot] = field(default_factory=list)
    rejected: int = 0


def parse_snapshot(record: Any) -> PatientSnapshot | None:
    """Validate one roster record, returning None when it cannot be monitored."""
    if isinstance(record, PatientSnapshot):
        return record
    if not isinstance(record, dict):
        log.warning("roster record rejected", reason="not_an_object")
        return None
    try:
        return PatientSnapshot.model_validate(record)
    except ValidationError as exc:
        log.warning(
            "roster record rejected",
            patient_id=record.get("id"),
            errors=[".".join(str(p) for p in err["loc"]) for err in exc.errors()],
        )
        return None


def parse_roster(records: Iterable[Any]) -> RosterParseResult:
    """
    Validate a roster record by record.

    A malformed patient never rejects the whole roster; it is dropped from
    this update and counted. Later duplicates of the same id win.
    """
    result = RosterParseResult()
    by_id: dict[str, PatientSnapshot] = {}
    for record in records:
        snapshot = parse_snapshot(record)
        if snapshot is None:
            result.rejected += 1
            continue
        by_id.pop(snapshot.id, None)
        by_id[snapshot.id] = snapshot
    result.snapshots = list(by_id.values())
    return result
