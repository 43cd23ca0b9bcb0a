"""Builders for roster snapshots used across monitor tests."""

from datetime import datetime, timedelta, timezone
from typing import Any

from ward_monitor.modules.roster.models import (
    LabResult,
    PatientSnapshot,
    VitalsMeasurements,
    VitalsRecord,
)

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_snapshot(
    patient_id: str = "p1",
    name: str = "Asha Rao",
    status: str = "In Treatment",
    vitals: dict[str, Any] | None = None,
    history: list[dict[str, Any]] | None = None,
    results: list[dict[str, Any]] | None = None,
) -> PatientSnapshot:
    """
    Build a snapshot; `history` is given most-recent-first as plain
    measurement dicts and stamped five minutes apart.
    """
    records = [
        VitalsRecord(
            recorded_at=BASE_TIME - timedelta(minutes=5 * index),
            measurements=VitalsMeasurements(**measurements),
        )
        for index, measurements in enumerate(history or [])
    ]
    return PatientSnapshot(
        id=patient_id,
        name=name,
        status=status,
        vitals=VitalsMeasurements(**vitals) if vitals is not None else None,
        vitals_history=records,
        results=[LabResult(**result) for result in results or []],
    )


def patient_record(patient_id: str = "p1", name: str = "Asha Rao", **fields: Any) -> dict[str, Any]:
    """Raw roster JSON for HTTP tests."""
    return {"id": patient_id, "name": name, "status": "In Treatment", **fields}
