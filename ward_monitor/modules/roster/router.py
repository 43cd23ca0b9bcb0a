from typing import Any

import structlog
from fastapi import APIRouter, Body, HTTPException

from ward_monitor.modules.alerts.schemas import AlertPayload
from ward_monitor.modules.alerts.service import monitor_service
from ward_monitor.modules.roster.schemas import (
    EvaluationResponse,
    RosterEntry,
    RosterSummary,
    RosterUpdateResponse,
)
from ward_monitor.modules.roster.service import parse_roster, parse_snapshot

router = APIRouter()
log = structlog.get_logger(__name__)


@router.put("", response_model=RosterUpdateResponse, response_model_by_alias=True)
async def replace_roster(records: list[Any] = Body(...)) -> RosterUpdateResponse:
    """
    Replace the whole roster and evaluate it.

    Records are validated one by one, so a malformed patient is dropped
    and reported in `rejected` instead of failing the update.
    """
    parsed = parse_roster(records)
    created = await monitor_service.replace_roster(parsed.snapshots)
    return RosterUpdateResponse(
        accepted=len(parsed.snapshots),
        rejected=parsed.rejected,
        monitored=sum(1 for snapshot in parsed.snapshots if not snapshot.is_discharged),
        new_alerts=[AlertPayload.from_alert(alert) for alert in created],
    )


@router.get("", response_model=RosterSummary, response_model_by_alias=True)
async def read_roster() -> RosterSummary:
    entries = [RosterEntry.from_snapshot(snapshot) for snapshot in monitor_service.roster]
    monitored = sum(1 for entry in entries if entry.monitored)
    return RosterSummary(
        total=len(entries),
        monitored=monitored,
        discharged=len(entries) - monitored,
        patients=entries,
    )


@router.put(
    "/patients/{patient_id}",
    response_model=EvaluationResponse,
    response_model_by_alias=True,
)
async def upsert_patient(patient_id: str, record: dict[str, Any] = Body(...)) -> EvaluationResponse:
    snapshot = parse_snapshot({**record, "id": patient_id})
    if snapshot is None:
        raise HTTPException(
            status_code=422,
            detail="Patient record is missing required fields",
        )
    created = await monitor_service.upsert_patient(snapshot)
    return EvaluationResponse(new_alerts=[AlertPayload.from_alert(alert) for alert in created])


@router.delete("/patients/{patient_id}")
async def remove_patient(patient_id: str) -> dict[str, bool]:
    removed = monitor_service.remove_patient(patient_id)
    if removed:
        log.info("patient removed from roster", patient_id=patient_id)
    return {"removed": removed}


@router.post("/evaluate", response_model=EvaluationResponse, response_model_by_alias=True)
async def evaluate_roster() -> EvaluationResponse:
    created = await monitor_service.evaluate()
    return EvaluationResponse(new_alerts=[AlertPayload.from_alert(alert) for alert in created])
