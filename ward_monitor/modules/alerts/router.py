"""Alert feed, badge counts, acknowledgment and push endpoints."""

import asyncio
import json

import structlog
from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import StreamingResponse

from ward_monitor.modules.alerts.schemas import (
    AcknowledgeAllResponse,
    AcknowledgeResponse,
    AlertCountsResponse,
    AlertPayload,
)
from ward_monitor.modules.alerts.service import alert_manager, monitor_service
from ward_monitor.shared.constants import Severity

router = APIRouter()
log = structlog.get_logger(__name__)

SSE_KEEPALIVE_SECONDS = 30.0


@router.get("", response_model=list[AlertPayload], response_model_by_alias=True)
async def read_alerts(
    unacknowledged_only: bool = False, severity: Severity | None = None
) -> list[AlertPayload]:
    """Alert history, most recent first."""
    alerts = monitor_service.get_alerts(unacknowledged_only=unacknowledged_only, severity=severity)
    return [AlertPayload.from_alert(alert) for alert in alerts]


@router.get("/counts", response_model=AlertCountsResponse, response_model_by_alias=True)
async def read_alert_counts() -> AlertCountsResponse:
    return AlertCountsResponse.from_counts(monitor_service.get_counts())


@router.post(
    "/acknowledge-all",
    response_model=AcknowledgeAllResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_200_OK,
)
async def acknowledge_all_alerts() -> AcknowledgeAllResponse:
    changed = await monitor_service.acknowledge_all()
    return AcknowledgeAllResponse(
        acknowledged=changed,
        total_unacknowledged=monitor_service.get_counts().total_unacknowledged,
    )


@router.post(
    "/{alert_id}/acknowledge",
    response_model=AcknowledgeResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_200_OK,
)
async def acknowledge_alert(alert_id: str) -> AcknowledgeResponse:
    """
    Acknowledge one alert.

    An id that was never issued or has already been evicted is not an
    error: the response simply reports acknowledged=false.
    """
    found = await monitor_service.acknowledge(alert_id)
    return AcknowledgeResponse(alert_id=alert_id, acknowledged=found)


# ========== SSE push channel ==========


@router.get("/stream")
async def stream_alerts(
    request: Request, patient_id: str | None = None, critical_only: bool = False
) -> StreamingResponse:
    """
    Server-Sent Events stream of new alerts and acknowledgments.

    Query Parameters:
    - patient_id: limit to one patient (all patients when omitted)
    - critical_only: only forward critical alerts
    """

    async def event_generator():
        queue: asyncio.Queue = asyncio.Queue(maxsize=100)
        alert_manager.subscribe_sse(queue, patient_id=patient_id, critical_only=critical_only)
        log.info("sse alert stream connected", patient_id=patient_id, critical_only=critical_only)
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=SSE_KEEPALIVE_SECONDS)
                    yield f"data: {json.dumps(event)}\n\n"
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
        finally:
            alert_manager.unsubscribe_sse(queue)
            log.info("sse alert stream closed", patient_id=patient_id)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


# ========== WebSocket push channel ==========


async def _process_alert_message(raw_message: str) -> None:
    try:
        data = json.loads(raw_message)
    except json.JSONDecodeError:
        return
    if not isinstance(data, dict):
        return

    event = data.get("event") or data.get("type")
    if event == "ack_all":
        await monitor_service.acknowledge_all()
        return
    if event != "ack":
        return
    alert_id = data.get("alertId") or data.get("alert_id")
    if isinstance(alert_id, str) and alert_id:
        await monitor_service.acknowledge(alert_id)


@router.websocket("/ws")
async def websocket_alerts(
    websocket: WebSocket, patient_id: str | None = None, critical_only: bool = False
) -> None:
    await alert_manager.connect(websocket, patient_id=patient_id, critical_only=critical_only)
    log.info("alerts websocket connected", patient_id=patient_id, critical_only=critical_only)
    try:
        while True:
            raw_message = await websocket.receive_text()
            await _process_alert_message(raw_message)
    except WebSocketDisconnect:
        alert_manager.disconnect(websocket)
        log.info("alerts websocket disconnected", patient_id=patient_id)
