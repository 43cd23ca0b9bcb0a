import asyncio
import inspect
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Union

import structlog
from fastapi import WebSocket

from ward_monitor.modules.alerts.models import Alert
from ward_monitor.modules.alerts.schemas import AlertPayload
from ward_monitor.shared.constants import Severity

log = structlog.get_logger(__name__)

AlertListener = Callable[[Alert], Union[Awaitable[None], None]]


@dataclass
class _Subscriber:
    target: Any
    critical_only: bool = False

    def wants(self, severity: Severity | None) -> bool:
        return severity is None or not self.critical_only or severity is Severity.CRITICAL


class AlertConnectionManager:
    """Fan new alerts out to WebSocket, SSE and in-process subscribers keyed by patient."""

    def __init__(self) -> None:
        self._connections: dict[str, list[_Subscriber]] = {}
        self._sse_queues: dict[str, list[_Subscriber]] = {}
        self._listeners: list[_Subscriber] = []

    # ========== WebSocket ==========

    async def connect(
        self, websocket: WebSocket, patient_id: str | None = None, critical_only: bool = False
    ) -> None:
        await websocket.accept()
        patient_key = self._normalize_patient_id(patient_id)
        self._connections.setdefault(patient_key, []).append(
            _Subscriber(target=websocket, critical_only=critical_only)
        )

    def disconnect(self, websocket: WebSocket) -> None:
        self._remove(self._connections, websocket)

    # ========== SSE ==========

    def subscribe_sse(
        self,
        queue: asyncio.Queue[dict[str, Any]],
        patient_id: str | None = None,
        critical_only: bool = False,
    ) -> None:
        patient_key = self._normalize_patient_id(patient_id)
        self._sse_queues.setdefault(patient_key, []).append(
            _Subscriber(target=queue, critical_only=critical_only)
        )

    def unsubscribe_sse(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        self._remove(self._sse_queues, queue)

    # ========== In-process listeners ==========

    def add_listener(self, listener: AlertListener, critical_only: bool = False) -> None:
        self._listeners.append(_Subscriber(target=listener, critical_only=critical_only))

    def remove_listener(self, listener: AlertListener) -> None:
        self._listeners = [sub for sub in self._listeners if sub.target is not listener]

    # ========== Delivery ==========

    async def publish(self, alert: Alert) -> None:
        """Deliver a newly created alert to every matching subscriber."""
        payload = AlertPayload.from_alert(alert).model_dump(by_alias=True, mode="json")
        await self.send(payload, patient_id=alert.patient_id, severity=alert.severity)

        for subscriber in list(self._listeners):
            if not subscriber.wants(alert.severity):
                continue
            try:
                result = subscriber.target(alert)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                log.exception("alert listener failed", alert_id=alert.alert_id)

    async def send(
        self,
        payload: dict[str, Any],
        patient_id: str | None = None,
        severity: Severity | None = None,
    ) -> None:
        """Send a raw payload to sockets and queues scoped to the patient or to all patients."""
        message = json.dumps(payload)
        for subscriber in list(self._iter(self._connections, patient_id)):
            if not subscriber.wants(severity):
                continue
            try:
                await subscriber.target.send_text(message)
            except Exception:
                self.disconnect(subscriber.target)

        for subscriber in self._iter(self._sse_queues, patient_id):
            if not subscriber.wants(severity):
                continue
            try:
                subscriber.target.put_nowait(payload)
            except asyncio.QueueFull:
                log.warning("sse subscriber lagging, alert dropped", patient_id=patient_id)

    @property
    def subscriber_count(self) -> int:
        return (
            sum(len(subs) for subs in self._connections.values())
            + sum(len(subs) for subs in self._sse_queues.values())
            + len(self._listeners)
        )

    def reset(self) -> None:
        self._connections.clear()
        self._sse_queues.clear()
        self._listeners.clear()

    # ========== Helpers ==========

    @staticmethod
    def _iter(registry: dict[str, list[_Subscriber]], patient_id: str | None) -> Iterable[_Subscriber]:
        if patient_id is None:
            keys = list(registry)
        else:
            keys = list({patient_id.strip(), "*"})
        for key in keys:
            yield from registry.get(key, [])

    @staticmethod
    def _remove(registry: dict[str, list[_Subscriber]], target: Any) -> None:
        for patient_key, subscribers in list(registry.items()):
            remaining = [sub for sub in subscribers if sub.target is not target]
            if remaining:
                registry[patient_key] = remaining
            else:
                registry.pop(patient_key, None)

    @staticmethod
    def _normalize_patient_id(patient_id: str | None) -> str:
        if not patient_id or patient_id.strip().lower() in {"*", "all"}:
            return "*"
        return patient_id.strip()
