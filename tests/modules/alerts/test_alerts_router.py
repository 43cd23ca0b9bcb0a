from fastapi import status
from fastapi.testclient import TestClient
from httpx import AsyncClient

from ward_monitor.main import app
from ward_monitor.modules.alerts.service import alert_manager
from tests.modules.alerts.helpers import patient_record


async def _seed(client: AsyncClient) -> list[dict]:
    roster = [
        patient_record("p1", "Asha Rao", vitals={"pulse": 160}),
        patient_record("p2", "Ben Ortiz", vitals={"spo2": 91}),
    ]
    response = await client.put("/api/v1/roster", json=roster)
    return response.json()["newAlerts"]


async def test_feed_is_most_recent_first(client: AsyncClient) -> None:
    created = await _seed(client)

    response = await client.get("/api/v1/alerts")

    assert response.status_code == status.HTTP_200_OK
    feed = response.json()
    assert [alert["alertId"] for alert in feed] == [alert["alertId"] for alert in reversed(created)]
    assert set(feed[0]) >= {"alertId", "patientId", "severity", "category", "message", "createdAt"}


async def test_feed_filters(client: AsyncClient) -> None:
    await _seed(client)

    critical = await client.get("/api/v1/alerts", params={"severity": "critical"})
    pending = await client.get("/api/v1/alerts", params={"unacknowledged_only": True})

    assert [alert["patientId"] for alert in critical.json()] == ["p1"]
    assert len(pending.json()) == 2


async def test_counts_and_acknowledge_flow(client: AsyncClient) -> None:
    created = await _seed(client)
    critical_id = next(alert["alertId"] for alert in created if alert["severity"] == "critical")

    counts = (await client.get("/api/v1/alerts/counts")).json()
    assert counts == {"critical": 1, "warning": 1, "totalUnacknowledged": 2, "total": 2}

    response = await client.post(f"/api/v1/alerts/{critical_id}/acknowledge")
    assert response.json() == {"alertId": critical_id, "acknowledged": True}

    counts = (await client.get("/api/v1/alerts/counts")).json()
    assert counts == {"critical": 0, "warning": 1, "totalUnacknowledged": 1, "total": 2}

    pending = await client.get("/api/v1/alerts", params={"unacknowledged_only": True})
    assert [alert["severity"] for alert in pending.json()] == ["warning"]


async def test_acknowledge_unknown_alert(client: AsyncClient) -> None:
    response = await client.post("/api/v1/alerts/missing/acknowledge")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"alertId": "missing", "acknowledged": False}


async def test_acknowledge_all(client: AsyncClient) -> None:
    await _seed(client)

    first = await client.post("/api/v1/alerts/acknowledge-all")
    second = await client.post("/api/v1/alerts/acknowledge-all")

    assert first.json() == {"acknowledged": 2, "totalUnacknowledged": 0}
    assert second.json() == {"acknowledged": 0, "totalUnacknowledged": 0}


async def test_health_reports_monitor_state(client: AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "ok"
    assert response.headers["x-request-id"]


def test_alerts_ws_registers_and_cleans_up() -> None:
    client = TestClient(app)

    with client.websocket_connect("/api/v1/alerts/ws?patient_id=p1&critical_only=true") as ws:
        ws.send_text("not json")
        assert "p1" in alert_manager._connections
        assert alert_manager._connections["p1"][0].critical_only is True

    assert alert_manager._connections == {}


def test_alerts_ws_acknowledge_broadcasts_event() -> None:
    client = TestClient(app)
    response = client.put(
        "/api/v1/roster", json=[patient_record("p1", "Asha Rao", vitals={"pulse": 160})]
    )
    alert_id = response.json()["newAlerts"][0]["alertId"]

    with client.websocket_connect("/api/v1/alerts/ws") as ws:
        ws.send_json({"event": "ack", "alertId": alert_id})
        event = ws.receive_json()

    assert event["event"] == "alert_acknowledged"
    assert event["alertIds"] == [alert_id]
    counts = client.get("/api/v1/alerts/counts").json()
    assert counts["totalUnacknowledged"] == 0


def test_alerts_ws_acknowledge_all() -> None:
    client = TestClient(app)
    client.put(
        "/api/v1/roster",
        json=[
            patient_record("p1", "Asha Rao", vitals={"pulse": 160}),
            patient_record("p2", "Ben Ortiz", vitals={"rr": 35}),
        ],
    )

    with client.websocket_connect("/api/v1/alerts/ws?patient_id=all") as ws:
        ws.send_json({"event": "ack_all"})
        event = ws.receive_json()

    assert len(event["alertIds"]) == 2
    assert client.get("/api/v1/alerts/counts").json()["total"] == 2
