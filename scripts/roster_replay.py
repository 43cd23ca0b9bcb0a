#!/usr/bin/env python3
"""
Drive a running ward monitor from the command line.

Usage:
    # Push a roster file (JSON list of patient records)
    python scripts/roster_replay.py push --file roster.json

    # Replay several roster files in order, pausing between ticks
    python scripts/roster_replay.py replay tick1.json tick2.json tick3.json --delay 10

    # Show the alert feed and badge counts
    python scripts/roster_replay.py alerts --unacknowledged-only

    # Acknowledge everything
    python scripts/roster_replay.py ack-all

    # Follow the SSE push channel
    python scripts/roster_replay.py listen --critical-only
"""

import asyncio
import json
import time
from pathlib import Path
from typing import Any

import httpx
import typer

app = typer.Typer()

BASE_URL = "http://localhost:8000"
API = f"{BASE_URL}/api/v1"


def _load_roster(path: Path) -> list[Any]:
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        typer.echo(f"Cannot read roster {path}: {exc}", err=True)
        raise typer.Exit(1)
    if isinstance(data, dict):
        data = data.get("patients", [])
    if not isinstance(data, list):
        typer.echo(f"Roster {path} must be a list of patients", err=True)
        raise typer.Exit(1)
    return data


def _print_alert(alert: dict[str, Any]) -> None:
    marker = "!!" if alert.get("severity") == "critical" else " !"
    ack = " (ack)" if alert.get("acknowledged") else ""
    typer.echo(f"{marker} [{alert.get('category')}] {alert.get('message')}{ack}  id={alert.get('alertId')}")


def _push(client: httpx.Client, path: Path) -> None:
    response = client.put(f"{API}/roster", json=_load_roster(path))
    if response.status_code != 200:
        typer.echo(f"Roster push failed: {response.status_code} {response.text}", err=True)
        raise typer.Exit(1)
    body = response.json()
    typer.echo(
        f"{path.name}: accepted={body['accepted']} rejected={body['rejected']} "
        f"monitored={body['monitored']} new_alerts={len(body['newAlerts'])}"
    )
    for alert in body["newAlerts"]:
        _print_alert(alert)


@app.command()
def push(file: Path = typer.Option(..., exists=True, help="JSON roster file")):
    """Replace the roster with the contents of a file."""
    with httpx.Client() as client:
        _push(client, file)


@app.command()
def replay(
    files: list[Path] = typer.Argument(..., exists=True, help="Roster files, one per tick"),
    delay: float = typer.Option(10.0, help="Seconds between ticks"),
):
    """Push roster files one after another to simulate a live feed."""
    with httpx.Client() as client:
        for index, path in enumerate(files):
            if index:
                time.sleep(delay)
            _push(client, path)


@app.command()
def alerts(unacknowledged_only: bool = typer.Option(False, help="Hide acknowledged alerts")):
    """Print the alert feed and badge counts."""
    with httpx.Client() as client:
        feed = client.get(f"{API}/alerts", params={"unacknowledged_only": unacknowledged_only})
        counts = client.get(f"{API}/alerts/counts")
    for alert in feed.json():
        _print_alert(alert)
    body = counts.json()
    typer.echo(
        f"critical={body['critical']} warning={body['warning']} "
        f"unacknowledged={body['totalUnacknowledged']} total={body['total']}"
    )


@app.command()
def ack_all():
    """Acknowledge every pending alert."""
    with httpx.Client() as client:
        response = client.post(f"{API}/alerts/acknowledge-all")
    typer.echo(f"Acknowledged {response.json()['acknowledged']} alert(s)")


@app.command()
def listen(
    patient_id: str = typer.Option(None, help="Only alerts for this patient"),
    critical_only: bool = typer.Option(False, help="Only critical alerts"),
):
    """Follow the SSE alert stream until interrupted."""
    try:
        asyncio.run(_listen(patient_id, critical_only))
    except KeyboardInterrupt:
        typer.echo("Disconnected")


async def _listen(patient_id: str | None, critical_only: bool) -> None:
    params: dict[str, Any] = {"critical_only": critical_only}
    if patient_id:
        params["patient_id"] = patient_id

    async with httpx.AsyncClient(timeout=None) as client:
        async with client.stream("GET", f"{API}/alerts/stream", params=params) as response:
            if response.status_code != 200:
                typer.echo(f"Connection failed: {response.status_code}", err=True)
                return
            typer.echo("Connected, waiting for alerts...")
            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                try:
                    event = json.loads(line[5:].strip())
                except json.JSONDecodeError:
                    typer.echo(line)
                    continue
                if event.get("event") == "alert_acknowledged":
                    typer.echo(f"   acknowledged: {', '.join(event.get('alertIds', []))}")
                else:
                    _print_alert(event)


if __name__ == "__main__":
    app()
