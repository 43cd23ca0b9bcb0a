from ward_monitor.modules.alerts.schemas import AlertPayload
from ward_monitor.modules.roster.models import PatientSnapshot
from ward_monitor.shared.schemas import CamelModel


class EvaluationResponse(CamelModel):
    """Alerts created by the evaluation pass a request triggered."""

    new_alerts: list[AlertPayload] = []


class RosterUpdateResponse(EvaluationResponse):
    accepted: int
    rejected: int
    monitored: int


class RosterEntry(CamelModel):
    id: str
    name: str
    status: str
    monitored: bool
    history_length: int
    lab_results: int

    @classmethod
    def from_snapshot(cls, snapshot: PatientSnapshot) -> "RosterEntry":
        return cls(
            id=snapshot.id,
            name=snapshot.name,
            status=snapshot.status,
            monitored=not snapshot.is_discharged,
            history_length=len(snapshot.vitals_history),
            lab_results=len(snapshot.results),
        )


class RosterSummary(CamelModel):
    total: int
    monitored: int
    discharged: int
    patients: list[RosterEntry]
