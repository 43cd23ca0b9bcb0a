from datetime import datetime

from pydantic import AliasChoices, Field, field_validator

from ward_monitor.shared.constants import PatientStatus
from ward_monitor.shared.schemas import FrozenCamelModel


class VitalsMeasurements(FrozenCamelModel):
    """One set of vital measurements. Any field may be unrecorded."""

    pulse: float | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("pulse", "heartRate", "heart_rate", "hr"),
    )
    bp_sys: float | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("bp_sys", "bpSys", "systolic")
    )
    bp_dia: float | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("bp_dia", "bpDia", "diastolic")
    )
    spo2: float | None = Field(default=None, ge=0, le=100)
    temp_c: float | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("temp_c", "tempC", "temperature")
    )
    rr: float | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("rr", "respiratoryRate", "respiratory_rate"),
    )

    def value_of(self, vital_key: str) -> float | None:
        return getattr(self, vital_key, None)


class VitalsRecord(FrozenCamelModel):
    recorded_at: datetime | None = None
    measurements: VitalsMeasurements = Field(default_factory=VitalsMeasurements)


class LabResult(FrozenCamelModel):
    id: str | None = Field(default=None, validation_alias=AliasChoices("id", "resultId", "result_id"))
    name: str = Field(min_length=1)
    value: str
    unit: str | None = None
    is_abnormal: bool = Field(
        default=False, validation_alias=AliasChoices("is_abnormal", "isAbnormal", "abnormal")
    )
    # None means the producer did not classify the range; see LabAbnormalityEvaluator
    is_critical: bool | None = Field(
        default=None, validation_alias=AliasChoices("is_critical", "isCritical", "critical")
    )
    timestamp: datetime | None = None

    @field_validator("value", mode="before")
    @classmethod
    def stringify_value(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class PatientSnapshot(FrozenCamelModel):
    """Monitorable state of a single patient as delivered by the roster feed."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    status: str = PatientStatus.IN_TREATMENT.value
    vitals: VitalsMeasurements | None = None
    # most recent first
    vitals_history: list[VitalsRecord] = Field(default_factory=list)
    results: list[LabResult] = Field(default_factory=list)

    @field_validator("id", "name", mode="before")
    @classmethod
    def strip_identity(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @property
    def is_discharged(self) -> bool:
        return self.status.strip().lower() == PatientStatus.DISCHARGED.value.lower()

    @property
    def current_vitals(self) -> VitalsMeasurements | None:
        if self.vitals is not None:
            return self.vitals
        if self.vitals_history:
            return self.vitals_history[0].measurements
        return None

    @property
    def trend_pair(self) -> tuple[VitalsMeasurements, VitalsMeasurements] | None:
        """(current, previous) readings from the history, when two exist."""
        if len(self.vitals_history) < 2:
            return None
        return self.vitals_history[0].measurements, self.vitals_history[1].measurements
