import json
from pathlib import Path
from typing import Literal

import structlog
from pydantic import Field, model_validator

from ward_monitor.shared.constants import Severity
from ward_monitor.shared.schemas import CamelModel

log = structlog.get_logger(__name__)


class ThresholdBounds(CamelModel):
    low: float | None = None
    high: float | None = None


class ConditionLabels(CamelModel):
    """Clinical wording used in alert messages for each breached bound."""

    critical_low: str | None = None
    critical_high: str | None = None
    warning_low: str | None = None
    warning_high: str | None = None

    def for_breach(self, severity: Severity, direction: str) -> str | None:
        return getattr(self, f"{severity.value}_{direction}", None)


class VitalRuleConfig(CamelModel):
    label: str
    abbreviation: str
    unit: str = ""
    critical: ThresholdBounds = Field(default_factory=ThresholdBounds)
    warning: ThresholdBounds = Field(default_factory=ThresholdBounds)
    conditions: ConditionLabels = Field(default_factory=ConditionLabels)

    def bounds_for(self, severity: Severity) -> ThresholdBounds:
        return self.critical if severity is Severity.CRITICAL else self.warning


class TrendRuleConfig(CamelModel):
    label: str
    unit: str = ""
    # absolute: either direction counts; drop/rise: only that direction counts
    mode: Literal["absolute", "drop", "rise"] = "absolute"
    min_delta: float = Field(gt=0)
    # escalates a trend to critical; unset keeps every trend at warning
    critical_delta: float | None = Field(default=None, gt=0)


class LabRangeConfig(CamelModel):
    name: str
    unit: str = ""
    critical_low: float | None = None
    critical_high: float | None = None
    warning_low: float | None = None
    warning_high: float | None = None


class SuppressionConfig(CamelModel):
    critical_window_seconds: float = Field(default=60, gt=0)
    warning_window_seconds: float = Field(default=300, gt=0)

    @model_validator(mode="after")
    def critical_resurfaces_first(self) -> "SuppressionConfig":
        if self.critical_window_seconds >= self.warning_window_seconds:
            raise ValueError("critical suppression window must be shorter than the warning window")
        return self

    def window_for(self, severity: Severity) -> float:
        if severity is Severity.CRITICAL:
            return self.critical_window_seconds
        return self.warning_window_seconds


class MonitorRulesConfig(CamelModel):
    version: str = "builtin-v1"
    alert_history_limit: int = Field(default=20, ge=1)
    combine_trend_findings: bool = False
    suppression: SuppressionConfig = Field(default_factory=SuppressionConfig)
    vitals: dict[str, VitalRuleConfig] = Field(default_factory=dict)
    trends: dict[str, TrendRuleConfig] = Field(default_factory=dict)
    labs: dict[str, LabRangeConfig] = Field(default_factory=dict)


DEFAULT_RULES = MonitorRulesConfig(
    vitals={
        "pulse": VitalRuleConfig(
            label="Heart rate",
            abbreviation="HR",
            unit="bpm",
            critical=ThresholdBounds(low=40, high=150),
            warning=ThresholdBounds(low=50, high=120),
            conditions=ConditionLabels(
                critical_low="Bradycardia",
                critical_high="Tachycardia",
                warning_low="Low heart rate",
                warning_high="Elevated heart rate",
            ),
        ),
        "bp_sys": VitalRuleConfig(
            label="Systolic blood pressure",
            abbreviation="SBP",
            unit="mmHg",
            critical=ThresholdBounds(low=80, high=200),
            warning=ThresholdBounds(low=90, high=180),
            conditions=ConditionLabels(
                critical_low="Hypotension",
                critical_high="Hypertensive crisis",
                warning_low="Low blood pressure",
                warning_high="High blood pressure",
            ),
        ),
        "bp_dia": VitalRuleConfig(
            label="Diastolic blood pressure",
            abbreviation="DBP",
            unit="mmHg",
            critical=ThresholdBounds(low=40, high=120),
            warning=ThresholdBounds(low=50, high=110),
            conditions=ConditionLabels(
                critical_low="Diastolic hypotension",
                critical_high="Diastolic hypertensive crisis",
                warning_low="Low diastolic pressure",
                warning_high="High diastolic pressure",
            ),
        ),
        "spo2": VitalRuleConfig(
            label="SpO2",
            abbreviation="SpO2",
            unit="%",
            critical=ThresholdBounds(low=88),
            warning=ThresholdBounds(low=92),
            conditions=ConditionLabels(
                critical_low="Severe hypoxia",
                warning_low="Low oxygen saturation",
            ),
        ),
        "temp_c": VitalRuleConfig(
            label="Temperature",
            abbreviation="Temp",
            unit="°C",
            critical=ThresholdBounds(low=35.0, high=39.5),
            warning=ThresholdBounds(low=35.5, high=38.5),
            conditions=ConditionLabels(
                critical_low="Hypothermia",
                critical_high="High fever",
                warning_low="Low temperature",
                warning_high="Fever",
            ),
        ),
        "rr": VitalRuleConfig(
            label="Respiratory rate",
            abbreviation="RR",
            unit="/min",
            critical=ThresholdBounds(low=8, high=30),
            warning=ThresholdBounds(low=10, high=24),
            conditions=ConditionLabels(
                critical_low="Bradypnoea",
                critical_high="Respiratory distress",
                warning_low="Low respiratory rate",
                warning_high="Tachypnoea",
            ),
        ),
    },
    trends={
        "pulse": TrendRuleConfig(label="Heart rate", unit="bpm", mode="absolute", min_delta=20),
        "spo2": TrendRuleConfig(label="SpO2", unit="%", mode="drop", min_delta=3),
        "bp_sys": TrendRuleConfig(label="Systolic BP", unit="mmHg", mode="drop", min_delta=20),
        "temp_c": TrendRuleConfig(label="Temperature", unit="°C", mode="rise", min_delta=0.5),
    },
    labs={
        "hemoglobin": LabRangeConfig(name="Hemoglobin", unit="g/dL", critical_low=7, warning_low=10, critical_high=20),
        "platelet": LabRangeConfig(
            name="Platelet Count", unit="/µL", critical_low=20000, warning_low=50000, critical_high=1000000
        ),
        "wbc": LabRangeConfig(name="WBC Count", unit="/µL", critical_low=2000, warning_low=4000, critical_high=30000),
        "creatinine": LabRangeConfig(name="Creatinine", unit="mg/dL", critical_high=10, warning_high=4),
        "potassium": LabRangeConfig(
            name="Potassium", unit="mEq/L", critical_low=2.5, warning_low=3.5, critical_high=6.5, warning_high=5.5
        ),
        "sodium": LabRangeConfig(
            name="Sodium", unit="mEq/L", critical_low=120, warning_low=130, critical_high=160, warning_high=150
        ),
        "glucose": LabRangeConfig(
            name="Blood Glucose", unit="mg/dL", critical_low=40, warning_low=70, critical_high=500, warning_high=300
        ),
        "troponin": LabRangeConfig(name="Troponin", unit="ng/mL", critical_high=0.04),
        "hba1c": LabRangeConfig(name="HbA1c", unit="%", warning_high=7, critical_high=10),
        "inr": LabRangeConfig(name="INR", critical_high=5, warning_high=3.5),
        "bilirubin": LabRangeConfig(name="Bilirubin", unit="mg/dL", critical_high=15, warning_high=5),
    },
)


def load_rules(path: Path | None) -> MonitorRulesConfig:
    if path is None:
        return DEFAULT_RULES
    try:
        payload = json.loads(path.read_text())
        return MonitorRulesConfig.model_validate(payload)
    except FileNotFoundError:
        log.info("monitor rules file not found, using defaults", path=str(path))
        return DEFAULT_RULES
    except Exception as exc:
        log.warning("monitor rules load failed, using defaults", path=str(path), error=str(exc))
        return DEFAULT_RULES
