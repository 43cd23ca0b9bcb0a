from __future__ import annotations

from ward_monitor.modules.alerts.config import (
    MonitorRulesConfig,
    ThresholdBounds,
    VitalRuleConfig,
)
from ward_monitor.modules.alerts.models import Finding, format_value
from ward_monitor.modules.roster.models import VitalsMeasurements
from ward_monitor.shared.constants import Direction, FindingCategory, Severity

_TIERS = (Severity.CRITICAL, Severity.WARNING)


class ThresholdEvaluator:
    """Compare one set of vitals against the critical and warning tiers."""

    def __init__(self, rules: MonitorRulesConfig) -> None:
        self._rules = rules

    def evaluate(
        self,
        vitals: VitalsMeasurements | None,
        patient_id: str,
        patient_name: str,
    ) -> list[Finding]:
        if vitals is None:
            return []

        findings: list[Finding] = []
        for vital_key, rule in self._rules.vitals.items():
            value = vitals.value_of(vital_key)
            if value is None:
                continue
            finding = self._evaluate_vital(vital_key, rule, float(value), patient_id, patient_name)
            if finding:
                findings.append(finding)
        return findings

    def _evaluate_vital(
        self,
        vital_key: str,
        rule: VitalRuleConfig,
        value: float,
        patient_id: str,
        patient_name: str,
    ) -> Finding | None:
        for severity in _TIERS:
            breach = self._breach(value, rule.bounds_for(severity))
            if breach is None:
                continue
            direction, threshold = breach
            return Finding(
                patient_id=patient_id,
                patient_name=patient_name,
                category=FindingCategory.VITALS,
                severity=severity,
                parameter=vital_key,
                message=self._build_message(rule, severity, direction, value, threshold, patient_name),
                value=value,
                threshold=threshold,
                direction=direction,
            )
        return None

    @staticmethod
    def _breach(value: float, bounds: ThresholdBounds) -> tuple[Direction, float] | None:
        # a value sitting exactly on a cutoff counts as breaching it
        if bounds.low is not None and value <= bounds.low:
            return Direction.LOW, float(bounds.low)
        if bounds.high is not None and value >= bounds.high:
            return Direction.HIGH, float(bounds.high)
        return None

    @staticmethod
    def _build_message(
        rule: VitalRuleConfig,
        severity: Severity,
        direction: Direction,
        value: float,
        threshold: float,
        patient_name: str,
    ) -> str:
        condition = rule.conditions.for_breach(severity, direction.value)
        if not condition:
            condition = f"{rule.label} {direction.value}"
        spacer = " " if rule.unit[:1].isalpha() else ""
        reading = f"{rule.abbreviation} {format_value(value)}{spacer}{rule.unit}"
        limit = f"{'<=' if direction is Direction.LOW else '>='} {format_value(threshold)}"
        return f"{severity.value.upper()}: {patient_name} - {condition} ({reading}, limit {limit})"
