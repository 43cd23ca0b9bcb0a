from __future__ import annotations

from ward_monitor.modules.alerts.config import MonitorRulesConfig, TrendRuleConfig
from ward_monitor.modules.alerts.models import Finding, TrendAssessment, format_value
from ward_monitor.modules.roster.models import VitalsMeasurements
from ward_monitor.shared.constants import Direction, FindingCategory, Severity

TREND_SUFFIX = "-trend"
COMBINED_TREND_KEY = "trend"


class TrendDetector:
    """
    Judge deterioration from two sequential readings of the same patient.

    Trend rules are independent of the absolute thresholds: a patient can
    be trending badly while every value is still inside safe bounds.
    """

    def __init__(self, rules: MonitorRulesConfig) -> None:
        self._rules = rules

    def detect(
        self,
        current: VitalsMeasurements | None,
        previous: VitalsMeasurements | None,
        patient_id: str = "",
        patient_name: str = "",
    ) -> TrendAssessment:
        if current is None or previous is None:
            return TrendAssessment(deteriorating=False, parameters=[])

        descriptions: list[str] = []
        findings: list[Finding] = []
        for vital_key, rule in self._rules.trends.items():
            now_value = current.value_of(vital_key)
            before_value = previous.value_of(vital_key)
            if now_value is None or before_value is None:
                continue
            # 37.1 -> 37.6 must not fall short of 0.5 on float error
            delta = round(float(now_value) - float(before_value), 6)
            magnitude = self._magnitude(rule, delta)
            if magnitude is None or magnitude < rule.min_delta:
                continue

            description = self._describe(rule, float(before_value), float(now_value), delta)
            descriptions.append(description)
            severity = Severity.WARNING
            if rule.critical_delta is not None and magnitude >= rule.critical_delta:
                severity = Severity.CRITICAL
            findings.append(
                Finding(
                    patient_id=patient_id,
                    patient_name=patient_name,
                    category=FindingCategory.TREND,
                    severity=severity,
                    parameter=f"{vital_key}{TREND_SUFFIX}",
                    message=f"DETERIORATING: {patient_name} - {description}",
                    value=float(now_value),
                    threshold=rule.min_delta,
                    direction=Direction.HIGH if delta > 0 else Direction.LOW,
                )
            )

        return TrendAssessment(
            deteriorating=bool(descriptions), parameters=descriptions, findings=findings
        )

    def combined_finding(self, assessment: TrendAssessment) -> Finding | None:
        """Collapse a deteriorating assessment into a single notification."""
        if not assessment.deteriorating or not assessment.findings:
            return None
        first = assessment.findings[0]
        worst = max(assessment.findings, key=lambda finding: finding.severity.rank)
        return Finding(
            patient_id=first.patient_id,
            patient_name=first.patient_name,
            category=FindingCategory.TREND,
            severity=worst.severity,
            parameter=COMBINED_TREND_KEY,
            message=f"DETERIORATING: {first.patient_name} - {', '.join(assessment.parameters)}",
        )

    @staticmethod
    def _magnitude(rule: TrendRuleConfig, delta: float) -> float | None:
        if rule.mode == "absolute":
            return abs(delta)
        if rule.mode == "drop":
            return -delta if delta < 0 else None
        return delta if delta > 0 else None

    @staticmethod
    def _describe(rule: TrendRuleConfig, before: float, now: float, delta: float) -> str:
        def reading(value: float) -> str:
            spacer = " " if rule.unit[:1].isalpha() else ""
            return f"{format_value(value)}{spacer}{rule.unit}"

        if rule.mode == "absolute":
            verb = "increased" if delta > 0 else "decreased"
            return f"{rule.label} {verb} by {reading(abs(delta))}"
        if rule.mode == "drop":
            return f"{rule.label} dropped from {reading(before)} to {reading(now)}"
        return f"{rule.label} rising ({reading(before)} -> {reading(now)})"
