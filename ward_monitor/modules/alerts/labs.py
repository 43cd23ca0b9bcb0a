from __future__ import annotations

import re

from ward_monitor.modules.alerts.config import LabRangeConfig, MonitorRulesConfig
from ward_monitor.modules.alerts.models import Finding
from ward_monitor.modules.roster.models import LabResult
from ward_monitor.shared.constants import Direction, FindingCategory, Severity

LAB_KEY_PREFIX = "lab:"
_NON_NUMERIC = re.compile(r"[^0-9.\-]")


class LabAbnormalityEvaluator:
    """
    Turn abnormal lab results into findings.

    Severity comes from the result's own critical flag. Results that carry
    no flag fall back to the reference ranges in the rules, matched on the
    result name, which also supply the direction when the value parses.
    """

    def __init__(self, rules: MonitorRulesConfig) -> None:
        self._rules = rules

    def evaluate(
        self, results: list[LabResult], patient_id: str, patient_name: str
    ) -> list[Finding]:
        findings: list[Finding] = []
        for result in results:
            if not result.is_abnormal:
                continue
            findings.append(self._analyze(result, patient_id, patient_name))
        return findings

    def _analyze(self, result: LabResult, patient_id: str, patient_name: str) -> Finding:
        numeric_value = self.parse_value(result.value)
        reference = self.match_reference(result.name)

        inferred_severity = Severity.WARNING
        direction = Direction.ABNORMAL
        threshold: float | None = None
        if reference and numeric_value is not None:
            classified = self._classify(numeric_value, reference)
            if classified:
                inferred_severity, direction, threshold = classified

        if result.is_critical is None:
            severity = inferred_severity
        else:
            severity = Severity.CRITICAL if result.is_critical else Severity.WARNING

        unit = f" {result.unit}" if result.unit else ""
        return Finding(
            patient_id=patient_id,
            patient_name=patient_name,
            category=FindingCategory.LAB,
            severity=severity,
            parameter=f"{LAB_KEY_PREFIX}{result.name.strip().lower()}",
            message=(
                f"{severity.value.upper()}: {patient_name} - {result.name} "
                f"{direction.value.upper()} ({result.value}{unit})"
            ),
            value=numeric_value if numeric_value is not None else result.value,
            threshold=threshold,
            direction=direction,
        )

    def match_reference(self, result_name: str) -> LabRangeConfig | None:
        lowered = result_name.lower()
        for key, reference in self._rules.labs.items():
            if key in lowered or reference.name.lower() in lowered:
                return reference
        return None

    @staticmethod
    def parse_value(value: str) -> float | None:
        """Parse values such as "45,000" or "<0.01"; None when nothing numeric remains."""
        cleaned = _NON_NUMERIC.sub("", value.replace(",", ""))
        if not cleaned:
            return None
        try:
            return float(cleaned)
        except ValueError:
            return None

    @staticmethod
    def _classify(
        value: float, reference: LabRangeConfig
    ) -> tuple[Severity, Direction, float] | None:
        if reference.critical_low is not None and value < reference.critical_low:
            return Severity.CRITICAL, Direction.LOW, reference.critical_low
        if reference.critical_high is not None and value > reference.critical_high:
            return Severity.CRITICAL, Direction.HIGH, reference.critical_high
        if reference.warning_low is not None and value < reference.warning_low:
            return Severity.WARNING, Direction.LOW, reference.warning_low
        if reference.warning_high is not None and value > reference.warning_high:
            return Severity.WARNING, Direction.HIGH, reference.warning_high
        return None
