from dataclasses import dataclass
from typing import Dict, Optional

from accessibility_scanner.features.scan.schemas.scan import ScanResult, ViolationImpact

IMPACT_PENALTIES: Dict[Optional[ViolationImpact], int] = {
    ViolationImpact.critical: 10,
    ViolationImpact.serious: 5,
    ViolationImpact.moderate: 3,
    ViolationImpact.minor: 1,
    None: 1,
}

FAILED_SCAN_LABEL = "Scan Failed"


@dataclass(frozen=True)
class ScanScore:
    score: int
    health_label: str


def health_label_for(score: int) -> str:
    """Return a qualitative label for a 0-100 accessibility score."""
    if score >= 90:
        return "Excellent"
    elif score >= 75:
        return "Good"
    elif score >= 50:
        return "Fair"
    elif score >= 25:
        return "Poor"
    else:
        return "Critical"


def score_scan_result(result: ScanResult) -> ScanScore:
    """
    Derive the presentation score from the stored violations.
    Start at 100 and deduct a fixed penalty per violated rule by impact.
    Never persisted, so the rule can change without migrating data.
    """
    if not result.success:
        return ScanScore(score=0, health_label=FAILED_SCAN_LABEL)

    penalty = sum(IMPACT_PENALTIES.get(v.impact, 1) for v in result.violations or [])
    score = max(0, min(100, 100 - penalty))
    return ScanScore(score=score, health_label=health_label_for(score))
