from dataclasses import dataclass
from typing import Optional

from accessibility_scanner.features.scan.schemas.scan import ScanResult, ScanResultResponse
from accessibility_scanner.features.scan.services.storage.result_store import ResultStore
from accessibility_scanner.features.scan.services.utils.scoring import ScanScore, score_scan_result


@dataclass(frozen=True)
class ScanReport:
    result: ScanResult
    score: ScanScore


class ResultQueryService:
    """Read-only view over the result store for polling clients."""

    def __init__(self, store: ResultStore):
        self.store = store

    def get_result(self, lookup_id: str) -> Optional[ScanResultResponse]:
        report = self.get_report(lookup_id)
        if report is None:
            return None
        return ScanResultResponse.build(report.result, report.score.score, report.score.health_label)

    def get_report(self, lookup_id: str) -> Optional[ScanReport]:
        result = self.store.get(lookup_id)
        if result is None:
            return None
        return ScanReport(result=result, score=score_scan_result(result))
