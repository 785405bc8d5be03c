"""
Scan Schemas

Domain and wire models for accessibility scans. Field names are snake_case in
Python and camelCase on the wire.
"""
import base64
import enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Audit engine output
# ============================================================================

class ViolationImpact(str, enum.Enum):
    minor = "minor"
    moderate = "moderate"
    serious = "serious"
    critical = "critical"


class NodeCheck(CamelModel):
    """One axe check attached to an affected node (from its any/all/none lists)."""
    group: Literal["any", "all", "none"]
    id: str
    impact: Optional[str] = None
    message: str = ""


class AffectedNode(CamelModel):
    html_snippet: str = ""
    target_selectors: List[str] = Field(default_factory=list)
    failure_summary: Optional[str] = None
    checks: List[NodeCheck] = Field(default_factory=list)

    @classmethod
    def from_axe(cls, raw: Dict[str, Any]) -> "AffectedNode":
        checks = []
        for group in ("any", "all", "none"):
            for check in raw.get(group) or []:
                checks.append(NodeCheck(
                    group=group,
                    id=str(check.get("id", "")),
                    impact=check.get("impact"),
                    message=check.get("message") or "",
                ))

        # axe reports iframe/shadow targets as nested lists
        targets = []
        for target in raw.get("target") or []:
            if isinstance(target, list):
                targets.append(" ".join(str(part) for part in target))
            else:
                targets.append(str(target))

        return cls(
            html_snippet=raw.get("html") or "",
            target_selectors=targets,
            failure_summary=raw.get("failureSummary"),
            checks=checks,
        )


class Violation(CamelModel):
    rule_id: str
    impact: Optional[ViolationImpact] = None
    description: str = ""
    help_text: str = ""
    help_url: str = ""
    tags: List[str] = Field(default_factory=list)
    affected_nodes: List[AffectedNode] = Field(default_factory=list)

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, tags: List[str]) -> List[str]:
        return list(dict.fromkeys(tags))

    @classmethod
    def from_axe(cls, raw: Dict[str, Any]) -> "Violation":
        impact = raw.get("impact")
        return cls(
            rule_id=raw["id"],
            impact=impact if impact in ViolationImpact.__members__ else None,
            description=raw.get("description") or "",
            help_text=raw.get("help") or "",
            help_url=raw.get("helpUrl") or "",
            tags=list(raw.get("tags") or []),
            affected_nodes=[AffectedNode.from_axe(node) for node in raw.get("nodes") or []],
        )


# ============================================================================
# Pipeline outcome and stored result
# ============================================================================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditOutcome(BaseModel):
    """What one run of the audit pipeline produced for a URL."""
    submitted_url: str
    success: bool
    actual_url: Optional[str] = None
    page_title: Optional[str] = None
    violations: Optional[List[Violation]] = None
    error_message: Optional[str] = None
    screenshot: Optional[bytes] = None
    timestamp: datetime = Field(default_factory=utcnow)


class ScanResult(CamelModel):
    job_id: str
    original_job_id: Optional[str] = None
    submitted_url: str
    actual_url: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    page_title: Optional[str] = None
    success: bool
    violations: Optional[List[Violation]] = None
    error_message: Optional[str] = None
    screenshot: Optional[bytes] = None

    @model_validator(mode="after")
    def check_outcome_shape(self) -> "ScanResult":
        if self.success:
            if self.violations is None:
                raise ValueError("a successful scan must carry a violations list")
            if self.error_message is not None:
                raise ValueError("a successful scan cannot carry an error message")
        else:
            if self.violations is not None:
                raise ValueError("a failed scan cannot carry violations")
            if not self.error_message:
                raise ValueError("a failed scan must carry an error message")
        return self

    @classmethod
    def from_outcome(cls, job_id: str, original_job_id: Optional[str], outcome: AuditOutcome) -> "ScanResult":
        return cls(
            job_id=job_id,
            original_job_id=original_job_id,
            submitted_url=outcome.submitted_url,
            actual_url=outcome.actual_url,
            timestamp=outcome.timestamp,
            page_title=outcome.page_title,
            success=outcome.success,
            violations=outcome.violations if outcome.success else None,
            error_message=None if outcome.success else (outcome.error_message or "Unknown error"),
            screenshot=outcome.screenshot,
        )


# ============================================================================
# API Schemas
# ============================================================================

class ScanWebsiteRequest(BaseModel):
    """Request to audit a website."""
    url: str

    model_config = ConfigDict(
        json_schema_extra={"example": {"url": "example.com"}}
    )


class ScanWebsiteResponse(CamelModel):
    """Response after a scan has been accepted and enqueued."""
    job_id: str
    submitted_url: str


class ScanResultResponse(CamelModel):
    """Stored scan result plus values derived on read."""
    job_id: str
    original_job_id: Optional[str] = None
    submitted_url: str
    actual_url: Optional[str] = None
    timestamp: datetime
    page_title: Optional[str] = None
    success: bool
    violations: Optional[List[Violation]] = None
    error_message: Optional[str] = None
    screenshot: Optional[str] = None  # base64 PNG
    score: int
    health_label: str

    @classmethod
    def build(cls, result: ScanResult, score: int, health_label: str) -> "ScanResultResponse":
        return cls(
            job_id=result.job_id,
            original_job_id=result.original_job_id,
            submitted_url=result.submitted_url,
            actual_url=result.actual_url,
            timestamp=result.timestamp,
            page_title=result.page_title,
            success=result.success,
            violations=result.violations,
            error_message=result.error_message,
            screenshot=base64.b64encode(result.screenshot).decode("ascii") if result.screenshot else None,
            score=score,
            health_label=health_label,
        )


class JobStateResponse(CamelModel):
    """Broker-side view of a job, for operational inspection."""
    job_id: str
    status: str
    attempts: Optional[int] = None
