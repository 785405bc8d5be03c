from sqlalchemy import JSON, Boolean, Column, DateTime, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB

from accessibility_scanner.platform.db.base import BaseModel


class ScanResultRecord(BaseModel):
    """Terminal outcome of one scan job. One row per job_id."""

    __tablename__ = "scan_results"

    job_id = Column(String(255), unique=True, nullable=False, index=True)
    original_job_id = Column(String(255), nullable=True, index=True)

    submitted_url = Column(Text, nullable=False)
    actual_url = Column(Text, nullable=True)  # after redirects
    scan_timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)
    page_title = Column(Text, nullable=True)

    scan_success = Column(Boolean, nullable=False)
    violations = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    error_message = Column(Text, nullable=True)

    page_screenshot = Column(Text, nullable=True)  # base64 encoded PNG
