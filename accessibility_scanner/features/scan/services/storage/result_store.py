"""
Result Store

Durable storage for terminal scan outcomes, keyed by job id. Writes are
upserts so a redelivered job can never produce a second row.
"""
import base64
import binascii
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Union

from sqlalchemy import case, or_, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from accessibility_scanner.features.scan.exceptions import PersistenceFailure
from accessibility_scanner.features.scan.models.scan_result import ScanResultRecord
from accessibility_scanner.features.scan.schemas.scan import ScanResult, Violation
from accessibility_scanner.platform.logger import get_logger

logger = get_logger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


@dataclass(frozen=True)
class EncodedViolations:
    """Violations stored as a JSON document in a text value."""
    raw: str

    def decode(self) -> Optional[List[Violation]]:
        return DecodedViolations(json.loads(self.raw)).decode()


@dataclass(frozen=True)
class DecodedViolations:
    """Violations already structured by the database driver."""
    items: Optional[List[Any]]

    def decode(self) -> Optional[List[Violation]]:
        if self.items is None:
            return None
        return [Violation.model_validate(item) for item in self.items]


StoredViolations = Union[EncodedViolations, DecodedViolations]


def stored_violations(value: Any) -> StoredViolations:
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return EncodedViolations(value)
    return DecodedViolations(value)


class ResultStore:

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, result: ScanResult) -> None:
        """
        Upsert the row for result.job_id.

        An existing row is overwritten, except that a failed outcome never
        replaces a successful one for the same job.
        """
        values = self._to_row(result)
        table = ScanResultRecord.__table__

        with self._session_factory() as session:
            try:
                insert = self._insert_for(session)
                stmt = insert(table).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[table.c.job_id],
                    set_={name: stmt.excluded[name] for name in values if name != "job_id"},
                    where=or_(
                        table.c.scan_success.is_(False),
                        stmt.excluded.scan_success.is_(True),
                    ),
                )
                session.execute(stmt)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"[{result.job_id}] Failed to persist scan result: {e}", exc_info=True)
                raise PersistenceFailure(f"Failed to persist scan result for job {result.job_id}: {e}") from e

        logger.info(f"[{result.job_id}] Persisted scan result (success={result.success})")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, lookup_id: str) -> Optional[ScanResult]:
        """
        Find a result by job id or by original submission id.
        None means pending or unknown; callers cannot tell the two apart.
        """
        stmt = (
            select(ScanResultRecord)
            .where(or_(
                ScanResultRecord.job_id == lookup_id,
                ScanResultRecord.original_job_id == lookup_id,
            ))
            .order_by(
                case((ScanResultRecord.job_id == lookup_id, 0), else_=1),
                ScanResultRecord.id,
            )
            .limit(1)
        )
        with self._session_factory() as session:
            record = session.execute(stmt).scalar_one_or_none()
            if record is None:
                return None
            return self._from_row(record)

    def ping(self) -> None:
        with self._session_factory() as session:
            session.execute(text("SELECT 1"))

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _insert_for(session: Session):
        dialect = session.get_bind().dialect.name
        insert = _INSERT_BY_DIALECT.get(dialect)
        if insert is None:
            raise PersistenceFailure(f"Unsupported result store dialect: {dialect}")
        return insert

    @staticmethod
    def _to_row(result: ScanResult) -> dict:
        violations = None
        if result.violations is not None:
            violations = [v.model_dump(mode="json") for v in result.violations]

        screenshot = None
        if result.screenshot:
            screenshot = base64.b64encode(result.screenshot).decode("ascii")

        return {
            "job_id": result.job_id,
            "original_job_id": result.original_job_id,
            "submitted_url": result.submitted_url,
            "actual_url": result.actual_url,
            "scan_timestamp": result.timestamp,
            "page_title": result.page_title,
            "scan_success": result.success,
            "violations": violations,
            "error_message": result.error_message,
            "page_screenshot": screenshot,
        }

    @staticmethod
    def _from_row(record: ScanResultRecord) -> ScanResult:
        timestamp = record.scan_timestamp or datetime.now(timezone.utc)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        screenshot = None
        if record.page_screenshot:
            try:
                screenshot = base64.b64decode(record.page_screenshot)
            except (binascii.Error, ValueError):
                logger.warning(f"[{record.job_id}] Stored screenshot is not valid base64, ignoring it")

        violations = None
        if record.scan_success:
            violations = stored_violations(record.violations).decode() or []

        return ScanResult(
            job_id=record.job_id,
            original_job_id=record.original_job_id,
            submitted_url=record.submitted_url,
            actual_url=record.actual_url,
            timestamp=timestamp,
            page_title=record.page_title,
            success=record.scan_success,
            violations=violations,
            error_message=None if record.scan_success else (record.error_message or "Unknown error"),
            screenshot=screenshot,
        )
