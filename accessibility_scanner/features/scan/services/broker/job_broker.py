"""
Job Queue Broker

Thin ownership layer over the Celery app: connection lifecycle, enqueueing a
scan job with its retry policy, reading broker-side job state, and bounded
retention of terminal job records.

Delivery guarantees come from the Celery configuration in
platform/celery_app.py (late acks, requeue on worker loss, visibility
timeout). Delivery is at-least-once.
"""
import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional

import redis
from celery import Celery, states

from accessibility_scanner.features.scan.exceptions import EnqueueFailure
from accessibility_scanner.platform.celery_app import SCAN_TASK_NAME
from accessibility_scanner.platform.config import Settings
from accessibility_scanner.platform.logger import get_logger

logger = get_logger(__name__)


class JobStatus(str, enum.Enum):
    queued = "queued"
    leased = "leased"
    completed = "completed"
    failed = "failed"


# PENDING also covers ids the backend has never seen or has already evicted
_STATUS_BY_CELERY_STATE = {
    states.PENDING: JobStatus.queued,
    states.RECEIVED: JobStatus.queued,
    states.RETRY: JobStatus.queued,
    states.REJECTED: JobStatus.queued,
    states.STARTED: JobStatus.leased,
    states.SUCCESS: JobStatus.completed,
    states.FAILURE: JobStatus.failed,
    states.REVOKED: JobStatus.failed,
}


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_base_seconds: float = 1.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, settings.SCAN_MAX_ATTEMPTS),
            backoff_base_seconds=settings.SCAN_BACKOFF_BASE_SECONDS,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay before the delivery that follows failed attempt number `attempt` (1-based)."""
        return self.backoff_base_seconds * (2 ** (max(attempt, 1) - 1))

    def is_final(self, attempt: int) -> bool:
        return attempt >= self.max_attempts


@dataclass(frozen=True)
class ScanJob:
    id: str
    submitted_url: str
    original_job_id: str
    attempts: int = 0

    def payload(self, policy: RetryPolicy) -> Dict[str, Any]:
        return {
            "job_id": self.id,
            "submitted_url": self.submitted_url,
            "original_job_id": self.original_job_id,
            "max_attempts": policy.max_attempts,
            "backoff_base_seconds": policy.backoff_base_seconds,
        }


@dataclass(frozen=True)
class JobState:
    job_id: str
    status: JobStatus
    attempts: Optional[int] = None


class JobBroker:

    def __init__(self, celery_app: Celery, settings: Settings, redis_client: Optional[Any] = None):
        self.celery_app = celery_app
        self.settings = settings
        self._redis = redis_client
        self._connection = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        connection = self.celery_app.connection_for_write()
        connection.ensure_connection(max_retries=self.settings.BROKER_CONNECT_RETRIES)
        self._connection = connection

        if self._redis is None and self.settings.CELERY_RESULT_BACKEND.startswith(("redis://", "rediss://")):
            self._redis = redis.from_url(self.settings.CELERY_RESULT_BACKEND)

        logger.info(f"Connected to job broker, queue '{self.settings.SCAN_QUEUE_NAME}'")

    def close(self) -> None:
        if self._connection is not None:
            try:
                self._connection.release()
            except Exception as e:
                logger.warning(f"Error releasing broker connection: {e}")
            self._connection = None

        if self._redis is not None:
            try:
                self._redis.close()
            except Exception as e:
                logger.warning(f"Error closing retention client: {e}")
            self._redis = None

        logger.info("Job broker connection released")

    def ping(self) -> None:
        with self.celery_app.connection_for_write() as connection:
            connection.ensure_connection(max_retries=1)

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def enqueue(self, job: ScanJob, policy: RetryPolicy) -> None:
        """
        Publish job once. Publishing is not retried here; a failure is
        reported to the caller, who must resubmit.
        """
        try:
            self.celery_app.send_task(
                SCAN_TASK_NAME,
                kwargs=job.payload(policy),
                task_id=job.id,
                queue=self.settings.SCAN_QUEUE_NAME,
                retry=False,
            )
        except Exception as e:
            logger.error(f"[{job.id}] Failed to enqueue job in '{self.settings.SCAN_QUEUE_NAME}': {e}")
            raise EnqueueFailure(f"Failed to enqueue job {job.id}: {e}") from e

        logger.info(f"[{job.id}] Job enqueued in '{self.settings.SCAN_QUEUE_NAME}' for {job.submitted_url}")

    def job_state(self, job_id: str) -> JobState:
        result = self.celery_app.AsyncResult(job_id)
        state = result.state
        status = _STATUS_BY_CELERY_STATE.get(state, JobStatus.queued)

        attempts = None
        if state != states.PENDING:
            attempts = (result.retries or 0) + 1

        return JobState(job_id=job_id, status=status, attempts=attempts)

    def record_terminal(self, job_id: str, status: JobStatus) -> None:
        """
        Keep the most recent JOB_RETENTION_COUNT terminal jobs per status and
        evict the oldest ones from the result backend. Best effort: the
        authoritative record is the result store.
        """
        if self._redis is None:
            return

        key = f"{self.settings.SCAN_QUEUE_NAME}:{status.value}"
        keep = max(self.settings.JOB_RETENTION_COUNT, 1)
        try:
            pipe = self._redis.pipeline()
            pipe.lpush(key, job_id)
            pipe.lrange(key, keep, -1)
            pipe.ltrim(key, 0, keep - 1)
            _, evicted, _ = pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"[{job_id}] Could not record terminal state '{status.value}': {e}")
            return

        for old_id in evicted:
            if isinstance(old_id, bytes):
                old_id = old_id.decode("utf-8")
            try:
                self.celery_app.AsyncResult(old_id).forget()
            except Exception as e:
                logger.warning(f"[{old_id}] Could not evict job record: {e}")
        if evicted:
            logger.info(f"Evicted {len(evicted)} {status.value} job records")
