from typing import Any, Dict, Optional

from celery import Task
from celery.exceptions import Reject

from accessibility_scanner.features.scan.exceptions import JobAttemptFailed
from accessibility_scanner.features.scan.services.broker.job_broker import (
    JobBroker,
    JobStatus,
    RetryPolicy,
    ScanJob,
)
from accessibility_scanner.features.scan.workers.gate import GateClosed
from accessibility_scanner.features.scan.workers.processor import ScanJobProcessor
from accessibility_scanner.platform.celery_app import SCAN_TASK_NAME, celery_app
from accessibility_scanner.platform.logger import get_logger

logger = get_logger(__name__)


class ScanJobTask(Task):
    """
    Task base carrying the worker's process-scoped collaborators. They are
    bound once by the worker pool at startup, never created lazily here.
    """
    processor: Optional[ScanJobProcessor] = None
    broker: Optional[JobBroker] = None

    def record_terminal(self, job_id: str, status: JobStatus) -> None:
        if self.broker is not None:
            self.broker.record_terminal(job_id, status)


def bind_worker_context(processor: Optional[ScanJobProcessor], broker: Optional[JobBroker]) -> None:
    run_scan_job.processor = processor
    run_scan_job.broker = broker


@celery_app.task(
    bind=True,
    base=ScanJobTask,
    name=SCAN_TASK_NAME,
    acks_late=True,
    reject_on_worker_lost=True,
)
def run_scan_job(
    self,
    job_id: str,
    submitted_url: str,
    original_job_id: Optional[str] = None,
    max_attempts: int = 3,
    backoff_base_seconds: float = 1.0,
) -> Dict[str, Any]:
    """
    Run the accessibility scan for one job delivery.

    Args:
        job_id: Broker-issued job id (also the Celery task id)
        submitted_url: Normalized URL to audit
        original_job_id: Client-visible submission id
        max_attempts: Total deliveries allowed before the job is failed
        backoff_base_seconds: Delay after the first failed attempt; doubles each time

    Returns:
        Dict with the job id and a violation count
    """
    if self.processor is None:
        # Not bound yet: hand the lease back instead of burning an attempt
        raise Reject("Scan worker is not initialised", requeue=True)

    policy = RetryPolicy(max_attempts=max(1, max_attempts), backoff_base_seconds=backoff_base_seconds)
    attempt = self.request.retries + 1
    job = ScanJob(
        id=job_id,
        submitted_url=submitted_url,
        original_job_id=original_job_id or job_id,
        attempts=attempt,
    )

    logger.info(f"[{job_id}] Leased job for {submitted_url} (attempt {attempt}/{policy.max_attempts})")

    try:
        result = self.processor.process(job, policy)

    except GateClosed as e:
        logger.info(f"[{job_id}] {e}; returning job to the queue")
        raise Reject(str(e), requeue=True)

    except JobAttemptFailed as e:
        if policy.is_final(attempt):
            logger.error(f"[{job_id}] Job failed after {attempt} attempts: {e.reason}")
            self.record_terminal(job_id, JobStatus.failed)
            raise

        countdown = policy.delay_for(attempt)
        logger.warning(f"[{job_id}] Attempt {attempt} failed, retrying in {countdown:g}s: {e.reason}")
        raise self.retry(exc=e, countdown=countdown, max_retries=policy.max_attempts - 1)

    self.record_terminal(job_id, JobStatus.completed)
    return {
        "job_id": job_id,
        "success": True,
        "violations": len(result.violations or []),
    }
