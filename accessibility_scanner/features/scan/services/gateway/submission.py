import uuid
from dataclasses import dataclass

from accessibility_scanner.features.scan.exceptions import ValidationError
from accessibility_scanner.features.scan.services.broker.job_broker import JobBroker, RetryPolicy, ScanJob
from accessibility_scanner.platform.logger import get_logger
from accessibility_scanner.platform.utils.url_validator import validate_url

logger = get_logger(__name__)


@dataclass(frozen=True)
class SubmissionReceipt:
    job_id: str
    submitted_url: str


class SubmissionGateway:
    """Accepts a URL, enqueues a scan job for it and returns without waiting."""

    def __init__(self, broker: JobBroker, policy: RetryPolicy):
        self.broker = broker
        self.policy = policy

    def submit(self, url: str) -> SubmissionReceipt:
        is_valid, normalized_url, error_message = validate_url(url or "")
        if not is_valid:
            logger.warning(f"Rejected scan submission for {url!r}: {error_message}")
            raise ValidationError(
                error_message,
                details=[{"field": "url", "message": error_message, "value": url}],
            )

        job_id = str(uuid.uuid4())
        job = ScanJob(id=job_id, submitted_url=normalized_url, original_job_id=job_id)

        # EnqueueFailure propagates to the caller; each resubmission gets a new id
        self.broker.enqueue(job, self.policy)

        return SubmissionReceipt(job_id=job_id, submitted_url=normalized_url)
