from accessibility_scanner.features.scan.exceptions import JobAttemptFailed, PersistenceFailure
from accessibility_scanner.features.scan.schemas.scan import ScanResult
from accessibility_scanner.features.scan.services.broker.job_broker import RetryPolicy, ScanJob
from accessibility_scanner.features.scan.services.pipeline.audit_pipeline import AuditPipeline
from accessibility_scanner.features.scan.services.storage.result_store import ResultStore
from accessibility_scanner.features.scan.workers.gate import ExecutionGate, SlotState
from accessibility_scanner.platform.logger import get_logger

logger = get_logger(__name__)


class ScanJobProcessor:
    """
    Executes one leased job: pipeline, then persistence.

    A job attempt counts as successful only when the pipeline succeeded AND
    its result was persisted; every other path raises JobAttemptFailed so the
    broker can retry. On the final attempt a failed outcome is persisted as
    the job's terminal row before the failure is reported, including when
    the pipeline succeeded but its result could not be saved.
    """

    def __init__(self, pipeline: AuditPipeline, store: ResultStore, gate: ExecutionGate):
        self.pipeline = pipeline
        self.store = store
        self.gate = gate

    def process(self, job: ScanJob, policy: RetryPolicy) -> ScanResult:
        final_attempt = policy.is_final(job.attempts)

        with self.gate.slot(job.id) as slot:
            slot.transition(SlotState.executing)
            result = self._execute(job)

            slot.transition(SlotState.reporting)
            if result.success:
                if final_attempt:
                    self._persist_or_record_failure(job, result)
                else:
                    self._persist(job, result)
                logger.info(f"[{job.id}] Scan completed with {len(result.violations)} violations")
                return result

            if final_attempt:
                self._persist(job, result)
                logger.error(f"[{job.id}] Scan failed on final attempt {job.attempts}: {result.error_message}")
            else:
                logger.warning(f"[{job.id}] Scan attempt {job.attempts} failed: {result.error_message}")

            raise JobAttemptFailed(result.error_message, job_id=job.id)

    def _execute(self, job: ScanJob) -> ScanResult:
        try:
            outcome = self.pipeline.run(job.submitted_url, tag=job.id)
            return ScanResult.from_outcome(job.id, job.original_job_id, outcome)
        except Exception as e:
            logger.error(f"[{job.id}] Unexpected error while executing scan: {e}", exc_info=True)
            return ScanResult(
                job_id=job.id,
                original_job_id=job.original_job_id,
                submitted_url=job.submitted_url,
                success=False,
                error_message=f"Unexpected error during scan: {e}",
            )

    def _persist(self, job: ScanJob, result: ScanResult) -> None:
        try:
            self.store.save(result)
        except PersistenceFailure as e:
            raise JobAttemptFailed(str(e), job_id=job.id) from e
        except Exception as e:
            logger.error(f"[{job.id}] Unexpected error while persisting result: {e}", exc_info=True)
            raise JobAttemptFailed(f"Failed to persist scan result: {e}", job_id=job.id) from e

    def _persist_or_record_failure(self, job: ScanJob, result: ScanResult) -> None:
        """Last attempt: if the success row cannot be written, leave a failed row in its place."""
        try:
            self._persist(job, result)
        except JobAttemptFailed as e:
            logger.error(f"[{job.id}] Could not persist successful result on final attempt: {e.reason}")
            failed = ScanResult(
                job_id=job.id,
                original_job_id=job.original_job_id,
                submitted_url=result.submitted_url,
                actual_url=result.actual_url,
                timestamp=result.timestamp,
                page_title=result.page_title,
                success=False,
                error_message=f"Failed to persist scan result: {e.reason}",
            )
            try:
                self._persist(job, failed)
            except JobAttemptFailed as nested:
                logger.error(f"[{job.id}] Could not record terminal failure either: {nested.reason}")
            raise
