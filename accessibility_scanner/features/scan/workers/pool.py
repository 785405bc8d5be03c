"""
Scan Worker Pool

Owns the worker process lifecycle:

    start:    open resources -> bind the processor -> consume leases
              (readiness is announced once the broker consumer is up)
    shutdown: close the gate -> stop consuming the queue -> drain in-flight
              scans until the deadline -> stop the Celery worker
              -> release resources in reverse order -> report an exit code

Signals only trigger shutdown(); the sequence itself does not depend on how
it was requested.
"""
import os
import signal
import socket
import sys
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from celery import Celery

from accessibility_scanner.features.scan.services.pipeline.audit_pipeline import AuditPipeline
from accessibility_scanner.features.scan.workers.gate import ExecutionGate
from accessibility_scanner.features.scan.workers.processor import ScanJobProcessor
from accessibility_scanner.features.scan.workers.tasks import bind_worker_context
from accessibility_scanner.platform.config import Settings, get_settings
from accessibility_scanner.platform.logger import configure_logging, get_logger
from accessibility_scanner.resources import AppResources

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_DRAIN_TIMEOUT = 1


@dataclass(frozen=True)
class ShutdownReport:
    drained: bool
    exit_code: int


class ScanWorkerPool:

    def __init__(
        self,
        settings: Settings,
        resources: AppResources,
        pipeline_factory: Callable[[Settings], AuditPipeline] = AuditPipeline,
        worker_factory: Optional[Callable[..., Any]] = None,
    ):
        self.settings = settings
        self.resources = resources
        self.concurrency = settings.WORKER_CONCURRENCY
        self.gate = ExecutionGate(self.concurrency)
        self.ready = threading.Event()

        self._pipeline_factory = pipeline_factory
        self._worker_factory = worker_factory or self._build_celery_worker
        self._worker = None
        self._shutdown_lock = threading.Lock()
        self._shutdown_done = threading.Event()
        self._report: Optional[ShutdownReport] = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Open resources and serve leases until shutdown() stops the worker. Blocks."""
        logger.info(f"Scan worker pool starting with {self.concurrency} slots")

        self.resources.open()
        processor = ScanJobProcessor(
            pipeline=self._pipeline_factory(self.settings),
            store=self.resources.result_store,
            gate=self.gate,
        )
        bind_worker_context(processor, self.resources.broker)

        self._worker = self._worker_factory(
            celery_app=self.resources.celery_app,
            concurrency=self.concurrency,
            queue=self.settings.SCAN_QUEUE_NAME,
            on_ready=self._announce_ready,
        )
        self._worker.start()

    def _build_celery_worker(self, celery_app: Celery, concurrency: int, queue: str, on_ready: Callable[[], None]):
        return celery_app.WorkController(
            hostname=f"scan-worker@{socket.gethostname()}",
            concurrency=concurrency,
            pool_cls="threads",
            prefetch_multiplier=1,
            queues=[queue],
            ready_callback=lambda consumer: on_ready(),
        )

    def _announce_ready(self) -> None:
        try:
            with open(self.settings.HEALTH_FILE_PATH, "w") as f:
                f.write(f"Worker is healthy at {datetime.now(timezone.utc).isoformat()}")
        except OSError as e:
            logger.error(f"Failed to write health signal file {self.settings.HEALTH_FILE_PATH}: {e}")
        self.ready.set()
        logger.info(f"Scan worker pool ready, consuming '{self.settings.SCAN_QUEUE_NAME}'")

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def shutdown(self, timeout: Optional[float] = None) -> ShutdownReport:
        """
        Drain and stop the pool. Safe to call more than once and from any
        thread; later callers wait for the first shutdown and get its report.
        """
        if not self._shutdown_lock.acquire(blocking=False):
            self._shutdown_done.wait()
            return self._report

        try:
            if timeout is None:
                timeout = self.settings.WORKER_SHUTDOWN_TIMEOUT_SECONDS

            logger.warning(f"Scan worker pool shutting down ({self.gate.active} scans in flight)")
            self.gate.close()
            self._stop_consuming()

            drained = self.gate.wait_idle(timeout)
            if drained:
                logger.info("All in-flight scans finished")
            else:
                logger.warning(
                    f"Shutdown deadline of {timeout:g}s elapsed with {self.gate.active} scans in flight; "
                    f"their leases will be redelivered"
                )

            self._stop_worker(drained)
            bind_worker_context(None, None)

            try:
                self.resources.close()
            except Exception as e:
                logger.error(f"Error releasing worker resources: {e}")

            self._clear_ready()

            self._report = ShutdownReport(
                drained=drained,
                exit_code=EXIT_OK if drained else EXIT_DRAIN_TIMEOUT,
            )
            logger.info(f"Scan worker pool stopped (exit code {self._report.exit_code})")
            return self._report
        finally:
            self._shutdown_done.set()

    def _stop_consuming(self) -> None:
        """Cancel the queue consumer so no new leases arrive while in-flight scans drain."""
        consumer = getattr(self._worker, "consumer", None)
        if consumer is None:
            return
        try:
            consumer.cancel_task_queue(self.settings.SCAN_QUEUE_NAME)
            logger.info(f"Stopped consuming '{self.settings.SCAN_QUEUE_NAME}'")
        except Exception as e:
            logger.error(f"Error cancelling queue consumer: {e}")

    def _stop_worker(self, drained: bool) -> None:
        if self._worker is None:
            return
        try:
            if drained:
                self._worker.stop(in_sighandler=False)
            else:
                self._worker.terminate(in_sighandler=False)
        except Exception as e:
            logger.error(f"Error stopping Celery worker: {e}")

    def _clear_ready(self) -> None:
        self.ready.clear()
        try:
            if os.path.exists(self.settings.HEALTH_FILE_PATH):
                os.remove(self.settings.HEALTH_FILE_PATH)
                logger.info(f"Health signal file {self.settings.HEALTH_FILE_PATH} removed")
        except OSError as e:
            logger.error(f"Error removing health signal file during shutdown: {e}")


def run_worker() -> None:
    """Console entry point for the scan worker process."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, settings.LOG_DIR)

    pool = ScanWorkerPool(settings, AppResources(settings))

    def request_shutdown(signum, frame):
        logger.warning(f"Received signal {signal.Signals(signum).name}. Shutting down gracefully...")
        threading.Thread(target=pool.shutdown, name="scan-pool-shutdown", daemon=True).start()

    signal.signal(signal.SIGTERM, request_shutdown)
    signal.signal(signal.SIGINT, request_shutdown)

    try:
        pool.start()
    except Exception as e:
        logger.error(f"Scan worker pool crashed: {e}", exc_info=True)
    finally:
        report = pool.shutdown()

    sys.exit(report.exit_code)


if __name__ == "__main__":
    run_worker()
