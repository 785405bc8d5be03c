from typing import Dict, Optional

from celery import Celery

from accessibility_scanner.features.scan.services.broker.job_broker import JobBroker
from accessibility_scanner.features.scan.services.storage.result_store import ResultStore
from accessibility_scanner.platform.celery_app import celery_app as default_celery_app
from accessibility_scanner.platform.config import Settings
from accessibility_scanner.platform.db.session import build_engine, build_session_factory
from accessibility_scanner.platform.logger import get_logger

logger = get_logger(__name__)


class AppResources:
    """
    Process-scoped connections shared by the API and the worker pool.

    Acquired in a fixed order (result store, then broker) and released in
    reverse. A broker or store passed in is used as-is, which is how tests
    swap in fakes.
    """

    def __init__(
        self,
        settings: Settings,
        celery_app: Optional[Celery] = None,
        broker: Optional[JobBroker] = None,
        result_store: Optional[ResultStore] = None,
    ):
        self.settings = settings
        self.celery_app = celery_app or default_celery_app
        self.broker = broker
        self.result_store = result_store
        self.engine = None
        self._opened = False

    def open(self) -> None:
        if self._opened:
            return

        if self.result_store is None:
            self.engine = build_engine(self.settings)
            self.result_store = ResultStore(build_session_factory(self.engine))
        logger.info("Result store ready")

        if self.broker is None:
            self.broker = JobBroker(self.celery_app, self.settings)
        self.broker.connect()

        self._opened = True

    def close(self) -> None:
        if not self._opened:
            return
        self._opened = False

        try:
            self.broker.close()
        finally:
            if self.engine is not None:
                self.engine.dispose()
                self.engine = None
                logger.info("Database engine disposed")

    def check_health(self) -> Dict[str, str]:
        """Probe every dependency. Values are "ok" or the error text."""
        checks = {}

        try:
            self.result_store.ping()
            checks["database"] = "ok"
        except Exception as e:
            logger.warning(f"Health check: result store unreachable: {e}")
            checks["database"] = str(e) or e.__class__.__name__

        try:
            self.broker.ping()
            checks["broker"] = "ok"
        except Exception as e:
            logger.warning(f"Health check: broker unreachable: {e}")
            checks["broker"] = str(e) or e.__class__.__name__

        return checks
