"""
Audit Pipeline

Runs one accessibility scan of one URL:

    1. open an isolated browser session
    2. navigate (bounded by the navigation timeout) and record the final URL
    3. read the page title (never fatal)
    4. inject axe-core into the page
    5. capture a screenshot (best effort, never fatal)
    6. run axe-core and collect violations
    7. close the browser session, always

Any failure in steps 1, 2, 4 or 6 ends the run with success=False and an
error message. The pipeline keeps no state between runs.
"""
from typing import Any, Callable, List, Optional

from axe_selenium_python import Axe
from pydantic import ValidationError as PydanticValidationError
from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException

from accessibility_scanner.features.scan.exceptions import (
    AuditExecutionFailure,
    BrowserSessionFailure,
    NavigationFailure,
    PipelineError,
    ScreenshotFailure,
)
from accessibility_scanner.features.scan.schemas.scan import AuditOutcome, Violation
from accessibility_scanner.features.scan.services.pipeline.browser import (
    DriverFactory,
    browser_session,
    build_driver,
)
from accessibility_scanner.platform.config import Settings
from accessibility_scanner.platform.logger import get_logger

logger = get_logger(__name__)

AxeFactory = Callable[[webdriver.Chrome], Any]


class AuditPipeline:

    def __init__(
        self,
        settings: Settings,
        driver_factory: DriverFactory = build_driver,
        axe_factory: AxeFactory = Axe,
    ):
        self.settings = settings
        self.driver_factory = driver_factory
        self.axe_factory = axe_factory

    def run(self, url: str, tag: Optional[str] = None) -> AuditOutcome:
        """
        Audit url and return the outcome. Never raises for stage failures;
        they are reported through AuditOutcome.success / error_message.
        """
        tag = tag or url
        partial = {"actual_url": None, "page_title": None, "screenshot": None}

        logger.info(f"[{tag}] Starting accessibility audit of {url}")
        try:
            with browser_session(self.settings, self._start_driver) as driver:
                partial["actual_url"] = self._navigate(driver, url, tag)
                partial["page_title"] = self._read_title(driver, tag)
                axe = self._inject_audit_engine(driver)
                partial["screenshot"] = self._capture_screenshot(driver, tag)
                violations = self._run_audit(axe)

        except PipelineError as e:
            logger.error(f"[{tag}] Audit failed: {e}")
            return AuditOutcome(submitted_url=url, success=False, error_message=str(e), **partial)

        except Exception as e:
            logger.error(f"[{tag}] Unexpected error during audit: {e}", exc_info=True)
            return AuditOutcome(
                submitted_url=url,
                success=False,
                error_message=f"Unexpected error during scan: {e}",
                **partial,
            )

        logger.info(f"[{tag}] Audit completed with {len(violations)} violations")
        return AuditOutcome(submitted_url=url, success=True, violations=violations, **partial)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _start_driver(self, settings: Settings) -> webdriver.Chrome:
        try:
            return self.driver_factory(settings)
        except Exception as e:
            raise BrowserSessionFailure(f"Could not start browser session: {e}") from e

    def _navigate(self, driver: webdriver.Chrome, url: str, tag: str) -> str:
        timeout = self.settings.NAVIGATION_TIMEOUT_SECONDS
        driver.set_page_load_timeout(timeout)
        try:
            driver.get(url)
        except TimeoutException as e:
            raise NavigationFailure(f"Timeout loading page {url} after {timeout}s") from e
        except WebDriverException as e:
            raise NavigationFailure(f"Failed to load page {url}: {e.msg or e}") from e

        actual_url = driver.current_url or url
        if actual_url != url:
            logger.info(f"[{tag}] Redirected to {actual_url}")
        return actual_url

    def _read_title(self, driver: webdriver.Chrome, tag: str) -> Optional[str]:
        try:
            title = driver.title
        except WebDriverException as e:
            logger.warning(f"[{tag}] Could not read page title: {e}")
            return None

        if not title:
            logger.warning(f"[{tag}] Page has an empty title")
            return None
        return title

    def _inject_audit_engine(self, driver: webdriver.Chrome):
        driver.set_script_timeout(self.settings.AUDIT_SCRIPT_TIMEOUT_SECONDS)
        try:
            axe = self.axe_factory(driver)
            axe.inject()
        except Exception as e:
            raise AuditExecutionFailure(f"Failed to inject audit engine: {e}") from e
        return axe

    def _capture_screenshot(self, driver: webdriver.Chrome, tag: str) -> Optional[bytes]:
        if not self.settings.SCREENSHOT_ENABLED:
            return None
        try:
            return self._take_screenshot(driver)
        except ScreenshotFailure as e:
            logger.warning(f"[{tag}] {e}; continuing without screenshot")
            return None

    @staticmethod
    def _take_screenshot(driver: webdriver.Chrome) -> Optional[bytes]:
        try:
            png = driver.get_screenshot_as_png()
        except Exception as e:
            raise ScreenshotFailure(f"Screenshot capture failed: {e}") from e
        return png or None

    @staticmethod
    def _run_audit(axe) -> List[Violation]:
        try:
            results = axe.run()
        except Exception as e:
            raise AuditExecutionFailure(f"Audit engine execution failed: {e}") from e

        raw_violations = (results or {}).get("violations")
        if not isinstance(raw_violations, list):
            raise AuditExecutionFailure("Audit engine returned no violations list")

        try:
            return [Violation.from_axe(raw) for raw in raw_violations]
        except (KeyError, TypeError, PydanticValidationError) as e:
            raise AuditExecutionFailure(f"Audit engine returned malformed violations: {e}") from e
