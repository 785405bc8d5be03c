from unittest.mock import MagicMock

import pytest
from selenium.common.exceptions import TimeoutException, WebDriverException

from accessibility_scanner.features.scan.schemas.scan import ViolationImpact
from accessibility_scanner.features.scan.services.pipeline.audit_pipeline import AuditPipeline
from accessibility_scanner.features.scan.services.pipeline.browser import browser_session

AXE_RESULTS = {
    "violations": [
        {
            "id": "color-contrast",
            "impact": "serious",
            "description": "Ensures the contrast between foreground and background colors meets WCAG 2 AA",
            "help": "Elements must have sufficient color contrast",
            "helpUrl": "https://dequeuniversity.com/rules/axe/4.8/color-contrast",
            "tags": ["cat.color", "wcag2aa", "wcag143", "wcag2aa"],
            "nodes": [
                {
                    "html": "<a href=\"/more\">More information...</a>",
                    "target": [["iframe#frame", "a"]],
                    "failureSummary": "Fix any of the following:\n  Element has insufficient color contrast",
                    "any": [{"id": "color-contrast", "impact": "serious", "message": "Insufficient contrast"}],
                    "all": [],
                    "none": [],
                }
            ],
        }
    ],
    "passes": [],
}


class TestAuditPipeline:
    @pytest.fixture
    def mock_driver(self):
        driver = MagicMock()
        driver.current_url = "https://example.com/"
        driver.title = "Example Domain"
        driver.get_screenshot_as_png.return_value = b"\x89PNG-bytes"
        return driver

    @pytest.fixture
    def mock_axe(self):
        axe = MagicMock()
        axe.run.return_value = AXE_RESULTS
        return axe

    @pytest.fixture
    def pipeline(self, settings, mock_driver, mock_axe):
        return AuditPipeline(
            settings,
            driver_factory=lambda s: mock_driver,
            axe_factory=lambda driver: mock_axe,
        )

    def test_successful_audit(self, pipeline, mock_driver, mock_axe, settings):
        outcome = pipeline.run("https://example.com")

        assert outcome.success is True
        assert outcome.error_message is None
        assert outcome.actual_url == "https://example.com/"
        assert outcome.page_title == "Example Domain"
        assert outcome.screenshot == b"\x89PNG-bytes"

        assert len(outcome.violations) == 1
        violation = outcome.violations[0]
        assert violation.rule_id == "color-contrast"
        assert violation.impact == ViolationImpact.serious
        assert violation.tags == ["cat.color", "wcag2aa", "wcag143"]
        assert violation.affected_nodes[0].target_selectors == ["iframe#frame a"]
        assert violation.affected_nodes[0].checks[0].group == "any"

        mock_driver.set_page_load_timeout.assert_called_once_with(settings.NAVIGATION_TIMEOUT_SECONDS)
        mock_driver.get.assert_called_once_with("https://example.com")
        mock_axe.inject.assert_called_once()
        mock_driver.quit.assert_called_once()

    def test_no_violations(self, pipeline, mock_axe):
        mock_axe.run.return_value = {"violations": []}

        outcome = pipeline.run("https://example.com")
        assert outcome.success is True
        assert outcome.violations == []

    def test_navigation_timeout(self, pipeline, mock_driver, mock_axe):
        mock_driver.get.side_effect = TimeoutException("timed out")

        outcome = pipeline.run("https://slow.example.com")

        assert outcome.success is False
        assert outcome.violations is None
        assert outcome.error_message == "Timeout loading page https://slow.example.com after 30s"
        mock_axe.inject.assert_not_called()
        mock_driver.quit.assert_called_once()

    def test_navigation_network_error(self, pipeline, mock_driver):
        mock_driver.get.side_effect = WebDriverException("net::ERR_NAME_NOT_RESOLVED")

        outcome = pipeline.run("https://nope.invalid")

        assert outcome.success is False
        assert "net::ERR_NAME_NOT_RESOLVED" in outcome.error_message
        mock_driver.quit.assert_called_once()

    def test_screenshot_failure_does_not_fail_scan(self, pipeline, mock_driver):
        mock_driver.get_screenshot_as_png.side_effect = WebDriverException("screenshot failed")

        outcome = pipeline.run("https://example.com")

        assert outcome.success is True
        assert outcome.screenshot is None
        assert len(outcome.violations) == 1

    def test_screenshot_disabled(self, settings, mock_driver, mock_axe):
        settings.SCREENSHOT_ENABLED = False
        pipeline = AuditPipeline(settings, driver_factory=lambda s: mock_driver, axe_factory=lambda d: mock_axe)

        outcome = pipeline.run("https://example.com")

        assert outcome.success is True
        assert outcome.screenshot is None
        mock_driver.get_screenshot_as_png.assert_not_called()

    def test_empty_title_is_not_a_failure(self, pipeline, mock_driver):
        mock_driver.title = ""

        outcome = pipeline.run("https://example.com")
        assert outcome.success is True
        assert outcome.page_title is None

    def test_injection_failure(self, pipeline, mock_driver, mock_axe):
        mock_axe.inject.side_effect = WebDriverException("javascript error")

        outcome = pipeline.run("https://example.com")

        assert outcome.success is False
        assert outcome.error_message.startswith("Failed to inject audit engine")
        assert outcome.actual_url == "https://example.com/"
        assert outcome.page_title == "Example Domain"
        mock_driver.quit.assert_called_once()

    def test_audit_run_failure(self, pipeline, mock_driver, mock_axe):
        mock_axe.run.side_effect = TimeoutException("script timeout")

        outcome = pipeline.run("https://example.com")

        assert outcome.success is False
        assert outcome.error_message.startswith("Audit engine execution failed")
        assert outcome.screenshot == b"\x89PNG-bytes"
        mock_driver.quit.assert_called_once()

    def test_malformed_audit_results(self, pipeline, mock_axe):
        mock_axe.run.return_value = {"passes": []}

        outcome = pipeline.run("https://example.com")
        assert outcome.success is False
        assert outcome.error_message == "Audit engine returned no violations list"

    def test_browser_cannot_start(self, settings):
        def broken_factory(s):
            raise WebDriverException("chrome not reachable")

        outcome = AuditPipeline(settings, driver_factory=broken_factory).run("https://example.com")

        assert outcome.success is False
        assert outcome.error_message.startswith("Could not start browser session")

    def test_unexpected_error_is_wrapped(self, pipeline, mock_driver):
        mock_driver.set_page_load_timeout.side_effect = RuntimeError("boom")

        outcome = pipeline.run("https://example.com")

        assert outcome.success is False
        assert outcome.error_message == "Unexpected error during scan: boom"
        mock_driver.quit.assert_called_once()


def test_browser_session_quits_on_error(settings):
    driver = MagicMock()

    with pytest.raises(ValueError):
        with browser_session(settings, lambda s: driver):
            raise ValueError("stage failed")

    driver.quit.assert_called_once()


def test_browser_session_quit_errors_are_logged(settings):
    driver = MagicMock()
    driver.quit.side_effect = WebDriverException("already closed")

    with browser_session(settings, lambda s: driver) as session:
        assert session is driver
