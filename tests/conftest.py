"""
Test configuration and fixtures for the Accessibility Scanner.

Every test runs against a throwaway SQLite result store and an in-memory
Celery transport, so no PostgreSQL, Redis or browser is needed.
"""

import os
import tempfile
from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

# Must be set before the package creates its Celery app
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{tempfile.mktemp(suffix='.db')}")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "accessibility_scanner_test_logs"))

from accessibility_scanner.features.scan.models import ScanResultRecord  # noqa: E402,F401
from accessibility_scanner.features.scan.schemas.scan import ScanResult, Violation  # noqa: E402
from accessibility_scanner.features.scan.services.broker.job_broker import JobBroker  # noqa: E402
from accessibility_scanner.features.scan.services.storage.result_store import ResultStore  # noqa: E402
from accessibility_scanner.main import create_app  # noqa: E402
from accessibility_scanner.platform.config import Settings  # noqa: E402
from accessibility_scanner.platform.db.base import Base  # noqa: E402
from accessibility_scanner.platform.db.session import build_engine, build_session_factory  # noqa: E402
from accessibility_scanner.resources import AppResources  # noqa: E402


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'results.db'}",
        CELERY_BROKER_URL="memory://",
        CELERY_RESULT_BACKEND="cache+memory://",
        HEALTH_FILE_PATH=str(tmp_path / "healthy"),
        LOG_DIR=str(tmp_path / "logs"),
        WORKER_CONCURRENCY=2,
        WORKER_SHUTDOWN_TIMEOUT_SECONDS=1.0,
        SCAN_MAX_ATTEMPTS=3,
        SCAN_BACKOFF_BASE_SECONDS=1.0,
    )


@pytest.fixture
def engine(settings):
    engine = build_engine(settings)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine) -> ResultStore:
    return ResultStore(build_session_factory(engine))


@pytest.fixture
def fake_broker() -> MagicMock:
    """Broker double: records enqueues, reachable unless a test says otherwise."""
    return MagicMock(spec=JobBroker)


@pytest.fixture
def resources(settings, store, fake_broker) -> AppResources:
    return AppResources(settings, broker=fake_broker, result_store=store)


@pytest.fixture
def test_app(settings, resources):
    return create_app(settings=settings, resources=resources)


@pytest.fixture
def client(test_app) -> Generator[TestClient, None, None]:
    with TestClient(test_app) as test_client:
        yield test_client


def make_violation(rule_id: str = "image-alt", impact: str = "critical", nodes: int = 1) -> Violation:
    return Violation.from_axe({
        "id": rule_id,
        "impact": impact,
        "description": f"Ensures {rule_id} passes",
        "help": f"{rule_id} must pass",
        "helpUrl": f"https://dequeuniversity.com/rules/axe/4.8/{rule_id}",
        "tags": ["wcag2a", "wcag111"],
        "nodes": [
            {
                "html": f"<img src=\"logo-{i}.png\">",
                "target": [f"img:nth-child({i + 1})"],
                "failureSummary": "Fix any of the following:\n  Element does not have an alt attribute",
                "any": [{"id": "has-alt", "impact": impact, "message": "Element does not have an alt attribute"}],
                "all": [],
                "none": [],
            }
            for i in range(nodes)
        ],
    })


def make_result(job_id: str = "job-1", success: bool = True, **overrides) -> ScanResult:
    values = {
        "job_id": job_id,
        "original_job_id": job_id,
        "submitted_url": "https://example.com",
        "actual_url": "https://example.com/",
        "page_title": "Example Domain",
        "success": success,
    }
    if success:
        values["violations"] = [make_violation()]
    else:
        values["error_message"] = "Timeout loading page https://example.com after 30s"
    values.update(overrides)
    return ScanResult(**values)
