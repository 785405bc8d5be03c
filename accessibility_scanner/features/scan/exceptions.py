"""
Scan error kinds.

Submission-side errors map directly onto HTTP responses. Pipeline-side errors
never reach a client directly: they become the error_message of a failed
ScanResult, or the reason a job attempt is handed back to the broker.
"""
from fastapi import status

from accessibility_scanner.platform.exceptions import ServiceError


class ScanServiceError(ServiceError):
    """Root of every scan error."""


# Submission path

class ValidationError(ScanServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Invalid request body"


class EnqueueFailure(ScanServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message = "Failed to enqueue scan request. Please try again later."


# Pipeline path

class PipelineError(ScanServiceError):
    """A stage failure that aborts the audit pipeline."""


class BrowserSessionFailure(PipelineError):
    pass


class NavigationFailure(PipelineError):
    pass


class AuditExecutionFailure(PipelineError):
    pass


class ScreenshotFailure(PipelineError):
    """Raised by the screenshot stage; always swallowed by the pipeline."""


# Worker path

class PersistenceFailure(ScanServiceError):
    pass


class JobAttemptFailed(ScanServiceError):
    """One delivery of a job did not complete; the broker decides whether to retry."""

    def __init__(self, reason: str, job_id: str = ""):
        super().__init__(reason)
        self.job_id = job_id
        self.reason = reason
