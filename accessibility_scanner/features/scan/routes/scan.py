from fastapi import APIRouter, Depends, status
from fastapi.responses import HTMLResponse

from accessibility_scanner.features.scan.dependencies import (
    get_job_broker,
    get_query_service,
    get_submission_gateway,
)
from accessibility_scanner.features.scan.schemas.scan import (
    JobStateResponse,
    ScanWebsiteRequest,
    ScanWebsiteResponse,
)
from accessibility_scanner.features.scan.services.broker.job_broker import JobBroker
from accessibility_scanner.features.scan.services.gateway.submission import SubmissionGateway
from accessibility_scanner.features.scan.services.query.result_query import ResultQueryService
from accessibility_scanner.features.scan.services.report.report_renderer import render_report
from accessibility_scanner.platform.logger import get_logger
from accessibility_scanner.platform.response import api_response

logger = get_logger(__name__)

router = APIRouter(tags=["scan"])

RESULT_NOT_FOUND_MESSAGE = "Scan result not found. The scan may still be in progress or the job ID is invalid."


@router.post("/scan-website", status_code=status.HTTP_202_ACCEPTED)
def scan_website(
    request: ScanWebsiteRequest,
    gateway: SubmissionGateway = Depends(get_submission_gateway),
):
    """
    Queue an accessibility scan for a website.

    The URL is normalized (https:// is added when no scheme is given) and
    validated before anything is enqueued. The scan itself runs on a worker;
    poll GET /scan-results/{jobId} for the outcome.

    Returns:
        202 with the job id and the normalized URL
    """
    receipt = gateway.submit(request.url)
    logger.info(f"[{receipt.job_id}] Scan request accepted for {receipt.submitted_url}")

    response = ScanWebsiteResponse(job_id=receipt.job_id, submitted_url=receipt.submitted_url)
    return api_response(
        data=response.model_dump(by_alias=True),
        message=f"Scan request accepted and enqueued. Job ID: {receipt.job_id}",
        status_code=status.HTTP_202_ACCEPTED,
    )


@router.get("/scan-results/{job_id}")
def get_scan_results(
    job_id: str,
    query: ResultQueryService = Depends(get_query_service),
):
    """
    Fetch the stored result of a scan job.

    404 covers both a job that is still queued or running and an id that was
    never issued.
    """
    result = query.get_result(job_id)
    if result is None:
        return api_response(
            status_code=status.HTTP_404_NOT_FOUND,
            message=RESULT_NOT_FOUND_MESSAGE,
        )

    return api_response(
        data=result.model_dump(by_alias=True, mode="json"),
        message="Scan result retrieved successfully",
    )


@router.get("/export-report/{job_id}", response_class=HTMLResponse)
def export_report(
    job_id: str,
    query: ResultQueryService = Depends(get_query_service),
):
    report = query.get_report(job_id)
    if report is None:
        return api_response(
            status_code=status.HTTP_404_NOT_FOUND,
            message=RESULT_NOT_FOUND_MESSAGE,
        )

    return HTMLResponse(
        content=render_report(report),
        headers={"Content-Disposition": f'inline; filename="accessibility-report-{job_id}.html"'},
    )


@router.get("/scan-jobs/{job_id}")
def get_scan_job(
    job_id: str,
    broker: JobBroker = Depends(get_job_broker),
):
    # Broker-side view; unknown ids read as queued
    state = broker.job_state(job_id)
    response = JobStateResponse(job_id=state.job_id, status=state.status.value, attempts=state.attempts)
    return api_response(data=response.model_dump(by_alias=True))
