from fastapi import Depends, Request

from accessibility_scanner.features.scan.services.broker.job_broker import JobBroker, RetryPolicy
from accessibility_scanner.features.scan.services.gateway.submission import SubmissionGateway
from accessibility_scanner.features.scan.services.query.result_query import ResultQueryService
from accessibility_scanner.resources import AppResources


def get_resources(request: Request) -> AppResources:
    return request.app.state.resources


def get_job_broker(resources: AppResources = Depends(get_resources)) -> JobBroker:
    return resources.broker


def get_submission_gateway(resources: AppResources = Depends(get_resources)) -> SubmissionGateway:
    return SubmissionGateway(resources.broker, RetryPolicy.from_settings(resources.settings))


def get_query_service(resources: AppResources = Depends(get_resources)) -> ResultQueryService:
    return ResultQueryService(resources.result_store)
