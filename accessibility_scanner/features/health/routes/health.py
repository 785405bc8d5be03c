from fastapi import APIRouter, Depends, status

from accessibility_scanner.features.scan.dependencies import get_resources
from accessibility_scanner.platform.response import api_response
from accessibility_scanner.resources import AppResources

router = APIRouter()


@router.get("/healthz", tags=["health"])
def health_check(resources: AppResources = Depends(get_resources)):
    checks = resources.check_health()
    healthy = all(value == "ok" for value in checks.values())

    if not healthy:
        return api_response(
            data={"status": "unavailable", "checks": checks},
            message="Service is unhealthy",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return api_response(
        data={"status": "ok", "service": resources.settings.APP_NAME, "checks": checks},
        message="Service is healthy",
        status_code=status.HTTP_200_OK,
    )
