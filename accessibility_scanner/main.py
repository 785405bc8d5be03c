from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from accessibility_scanner.features.health.routes.health import router as health_router
from accessibility_scanner.features.scan.routes.scan import router as scan_router
from accessibility_scanner.platform.config import Settings, get_settings
from accessibility_scanner.platform.exceptions import add_exception_handlers
from accessibility_scanner.platform.logger import configure_logging, get_logger
from accessibility_scanner.resources import AppResources

logger = get_logger(__name__)

VERSION = "1.0.0"


def create_app(settings: Optional[Settings] = None, resources: Optional[AppResources] = None) -> FastAPI:
    settings = settings or get_settings()
    resources = resources or AppResources(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.LOG_LEVEL, settings.LOG_DIR)
        resources.open()
        logger.info(f"{settings.APP_NAME} API started ({settings.ENVIRONMENT})")
        try:
            yield
        finally:
            resources.close()
            logger.info(f"{settings.APP_NAME} API stopped")

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Queue website accessibility audits and fetch their results",
        version=VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.resources = resources

    # Root endpoint for basic info
    @app.get("/", tags=["Info"])
    def root():
        return {
            "app_name": f"{settings.APP_NAME} API",
            "description": "Asynchronous website accessibility scanning service.",
            "version": VERSION,
            "docs_url": "/docs",
        }

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    add_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(scan_router)

    return app
