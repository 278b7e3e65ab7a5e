"""Main FastAPI application for the Collections Engine Service."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from collections_service.api.campaigns import router as campaigns_router
from collections_service.api.communications import router as communications_router
from collections_service.api.customers import router as customers_router
from collections_service.api.debts import router as debts_router
from collections_service.api.health import router as health_router
from collections_service.api.reports import router as reports_router
from collections_service.api.templates import router as templates_router
from collections_service.core.config import Settings, get_settings
from collections_service.core.dependencies import ServiceContainer, build_container
from collections_service.core.exceptions import BaseAPIException, StoreError, map_store_error
from collections_service.core.logging import get_logger, log_error_with_context, setup_logging
from collections_service.core.middleware import CorrelationIDMiddleware

logger = get_logger(__name__)


def _api_error_response(exc: BaseAPIException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=exc.headers,
    )


def create_app(
    container: Optional[ServiceContainer] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        container: Pre-built services, used by tests to inject fakes
        settings: Settings to build the container from when none is given
    """
    settings = container.settings if container else (settings or get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.container = container or build_container(settings)
        logger.info(
            "Starting Collections Engine Service",
            version=settings.service_version,
            store_backend=settings.store_backend,
        )

        if settings.reclassification_enabled:
            await app.state.container.scheduler.start()

        try:
            yield
        finally:
            logger.info("Shutting down Collections Engine Service")
            await app.state.container.close()

    app = FastAPI(
        title="Collections Engine Service",
        description="Arrears classification and multi-channel collections messaging",
        version=settings.service_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(CorrelationIDMiddleware)

    if settings.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(BaseAPIException)
    async def api_exception_handler(request: Request, exc: BaseAPIException):
        logger.warning(
            "Request rejected",
            path=request.url.path,
            status_code=exc.status_code,
            error_code=exc.error_code,
        )
        return _api_error_response(exc)

    @app.exception_handler(StoreError)
    async def store_exception_handler(request: Request, exc: StoreError):
        log_error_with_context(logger, exc, {"path": request.url.path, **exc.context})
        return _api_error_response(map_store_error(exc))

    for router in (
        customers_router,
        debts_router,
        templates_router,
        communications_router,
        campaigns_router,
        reports_router,
        health_router,
    ):
        app.include_router(router, prefix=settings.api_prefix)

    return app


setup_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "collections_service.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
