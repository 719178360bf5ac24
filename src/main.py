from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Any, Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import (
    JSONResponse,
    PlainTextResponse,
)
from prometheus_client import (
    generate_latest,
    CONTENT_TYPE_LATEST,
)

from src.config import Settings, settings as default_settings
from src.mock.cors import OriginPolicy, cors_middleware
from src.mock.recorder import RequestRecorderMiddleware
from src.mock.routes import register_routes
from src.logging import logger, setup_logging


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Builds the mock server application from a settings snapshot.

    Middleware order (outermost first): origin policy, request recorder,
    router. The origin policy is derived once here and shared read-only by
    all requests.
    """
    settings = settings or default_settings
    setup_logging(settings.log_level, settings.log_format)
    policy = OriginPolicy.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """
        Handles application startup and shutdown events.

        Logs the effective configuration so a container log shows what the
        mock was started with.
        """
        logger.info("Starting dummy logger server")
        logger.info(f"Listening on: {settings.host}:{settings.port}")
        logger.info(f"Response artifacts: {settings.responses_dir}")
        if policy.allows_all:
            logger.info(
                f"CORS: allowing all origins (credentials={policy.allow_credentials})"
            )
        else:
            logger.info(
                f"CORS: allowed origins {list(policy.allowed_origins)} (credentials={policy.allow_credentials})"
            )
        if not settings.responses_dir.is_dir():
            logger.warning(
                f"Response artifact directory does not exist: {settings.responses_dir}"
            )
        yield  # Application starts here
        logger.info("Shutting down dummy logger server")

    app = FastAPI(
        title="Dummy Logger Server",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Added first so that it sits inside the CORS middleware registered below
    app.add_middleware(RequestRecorderMiddleware)

    @app.middleware("http")
    async def apply_cors(
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        """
        Applies the origin policy to all HTTP requests and answers preflights.
        """
        return await cors_middleware(request, call_next, policy)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Handles all unhandled exceptions that occur within the application.

        This ensures that the application returns a consistent JSON error response
        for unexpected errors, rather than crashing.
        """
        logger.error(
            f"Unhandled exception for URL: {request.url} - {str(exc)}", exc_info=True
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/metrics")
    async def metrics() -> Response:
        """
        Exposes Prometheus metrics for scraping.

        Returns a plain text response containing all collected metrics in Prometheus format.
        """
        try:
            return PlainTextResponse(
                content=generate_latest(),
                media_type=CONTENT_TYPE_LATEST,
            )
        except Exception as e:
            logger.error(f"Error generating Prometheus metrics: {str(e)}", exc_info=True)
            return JSONResponse(
                status_code=500, content={"error": "Failed to generate metrics"}
            )

    # Registered after /metrics: the route table ends with the catch-all
    for route in register_routes(app, settings):
        logger.debug(f"Route: {route}")

    return app


app = create_app()


def run() -> None:
    """Starts the server on the configured host and port."""
    uvicorn.run(app, host=default_settings.host, port=default_settings.port)


if __name__ == "__main__":
    run()
