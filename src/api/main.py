"""
FastAPI application for the LLM tool gateway.

Usage:
    # Development server with auto-reload
    uvicorn src.api.main:app --reload --host 0.0.0.0 --port 1111

    # Production server
    NODE_ENV=production uvicorn src.api.main:app --host 0.0.0.0 --port 1111 --workers 4

    # Debug mode (verbose logging)
    LOG_LEVEL=DEBUG uvicorn src.api.main:app --reload --host 0.0.0.0 --port 1111
"""

import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config import config
from ..errors import GatewayError, RateLimitExceeded
from ..models import AppConfig
from .dependencies import Services
from .limits import finalize_rate_limit
from .routes import auth, health, llm, process, tools


def configure_logging(level: Optional[str] = None):
    """Configure logging from the logging.level setting (LOG_LEVEL)."""
    log_level = getattr(logging, (level or config.log_level).upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Set level for our modules
    logging.getLogger("src").setLevel(log_level)


configure_logging()
logger = logging.getLogger(__name__)


def _log_configuration(app_config: AppConfig, services: Services) -> None:
    logger.info("=" * 60)
    logger.info("GATEWAY CONFIGURATION")
    logger.info(f"  Environment: {app_config.server.environment}")
    logger.info(f"  Port: {app_config.server.port}")

    logger.info("-" * 60)
    logger.info("LLM PROVIDERS")
    providers = services.llm_service.available_providers()
    if not providers:
        logger.info("  (none configured)")
    for provider in providers:
        settings = app_config.providers[provider]
        logger.info(f"  [{provider.value}] {settings.base_url} (timeout {settings.timeout}s)")

    logger.info("-" * 60)
    logger.info("ORCHESTRATOR")
    orchestrator_config = app_config.orchestrator
    logger.info(f"  Provider: {orchestrator_config.provider.value}")
    logger.info(
        f"  Decision: {orchestrator_config.decision_model} "
        f"(temperature {orchestrator_config.decision_temperature}, "
        f"max tokens {orchestrator_config.decision_max_tokens})"
    )
    logger.info(
        f"  Final: {orchestrator_config.final_model} "
        f"(temperature {orchestrator_config.final_temperature}, "
        f"max tokens {orchestrator_config.final_max_tokens})"
    )
    logger.info(f"  Tool concurrency: {orchestrator_config.tool_concurrency}")

    logger.info("-" * 60)
    logger.info("TOOL SERVER")
    logger.info(f"  URL: {app_config.tool_server.url}")
    logger.info(f"  Timeout: {app_config.tool_server.timeout}s")

    logger.info("-" * 60)
    logger.info("SHARED STORE")
    logger.info(f"  Redis: {app_config.redis.url}")
    logger.info(
        f"  Rate limit: {app_config.rate_limit.max_requests} requests / "
        f"{app_config.rate_limit.window_ms}ms"
    )
    logger.info(
        f"  Cache TTLs: llm {app_config.cache.llm_ttl}s, tools {app_config.cache.tools_ttl}s"
    )

    logger.info("-" * 60)
    logger.info("LANGFUSE OBSERVABILITY")
    if services.tracing_client.enabled:
        logger.info("  Status: ENABLED")
        logger.info(f"  Host: {app_config.langfuse.host or 'https://cloud.langfuse.com'}")
    else:
        logger.info("  Status: DISABLED")
        if services.tracing_client.error:
            logger.info(f"  Reason: {services.tracing_client.error}")
    logger.info("=" * 60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build shared services on startup and release them on shutdown."""
    logger.info("Starting LLM tool gateway")
    app_config: AppConfig = app.state.config

    owns_services = getattr(app.state, "services", None) is None
    if owns_services:
        app.state.services = Services.from_config(app_config)
    _log_configuration(app_config, app.state.services)

    yield

    logger.info("Shutting down LLM tool gateway")
    if owns_services:
        await app.state.services.close()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def error_response(
    request: Request,
    status_code: int,
    message: str,
    error_type: str,
    errors: Optional[list[str]] = None,
    exc: Optional[BaseException] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """Render the gateway's error envelope."""
    error: dict = {"message": message, "statusCode": status_code, "type": error_type}
    if errors:
        error["errors"] = errors
    app_config: AppConfig = request.app.state.config
    if exc is not None and not app_config.server.is_production:
        error["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "timestamp": _timestamp(), "path": request.url.path},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={
                "error": "Too many requests",
                "message": exc.message,
                "retryAfter": exc.retry_after,
                "timestamp": _timestamp(),
            },
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        if exc.is_operational:
            logger.warning(
                f"Operational error on {request.method} {request.url.path} "
                f"({exc.status_code}): {exc.message}"
            )
        else:
            logger.error(
                f"Unexpected error on {request.method} {request.url.path}: {exc.message}",
                exc_info=exc,
            )
        return error_response(
            request,
            exc.status_code,
            exc.message,
            exc.error_type,
            errors=getattr(exc, "errors", None),
            exc=exc,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Log validation errors before returning 400 response."""
        errors = [
            f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
            for err in exc.errors()
        ]
        logger.warning(f"Validation error on {request.method} {request.url.path}: {errors}")
        return error_response(
            request,
            400,
            f"Validation failed: {', '.join(errors)}",
            "validation_failed",
            errors=errors,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        if exc.status_code == 404:
            message = f"Route {request.method} {request.url.path} not found"
        return error_response(
            request, exc.status_code, message, "http_error", headers=exc.headers
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"Unexpected error on {request.method} {request.url.path}: {exc}",
            exc_info=exc,
        )
        return error_response(request, 500, "Internal server error", "server_error", exc=exc)


def create_app(
    app_config: Optional[AppConfig] = None,
    services: Optional[Services] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        app_config: Configuration to use (defaults to the loaded config file)
        services: Prebuilt services; when given, the lifespan neither builds
            nor closes them

    Returns:
        Configured FastAPI application instance.
    """
    app_config = app_config or (services.config if services else config)

    app = FastAPI(
        title="LLM Tool Gateway",
        description=(
            "Gateway that augments prompts with tool-server calls chosen by an LLM, "
            "with Redis-backed rate limiting and response caching."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.config = app_config
    if services is not None:
        app.state.services = services

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        """Tag the request, apply rate limit headers, log the outcome."""
        request.state.request_id = f"req-{uuid.uuid4().hex[:8]}"
        start = time.perf_counter()
        response = await call_next(request)
        await finalize_rate_limit(request, response)
        response.headers["X-Request-ID"] = request.state.request_id
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"[{request.state.request_id}] {request.method} {request.url.path} "
            f"-> {response.status_code} ({duration_ms:.0f}ms)"
        )
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "Authorization",
            "X-API-Key",
            "X-Client-Token",
            "X-TTID",
            "X-Tool-Cookie",
        ],
        expose_headers=[
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
            "X-Request-ID",
        ],
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(auth.router, tags=["Auth"])
    app.include_router(process.router, tags=["Process"])
    app.include_router(llm.router, tags=["LLM"])
    app.include_router(tools.router, tags=["Tools"])

    register_exception_handlers(app)
    return app


# Create the application instance
app = create_app()


def run_server():
    """
    Run the server using uvicorn.

    This is the entry point for running the server programmatically.
    """
    import uvicorn

    uvicorn.run(
        "src.api.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
        workers=1 if config.server.reload else config.server.workers,
    )


if __name__ == "__main__":
    run_server()
