from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog
import time
import uuid
from app.api.routes import api_router
from app.config.settings import settings
from app.core.database import create_tables
from app.core.exceptions import (
    AzureDevOpsError,
    AuthenticationError,
    NetworkError,
    NotFoundError,
    RateLimitError,
)
from app.core.logging import configure_logging

configure_logging(settings.log_level)

logger = structlog.get_logger()

# Anything else classified (ValidationError) is a bad request
ERROR_STATUS_CODES = {
    AuthenticationError: 401,
    NotFoundError: 404,
    RateLimitError: 429,
    NetworkError: 502,
}


def status_code_for(exc: AzureDevOpsError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 400


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, "message": message})


async def bind_request_context(request: Request, call_next):
    """Tag every log line emitted while serving a request with its id and route"""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, method=request.method, path=request.url.path)

    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "Request handled",
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 1),
    )
    response.headers["X-Request-ID"] = request_id
    return response


async def handle_azure_devops_error(request: Request, exc: AzureDevOpsError) -> JSONResponse:
    status_code = status_code_for(exc)
    logger.warning(
        "Azure DevOps call rejected",
        error_code=exc.code,
        upstream_status=exc.status_code,
        responded_with=status_code,
        error=exc.message,
    )
    return error_response(status_code, exc.code, exc.message)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    # The detail may carry upstream payloads, so it only goes to the log
    logger.error("Unhandled exception", error=str(exc), exc_info=True)
    return error_response(500, "InternalServerError", "Internal server error")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""

    app = FastAPI(
        title="Azure DevOps Test Case Importer API",
        description="Imports Azure DevOps test plans, suites and cases into a local test store",
        version="1.0.0",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(bind_request_context)

    app.add_exception_handler(AzureDevOpsError, handle_azure_devops_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.on_event("startup")
    async def startup_event():
        """Prepare the local store before the first request"""
        create_tables()
        logger.info(
            "Importer ready",
            environment=settings.environment,
            azure_devops_configured=settings.azure_devops_config() is not None,
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        structlog.contextvars.clear_contextvars()
        logger.info("Importer stopped")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
