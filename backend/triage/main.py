from contextlib import asynccontextmanager
from functools import lru_cache
import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from triage.api.routers.analysis import build_analysis_router
from triage.api.routers.exports import router as exports_router
from triage.api.routers.system import router as system_router
from triage.config import settings
from triage.errors import ReportValidationError, TriageError
from triage.extraction import BedrockConverseBackend, ExtractionClient
from triage.observability import (
    configure_logging,
    normalize_request_id,
    reset_request_id,
    sanitize_for_logging,
    set_request_id,
)
from triage.pipeline import AnalysisPipeline
from triage.version import APP_VERSION

logger = logging.getLogger("triage.api")


@lru_cache(maxsize=1)
def _cached_analysis_pipeline() -> AnalysisPipeline:
    backend = BedrockConverseBackend(settings=settings)
    return AnalysisPipeline(ExtractionClient(backend, settings=settings))


def get_analysis_pipeline() -> AnalysisPipeline:
    return _cached_analysis_pipeline()


def _resolve_analysis_pipeline() -> AnalysisPipeline:
    # Resolved per request; tests monkeypatch get_analysis_pipeline.
    return get_analysis_pipeline()


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(settings.log_level)
    logger.info(
        "application_startup",
        extra={"event": "application_startup", "environment": settings.app_env, "version": APP_VERSION},
    )
    yield
    logger.info("application_shutdown", extra={"event": "application_shutdown"})


def _format_request_errors(exc: RequestValidationError) -> list[str]:
    messages: list[str] = []
    for issue in exc.errors():
        location = ".".join(str(part) for part in issue.get("loc", ())) or "<root>"
        messages.append(f"{location}: {issue.get('msg', 'invalid value')}")
    return messages


def create_app() -> FastAPI:
    cors_origins = settings.cors_origins_list
    if settings.cors_allow_credentials and any(origin == "*" for origin in cors_origins):
        raise RuntimeError("Invalid CORS_ORIGINS: wildcard '*' is not allowed when credentials are enabled.")

    app = FastAPI(title=settings.app_name, version=APP_VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", settings.request_id_header],
        expose_headers=["Content-Disposition", settings.request_id_header],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        request_id = normalize_request_id(request.headers.get(settings.request_id_header))
        request.state.request_id = request_id
        token = set_request_id(request_id)
        started = time.perf_counter()

        logger.info(
            "request_started",
            extra={
                "event": "request_started",
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "query": sanitize_for_logging(dict(request.query_params)),
                "client_ip": request.client.host if request.client else None,
            },
        )

        try:
            response = await call_next(request)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            response.headers[settings.request_id_header] = request_id
            logger.info(
                "request_completed",
                extra={
                    "event": "request_completed",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                },
            )
            return response
        except Exception:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            logger.exception(
                "request_failed",
                extra={
                    "event": "request_failed",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": elapsed_ms,
                },
            )
            raise
        finally:
            reset_request_id(token)

    @app.exception_handler(TriageError)
    async def triage_error_handler(request: Request, exc: TriageError) -> JSONResponse:
        content: dict[str, object] = {"error": str(exc)}
        if isinstance(exc, ReportValidationError):
            content["fields"] = exc.errors
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "request_rejected",
            extra={
                "event": "request_rejected",
                "path": request.url.path,
                "status_code": exc.status_code,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "fields": _format_request_errors(exc)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    app.include_router(system_router)
    app.include_router(build_analysis_router(get_analysis_pipeline=_resolve_analysis_pipeline))
    app.include_router(exports_router)
    return app


app = create_app()


def run() -> None:
    uvicorn.run("triage.main:app", host=settings.app_host, port=settings.app_port)
