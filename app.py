# User value: This file runs the sandbox DRIFT backend so contract workflows can be exercised without the real server.
# app.py
import os
import logging
import time

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load env before importing modules that read os.getenv at import time.
load_dotenv(os.path.join(os.path.dirname(__file__), ".env"))

from config import SANDBOX_API_TOKEN, SANDBOX_JOB_POLLS_TO_COMPLETE
from schemas.job_contract import EXPORT_ID_HEADER
from services.repository import SandboxStore
from startup_env import validate_sandbox_env
from utils.json_logging import configure_json_logging
from utils.request_id import REQUEST_ID_HEADER, get_request_id, normalize_request_id, set_request_id

from routes.health import router as health_router
from routes.jobs import router as jobs_router
from routes.streaming_reports import router as streaming_reports_router
from routes.vendors import router as vendors_router

logger = logging.getLogger("sandbox.error")
access_logger = logging.getLogger("sandbox.access")

API_PREFIX = "/api"


# User value: prepares readable structured logs before the sandbox serves anything.
def configure_logging() -> None:
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    configure_json_logging(service="drift-sandbox", level=level)


def _parse_csv_env(name: str) -> list[str]:
    raw = os.getenv(name, "")
    values = [x.strip() for x in raw.split(",") if x.strip()]
    seen = set()
    ordered = []
    for item in values:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


# User value: tags every response with a request id so client and sandbox logs line up.
async def request_id_middleware(request: Request, call_next):
    request_id = normalize_request_id(request.headers.get(REQUEST_ID_HEADER))
    set_request_id(request_id)
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = int(getattr(response, "status_code", 500))
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        duration_ms = (time.perf_counter() - started) * 1000.0
        access_logger.info(
            "request_completed method=%s path=%s status=%s duration_ms=%.1f request_id=%s",
            request.method.upper(),
            request.url.path,
            status_code,
            duration_ms,
            request_id,
        )
        set_request_id(None)


def _extract_error_message(detail) -> str:
    if isinstance(detail, dict):
        return str(detail.get("error_message") or detail.get("message") or detail.get("detail") or detail)
    if isinstance(detail, list):
        return "; ".join(str(x) for x in detail)
    return str(detail)


# User value: supports _to_error_code so client code can branch on a stable code.
def _to_error_code(status_code: int, detail) -> str:
    if isinstance(detail, dict) and detail.get("error_code"):
        return str(detail.get("error_code")).strip().upper()

    msg = _extract_error_message(detail).lower()
    if status_code == 401:
        if "missing authorization" in msg:
            return "AUTH_MISSING_TOKEN"
        return "AUTH_UNAUTHORIZED"
    if status_code == 403:
        return "AUTH_FORBIDDEN"
    if status_code == 404:
        return "RESOURCE_NOT_FOUND"
    if status_code == 409:
        return "STATE_CONFLICT"
    if status_code == 400:
        return "INVALID_REQUEST"
    return f"HTTP_{status_code}"


def _error_body(*, request: Request, status_code: int, detail, error_message: str | None = None) -> dict:
    request_id = get_request_id() or normalize_request_id(request.headers.get(REQUEST_ID_HEADER))
    return {
        "error_code": _to_error_code(status_code, detail),
        "error_message": error_message or _extract_error_message(detail),
        "detail": detail,
        "path": request.url.path,
        "request_id": request_id,
    }


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    detail = [
        {"loc": list(err.get("loc", ())), "msg": str(err.get("msg", "")), "type": str(err.get("type", ""))}
        for err in exc.errors()
    ]
    body = _error_body(
        request=request,
        status_code=422,
        detail=detail,
        error_message="Request validation failed",
    )
    body["error_code"] = "VALIDATION_ERROR"
    logger.warning(
        "request_failed_validation status=422 path=%s request_id=%s error_code=%s",
        request.url.path,
        body["request_id"],
        body["error_code"],
    )
    return JSONResponse(status_code=422, content=body)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    body = _error_body(request=request, status_code=exc.status_code, detail=exc.detail)
    logger.warning(
        "request_failed status=%s path=%s request_id=%s error_code=%s error_message=%s",
        exc.status_code,
        request.url.path,
        body["request_id"],
        body["error_code"],
        body["error_message"],
    )
    return JSONResponse(status_code=exc.status_code, content=body)


async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = get_request_id() or normalize_request_id(request.headers.get(REQUEST_ID_HEADER))
    logger.exception(
        "request_failed_unhandled path=%s request_id=%s error=%s: %s",
        request.url.path,
        request_id,
        exc.__class__.__name__,
        exc,
    )
    body = _error_body(
        request=request,
        status_code=500,
        detail="Unhandled server exception",
        error_message="Internal server error",
    )
    body["error_code"] = "INTERNAL_SERVER_ERROR"
    return JSONResponse(status_code=500, content=body)


def create_app(
    store: SandboxStore | None = None,
    *,
    api_token: str | None = None,
    job_polls_to_complete: int | None = None,
) -> FastAPI:
    """Build the sandbox app over ``store`` (a fresh in-memory store by default).

    Run it with ``uvicorn app:create_app --factory``.
    """
    configure_logging()
    validate_sandbox_env()

    app = FastAPI(title="DRIFT Sandbox API")
    app.state.store = store if store is not None else SandboxStore()
    app.state.api_token = SANDBOX_API_TOKEN if api_token is None else api_token
    app.state.job_polls_to_complete = (
        SANDBOX_JOB_POLLS_TO_COMPLETE if job_polls_to_complete is None else job_polls_to_complete
    )

    app.middleware("http")(request_id_middleware)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    cors_allow_origins = _parse_csv_env("CORS_ALLOW_ORIGINS")
    logger.info("cors_configured allow_origins=%s", cors_allow_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, EXPORT_ID_HEADER],
    )

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(vendors_router, prefix=API_PREFIX)
    app.include_router(jobs_router, prefix=API_PREFIX)
    app.include_router(streaming_reports_router, prefix=API_PREFIX)
    return app
