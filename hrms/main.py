import asyncio
from contextlib import suppress
from datetime import datetime, timezone
import logging
import time
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hrms.db import engine
from hrms.errors import ApiError, error_response
from hrms.logging_utils import setup_json_logging
from hrms.routers import attendance, auth, employees, government, leave, onboarding, payroll, requests
from hrms.services.notifications import get_notification_channel_health
from hrms.services.onboarding import send_onboarding_reminders
from hrms.services.schema_guard import SchemaGuardResult, verify_runtime_schema
from hrms.settings import get_cors_origins, get_settings

settings = get_settings()
setup_json_logging(settings.log_level, service=settings.app_name)
logger = logging.getLogger("hrms.request")
reminder_worker_logger = logging.getLogger("hrms.onboarding_worker")


app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or str(uuid4())
    request.state.request_id = request_id
    request.state.actor = getattr(request.state, "actor", "system")
    request.state.actor_id = getattr(request.state, "actor_id", "system")

    start = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Request-Id"] = request_id
        return response
    finally:
        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            "request_complete",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": status_code,
                "latency_ms": latency_ms,
                "actor": getattr(request.state, "actor", "system"),
                "actor_id": getattr(request.state, "actor_id", "system"),
            },
        )


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


@app.exception_handler(HTTPException)
async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    status_code = exc.status_code
    code_map = {
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        429: "TOO_MANY_ATTEMPTS",
    }
    code = code_map.get(status_code, "HTTP_ERROR")
    message = str(exc.detail) if exc.detail else "Request failed."
    return error_response(
        request,
        status_code=status_code,
        code=code,
        message=message,
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        request,
        status_code=422,
        code="VALIDATION_ERROR",
        message=str(exc.errors()),
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_error",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "path": request.url.path,
            "method": request.method,
        },
    )
    return error_response(
        request,
        status_code=500,
        code="INTERNAL_ERROR",
        message=str(exc) or "Unexpected server error.",
    )


app.include_router(auth.router)
app.include_router(employees.router)
app.include_router(payroll.router)
app.include_router(requests.router)
app.include_router(leave.router)
app.include_router(attendance.router)
app.include_router(onboarding.router)
app.include_router(government.router)


def _default_schema_guard_result() -> SchemaGuardResult:
    return SchemaGuardResult(
        ok=False,
        checked_at_utc=datetime.now(timezone.utc),
        issues=["SCHEMA_GUARD_NOT_RUN"],
        warnings=[],
    )


async def _onboarding_reminder_loop(stop_event: asyncio.Event) -> None:
    interval_seconds = max(60, int(settings.onboarding_reminder_interval_seconds))
    while not stop_event.is_set():
        try:
            result = await asyncio.to_thread(send_onboarding_reminders)
        except Exception:
            reminder_worker_logger.exception("onboarding_reminder_tick_failed")
        else:
            summary = result.to_dict()
            if summary["reminders_sent"] or summary["marked_overdue"] or summary["errors"]:
                reminder_worker_logger.info(
                    "onboarding_reminder_tick",
                    extra={
                        "reminders_sent": summary["reminders_sent"],
                        "marked_overdue": summary["marked_overdue"],
                        "error_count": len(summary["errors"]),
                    },
                )

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue


@app.on_event("startup")
async def run_schema_guard() -> None:
    result = await asyncio.to_thread(verify_runtime_schema, engine)
    app.state.schema_guard_result = result
    if result.ok:
        reminder_worker_logger.info(
            "schema_guard_ok",
            extra=result.to_dict(),
        )
        return

    reminder_worker_logger.error(
        "schema_guard_failed",
        extra=result.to_dict(),
    )
    if settings.schema_guard_strict:
        joined_issues = "; ".join(result.issues)
        raise RuntimeError(f"Runtime schema guard failed: {joined_issues}")


@app.on_event("startup")
async def start_onboarding_reminder_worker() -> None:
    if not settings.onboarding_reminder_worker_enabled:
        return
    if getattr(app.state, "onboarding_reminder_task", None) is not None:
        return

    stop_event = asyncio.Event()
    task = asyncio.create_task(_onboarding_reminder_loop(stop_event))
    app.state.onboarding_reminder_stop_event = stop_event
    app.state.onboarding_reminder_task = task
    channel_health = await asyncio.to_thread(get_notification_channel_health)
    email_status = channel_health.get("email", {}) if isinstance(channel_health, dict) else {}
    missing_fields = email_status.get("missing_fields", []) if isinstance(email_status, dict) else []
    if isinstance(missing_fields, list) and missing_fields:
        reminder_worker_logger.warning(
            "notification_email_channel_not_configured",
            extra={"missing_fields": missing_fields},
        )
    reminder_worker_logger.info(
        "onboarding_reminder_worker_started",
        extra={
            "interval_seconds": max(60, int(settings.onboarding_reminder_interval_seconds)),
            "channel_health": channel_health,
        },
    )


@app.on_event("shutdown")
async def stop_onboarding_reminder_worker() -> None:
    stop_event: asyncio.Event | None = getattr(app.state, "onboarding_reminder_stop_event", None)
    task: asyncio.Task[None] | None = getattr(app.state, "onboarding_reminder_task", None)
    if stop_event is not None:
        stop_event.set()
    if task is not None:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
    app.state.onboarding_reminder_stop_event = None
    app.state.onboarding_reminder_task = None


@app.get("/health")
def health() -> dict[str, Any]:
    schema_guard_result: SchemaGuardResult = getattr(app.state, "schema_guard_result", _default_schema_guard_result())
    return {
        "status": "ok",
        "schema_guard": schema_guard_result.to_dict(),
        "notification_channels": get_notification_channel_health(),
    }
