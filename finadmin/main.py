from __future__ import annotations

from contextlib import asynccontextmanager
import asyncio
import logging
import os
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from sqlalchemy import text

from finadmin.api.router import api_router
from finadmin.config import settings
from finadmin.core.notifications import build_notification_gateway
from finadmin.db.session import engine
from finadmin.utils.error_codes import ERROR_MESSAGES, ErrorCode
from finadmin.utils.exceptions import AdminApiException
from finadmin.utils.request_id import REQUEST_ID_HEADER


logger = logging.getLogger(__name__)

logging.getLogger("finadmin").setLevel((settings.LOG_LEVEL or "INFO").upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state._bg_stop_event = asyncio.Event()
    app.state._bg_tasks = []

    # Background tasks (best-effort)
    if getattr(settings, "RECOVERY_ENABLED", True):
        from finadmin.core.recovery import recovery_loop
        from finadmin.db.session import AsyncSessionLocal

        task = asyncio.create_task(
            recovery_loop(session_factory=AsyncSessionLocal, stop_event=app.state._bg_stop_event)
        )
        app.state._bg_tasks.append(task)

    try:
        yield
    finally:
        app.state._bg_stop_event.set()
        tasks = list(getattr(app.state, "_bg_tasks", []) or [])
        if tasks:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        app.state._bg_tasks = []

        # Ensure DB connections/threads are cleaned up when the app shuts down.
        await engine.dispose()


app = FastAPI(title="Finance Admin Backend", debug=settings.DEBUG, lifespan=lifespan)

# Shared across requests: the outbox keeps codes in memory for the process lifetime.
app.state.notification_gateway = build_notification_gateway(settings)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    from finadmin.utils.request_id import request_id_var, new_request_id, validate_request_id

    incoming_rid = request.headers.get(REQUEST_ID_HEADER)
    rid = validate_request_id(incoming_rid) or new_request_id()
    token = request_id_var.set(rid)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)

    response.headers[REQUEST_ID_HEADER] = rid
    return response


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    if not getattr(settings, "METRICS_ENABLED", True):
        return await call_next(request)

    start = time.perf_counter()
    response = await call_next(request)
    elapsed_s = time.perf_counter() - start

    from finadmin.utils.metrics import HTTP_REQUESTS_TOTAL, HTTP_REQUEST_DURATION_SECONDS

    route = request.scope.get("route")
    # Keep Prometheus label cardinality low: route template, or a fixed label.
    route_path = getattr(route, "path", None)
    if isinstance(route_path, str) and route_path:
        path_label = route_path
    else:
        path_label = "__unmatched__"
    method = request.method
    status = str(getattr(response, "status_code", 0))

    HTTP_REQUESTS_TOTAL.labels(method=method, path=path_label, status=status).inc()
    HTTP_REQUEST_DURATION_SECONDS.labels(method=method, path=path_label).observe(elapsed_s)

    return response


@app.exception_handler(AdminApiException)
async def admin_api_exception_handler(request: Request, exc: AdminApiException):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    # Schema validation errors share the admin error envelope (E009).
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": ErrorCode.E009.value,
                "message": ERROR_MESSAGES[ErrorCode.E009],
                "details": {"errors": exc.errors()},
            }
        },
    )


app.include_router(api_router, prefix="/api/v1")

_START_TIME = time.time()


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _best_effort_version() -> str:
    v = (os.getenv("FINADMIN_APP_VERSION") or os.getenv("APP_VERSION") or "").strip()
    return v or "dev"


if getattr(settings, "METRICS_ENABLED", True):

    @app.get("/metrics")
    async def metrics():
        from finadmin.utils.metrics import render_metrics

        payload, content_type = render_metrics()
        return Response(content=payload, media_type=content_type)


@app.get("/health")
async def health_check():
    return {
        "status": "ok",
        "version": _best_effort_version(),
        "uptime_seconds": int(max(0.0, time.time() - _START_TIME)),
        "timestamp": _utc_now_iso(),
    }


@app.get("/healthz")
async def healthz_check():
    return {"status": "ok"}


@app.get("/health/db")
async def health_db_check():
    try:
        t0 = time.perf_counter()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        latency_ms = int(round((time.perf_counter() - t0) * 1000.0))
        return {
            "status": "ok",
            "db": {"reachable": True, "latency_ms": latency_ms},
            "timestamp": _utc_now_iso(),
        }
    except Exception as exc:
        return JSONResponse(
            status_code=503,
            content={
                "status": "error",
                "db": {"reachable": False, "latency_ms": None},
                "details": str(exc),
                "timestamp": _utc_now_iso(),
            },
        )
