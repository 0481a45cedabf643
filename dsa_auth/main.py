import time
import logging
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request
from sqlalchemy import text

from .application.use_cases.bootstrap_admin import BootstrapAdmin
from .config import settings
from .domain.errors import ValidationError
from .infrastructure.db import engine, SessionLocal
from .infrastructure.models import Base
from .infrastructure.metrics import (
    metrics_endpoint,
    http_requests_total,
    http_request_duration_seconds,
)
from .infrastructure.rate_limit import limiter
from .infrastructure.repositories import RefreshTokenRepository, UserRepository
from .infrastructure.security import PasswordHasher
from .interfaces.http.errors import install_error_handlers
from .interfaces.http.routers import admin as admin_router
from .interfaces.http.routers import auth as auth_router
from .interfaces.http.routers import users as users_router

VERSION = "0.1.0"

log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.make_filtering_bound_logger(log_level),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

app = FastAPI(title="DSA Auth Service", version=VERSION)
app.state.limiter = limiter
install_error_handlers(app)


@app.middleware("http")
async def observe_request(request: Request, call_next):
    start_time = time.time()
    method = request.method
    path = request.url.path

    response = await call_next(request)

    if response.headers.get("content-type", "").startswith("application/json"):
        response.headers["content-type"] = "application/json; charset=utf-8"

    duration = time.time() - start_time
    status_code = response.status_code
    # шаблон маршрута вместо пути, чтобы метки не разрастались (/api/admin/users/{user_id})
    route = request.scope.get("route")
    endpoint = getattr(route, "path", path)
    http_requests_total.labels(method=method, endpoint=endpoint, status=status_code).inc()
    http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)

    logger.info(
        "http_request",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=round(duration * 1000, 2)
    )

    return response


@app.on_event("startup")
def on_startup():
    logger.info("Starting auth service", version=VERSION)
    try:
        Base.metadata.create_all(bind=engine)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database unavailable, shutting down")
        raise
    logger.info("Database connection established")

    db = SessionLocal()
    try:
        pruned = RefreshTokenRepository(db).prune_expired(datetime.now(timezone.utc))
        logger.info("Pruned expired refresh tokens", count=pruned)
        if settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD:
            try:
                BootstrapAdmin(UserRepository(db), PasswordHasher()).execute(
                    settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD, settings.ADMIN_USERNAME
                )
            except ValidationError as e:
                # занятый username не должен ронять сервис
                logger.error("admin_bootstrap_failed", reason=e.message)
    finally:
        db.close()


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint"""
    return metrics_endpoint()


app.include_router(auth_router.router)
app.include_router(users_router.router)
app.include_router(admin_router.router)
