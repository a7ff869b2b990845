"""
Monitoring Routes

Liveness and readiness probes. Readiness covers what a request needs to
be served: a reachable database holding the consent tables.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from consentgate.config import settings
from consentgate.database import get_db
from consentgate.models import ConsentLog, ConsentOption

router = APIRouter(tags=["Monitoring"])

logger = logging.getLogger(__name__)

APP_START_TIME = time.time()

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"


class HealthStatus(BaseModel):
    status: str
    timestamp: str
    version: str
    uptime_seconds: float


class ReadinessStatus(BaseModel):
    status: str
    timestamp: str
    checks: dict[str, dict[str, Any]]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    """Liveness probe; touches nothing outside the process."""
    return HealthStatus(
        status=HEALTHY,
        timestamp=_now(),
        version=settings.app_version,
        uptime_seconds=round(time.time() - APP_START_TIME, 2),
    )


@router.get("/ready", response_model=ReadinessStatus)
async def readiness_check(response: Response, db: AsyncSession = Depends(get_db)) -> ReadinessStatus:
    """
    Readiness probe.

    503 while any check fails: without the options table no page can be
    gated, without the log table no consent can be recorded.
    """
    checks = {"database": await _check_database(db)}
    if checks["database"]["status"] == HEALTHY:
        checks["consent_tables"] = await _check_consent_tables(db)

    ready = all(check["status"] == HEALTHY for check in checks.values())
    if not ready:
        response.status_code = 503

    return ReadinessStatus(status="ready" if ready else "not_ready", timestamp=_now(), checks=checks)


async def _check_database(db: AsyncSession) -> dict[str, Any]:
    start = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning(f"Readiness check failed: database unreachable: {e}")
        return {"status": UNHEALTHY, "message": "Database connection failed"}

    return {"status": HEALTHY, "latency_ms": round((time.perf_counter() - start) * 1000, 2)}


async def _check_consent_tables(db: AsyncSession) -> dict[str, Any]:
    try:
        for model in (ConsentOption, ConsentLog):
            await db.execute(select(model).limit(1))
    except SQLAlchemyError as e:
        logger.warning(f"Readiness check failed: consent tables missing: {e}")
        await db.rollback()
        return {"status": UNHEALTHY, "message": "Consent tables are missing; run the migrations"}

    return {"status": HEALTHY}
