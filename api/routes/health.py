"""
Health, readiness, version and Prometheus endpoints
"""
import subprocess
import time
from datetime import datetime, timezone
from pathlib import Path

import asyncpg
from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from lib.db import db
from lib.logging import get_logger
from lib.prometheus_metrics import health_check_status, update_uptime
from lib.settings import settings

router = APIRouter(tags=["ops"])
logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent.parent / "sql" / "migrations"


def migration_versions(migrations_dir: Path = MIGRATIONS_DIR) -> dict:
    """Map version -> filename for every *.sql file (001_initial.sql -> 1)"""
    versions = {}
    for file in sorted(migrations_dir.glob("*.sql")):
        try:
            versions[int(file.name.split("_")[0])] = file.name
        except ValueError:
            continue
    return versions


@router.get("/healthz")
async def health_check(request: Request, response: Response):
    """
    Liveness plus database connectivity
    Returns: {"ok": true} with 200 if healthy, 503 otherwise
    """
    start = time.time()
    db_healthy = await db.health_check()
    health_check_status.labels(check_type="database").set(1 if db_healthy else 0)

    response.status_code = 200 if db_healthy else 503
    return {
        "ok": db_healthy,
        "database": "connected" if db_healthy else "disconnected",
        "latency_ms": round((time.time() - start) * 1000, 2),
        "request_id": getattr(request.state, "request_id", None),
    }


@router.get("/api/health")
async def api_health():
    """Simple probe used by the dashboard client"""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/readyz")
async def readiness_check(response: Response):
    """
    Returns 200 when the database is reachable and every migration file
    has been applied, 503 otherwise
    """
    db_healthy = await db.health_check()

    pending = []
    if db_healthy:
        try:
            async with db.pool.acquire() as conn:
                applied = {
                    row["version"]
                    for row in await conn.fetch("SELECT version FROM schema_migrations")
                }
            pending = [
                name for version, name in migration_versions().items()
                if version not in applied
            ]
        except asyncpg.PostgresError as e:
            logger.warning(f"readiness: cannot read schema_migrations: {e}")
            pending = list(migration_versions().values())

    is_ready = db_healthy and not pending
    health_check_status.labels(check_type="migrations").set(1 if is_ready else 0)

    response.status_code = 200 if is_ready else 503
    return {
        "ready": is_ready,
        "database": "ok" if db_healthy else "unavailable",
        "migrations": "pending" if pending else "applied",
        "pending": pending,
    }


@router.get("/version")
async def version_info():
    """Return API version information"""
    try:
        git_sha = subprocess.check_output(
            ["git", "rev-parse", "HEAD"], text=True, stderr=subprocess.DEVNULL
        ).strip()[:8]
    except (OSError, subprocess.CalledProcessError):
        git_sha = "unknown"

    return {
        "version": "1.0.0",
        "name": settings.app_name,
        "environment": settings.environment,
        "git_sha": git_sha,
    }


@router.get("/metrics", response_class=Response)
async def metrics():
    """Prometheus-compatible metrics endpoint"""
    update_uptime()
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
