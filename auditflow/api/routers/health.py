"""Health check endpoints for AuditFlow.

Provides Kubernetes-compatible health probes:
- /health: Basic health check
- /health/live: Liveness probe (is the app running?)
- /health/ready: Readiness probe (can the app reach its database?)
- /health/detailed: Database, disk and memory checks
"""

import time
from typing import Any, Dict, Tuple
from datetime import datetime

import psutil
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from auditflow.api.deps import get_db

router = APIRouter(tags=["health"])

# Thresholds
DISK_WARNING_PERCENT = 85
DISK_CRITICAL_PERCENT = 95
MEMORY_WARNING_PERCENT = 85
MEMORY_CRITICAL_PERCENT = 95

VERSION_QUERIES = {
    "postgresql": "SELECT version()",
    "sqlite": "SELECT sqlite_version()",
}


def _app_version(request: Request) -> str:
    return request.app.version


def _threshold_status(percent_used: float, warning: float, critical: float) -> str:
    if percent_used >= critical:
        return "critical"
    if percent_used >= warning:
        return "warning"
    return "healthy"


def check_database(db: Session) -> Dict[str, Any]:
    """Check database connectivity and report the server version."""
    try:
        started = time.perf_counter()
        db.execute(text("SELECT 1")).fetchone()
        latency_ms = round((time.perf_counter() - started) * 1000, 2)

        dialect = db.get_bind().dialect.name
        version = "unknown"
        query = VERSION_QUERIES.get(dialect)
        if query:
            row = db.execute(text(query)).fetchone()
            if row and row[0]:
                version = " ".join(str(row[0]).split()[0:2])

        return {
            "status": "healthy",
            "dialect": dialect,
            "latency_ms": latency_ms,
            "version": version,
        }
    except SQLAlchemyError as e:
        return {
            "status": "unhealthy",
            "error": str(e),
        }


def check_disk() -> Dict[str, Any]:
    """Check disk space."""
    try:
        disk = psutil.disk_usage("/")
    except OSError as e:
        return {"status": "unknown", "error": str(e)}

    return {
        "status": _threshold_status(disk.percent, DISK_WARNING_PERCENT, DISK_CRITICAL_PERCENT),
        "total_gb": round(disk.total / (1024**3), 2),
        "used_gb": round(disk.used / (1024**3), 2),
        "free_gb": round(disk.free / (1024**3), 2),
        "percent_used": disk.percent,
    }


def check_memory() -> Dict[str, Any]:
    """Check memory usage."""
    try:
        memory = psutil.virtual_memory()
    except OSError as e:
        return {"status": "unknown", "error": str(e)}

    return {
        "status": _threshold_status(memory.percent, MEMORY_WARNING_PERCENT, MEMORY_CRITICAL_PERCENT),
        "total_gb": round(memory.total / (1024**3), 2),
        "available_gb": round(memory.available / (1024**3), 2),
        "percent_used": memory.percent,
    }


def _now() -> str:
    return datetime.utcnow().isoformat()


def _rollup(checks: Dict[str, Dict[str, Any]]) -> Tuple[str, int]:
    """Overall status and HTTP code for a set of checks."""
    statuses = {check.get("status", "unknown") for check in checks.values()}
    if statuses & {"unhealthy", "critical"}:
        return "unhealthy", status.HTTP_503_SERVICE_UNAVAILABLE
    if "warning" in statuses:
        return "degraded", status.HTTP_200_OK
    return "healthy", status.HTTP_200_OK


@router.get("/health")
async def health_check(request: Request):
    """Process is up. Touches nothing else."""
    return {"status": "healthy", "version": _app_version(request), "timestamp": _now()}


@router.get("/health/live")
async def liveness_probe():
    """Kubernetes liveness probe; failure means restart the container."""
    return {"status": "alive", "timestamp": _now()}


@router.get("/health/ready")
async def readiness_probe(db: Session = Depends(get_db)):
    """
    Kubernetes readiness probe.

    Returns 503 while the database is unreachable.
    """
    checks = {"database": check_database(db)}
    failed = [name for name, check in checks.items() if check["status"] == "unhealthy"]

    body = {"status": "not_ready" if failed else "ready", "checks": checks, "timestamp": _now()}
    if failed:
        body["failed"] = failed
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE if failed else status.HTTP_200_OK,
        content=body,
    )


@router.get("/health/detailed")
async def detailed_health_check(request: Request, db: Session = Depends(get_db)):
    """Database, disk and memory checks rolled up into one status."""
    checks = {
        "database": check_database(db),
        "disk": check_disk(),
        "memory": check_memory(),
    }
    overall, http_status = _rollup(checks)

    return JSONResponse(
        status_code=http_status,
        content={
            "status": overall,
            "version": _app_version(request),
            "checks": checks,
            "timestamp": _now(),
        },
    )
