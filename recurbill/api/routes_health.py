from __future__ import annotations

import time

from fastapi import APIRouter, HTTPException
from sqlalchemy import text
from sqlalchemy.orm import Session

from recurbill.api.dependencies import ConfigServiceDep, DbDep
from recurbill.workers.celery_app import celery_app

router = APIRouter(tags=["health"])


def _check_db(db: Session) -> bool:
    db.execute(text("SELECT 1"))
    return True


def _check_broker() -> bool:
    try:
        with celery_app.connection_for_write() as conn:
            conn.ensure_connection(max_retries=1)
        return True
    except Exception:  # noqa: BLE001
        return False


@router.get("/healthz")
def healthz(db: DbDep) -> dict[str, str]:
    """Basic liveness probe (cheap)."""
    try:
        _check_db(db)
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(status_code=503, detail="Database connectivity check failed") from exc
    return {"status": "ok"}


@router.get("/live")
def live() -> dict[str, str]:
    """Kubernetes-style liveness endpoint (no dependencies)."""
    return {"status": "alive"}


@router.get("/ready")
def ready(db: DbDep, config: ConfigServiceDep) -> dict[str, object]:
    """Readiness probe: database plus the Celery broker the daily sweep depends on.

    An unset payment key is reported but does not fail the probe; reminders are
    skipped and retried until it is configured.
    """
    start = time.time()
    payment_key_ok = False
    try:
        db_ok = _check_db(db)
        payment_key_ok = config.get_payment_key() is not None
    except Exception:  # noqa: BLE001
        db_ok = False
    broker_ok = _check_broker()
    duration_ms = int((time.time() - start) * 1000)
    if not (db_ok and broker_ok):
        raise HTTPException(status_code=503, detail={
            "db": db_ok,
            "broker": broker_ok,
            "payment_key_configured": payment_key_ok,
            "latency_ms": duration_ms,
        })
    return {
        "status": "ready",
        "db": db_ok,
        "broker": broker_ok,
        "payment_key_configured": payment_key_ok,
        "latency_ms": duration_ms,
    }
