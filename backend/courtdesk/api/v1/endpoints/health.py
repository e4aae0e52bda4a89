"""
Health and readiness checks: database connectivity and outbox backlog.
"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from courtdesk.core.config import settings
from courtdesk.core.logger import logger
from courtdesk.db.database import get_db
from courtdesk.services.fanout_service import outbox_stats

router = APIRouter()


def _check_db(db: Session) -> tuple[str, str]:
    """Returns (status, detail). Status is 'ok' or 'error'."""
    try:
        db.execute(text("SELECT 1"))
        return "ok", "Database reachable"
    except Exception as e:
        logger.error(f"Health check: database unreachable: {e}")
        return "error", f"Database: {str(e)}"


@router.get("")
def health():
    """Liveness: the process is up."""
    return {"status": "ok", "app": settings.APP_NAME}


@router.get("/ready")
def ready(db: Session = Depends(get_db)):
    """
    Readiness: database reachable. Also reports the outbox backlog so a
    stuck fan-out worker is visible.
    """
    db_status, db_detail = _check_db(db)
    body = {
        "status": db_status,
        "checks": {"database": {"status": db_status, "detail": db_detail}},
    }
    if db_status == "ok":
        body["outbox"] = outbox_stats(db)
    return body
