"""
services/background_jobs.py

Scheduled background jobs for Courtdesk.

Jobs:
  1. drain_outbox
     Delivers fan-out events (timeline, notification, audit) that were not
     delivered inline, until each succeeds or runs out of attempts.
     Runs every OUTBOX_WORKER_INTERVAL_SECONDS.

Setup (APScheduler, started from the FastAPI lifespan in main.py):

    from courtdesk.services.background_jobs import start_scheduler, shutdown_scheduler

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        start_scheduler()
        yield
        shutdown_scheduler()
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from courtdesk.core.config import settings
from courtdesk.db.database import SessionLocal
from courtdesk.services.fanout_service import drain_pending

logger = logging.getLogger(__name__)

# ── Scheduler singleton ───────────────────────────────────────────────────────
_scheduler: AsyncIOScheduler | None = None


def start_scheduler() -> None:
    """
    Starts the APScheduler background job scheduler.
    Call this from FastAPI lifespan startup.
    """
    global _scheduler

    if not settings.OUTBOX_WORKER_ENABLED:
        logger.info("Outbox worker disabled (OUTBOX_WORKER_ENABLED=false)")
        return

    _scheduler = AsyncIOScheduler()
    _scheduler.add_job(
        drain_outbox,
        trigger=IntervalTrigger(seconds=settings.OUTBOX_WORKER_INTERVAL_SECONDS),
        id="drain_outbox",
        name="Deliver pending fan-out events",
        replace_existing=True,
        max_instances=1,          # never run two at once
        misfire_grace_time=60,
    )
    _scheduler.start()
    logger.info(
        "Background scheduler started: outbox drain every %ss",
        settings.OUTBOX_WORKER_INTERVAL_SECONDS,
    )


def shutdown_scheduler() -> None:
    """Call this from FastAPI lifespan shutdown."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
    _scheduler = None


# ============================================================================
# Job: drain_outbox
# ============================================================================

def drain_outbox() -> dict[str, int]:
    """
    One pass over the pending outbox. Opens its own DB session.
    Errors are logged, never raised, so one bad pass does not kill the job.
    """
    db = SessionLocal()
    try:
        return drain_pending(db, limit=settings.OUTBOX_BATCH_SIZE)
    except Exception as e:
        db.rollback()
        logger.error(f"drain_outbox failed: {e}", exc_info=True)
        return {"delivered": 0, "failed": 0}
    finally:
        db.close()
