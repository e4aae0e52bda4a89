from __future__ import annotations

import argparse

from courtdesk.core.logger import logger
from courtdesk.db.database import SessionLocal
from courtdesk.services.fanout_service import drain_pending, outbox_stats, requeue_failed


def run_drain_outbox_job(limit: int | None = None, requeue: bool = False, max_passes: int = 1) -> dict:
    """
    Deliver pending fan-out events. With ``requeue`` the dead (failed) events
    get a fresh attempt budget first.
    """
    db = SessionLocal()
    try:
        requeued = requeue_failed(db) if requeue else 0
        if requeued:
            logger.info("Requeued %s failed outbox events", requeued)

        delivered = failed = 0
        for _ in range(max(1, max_passes)):
            stats = drain_pending(db, limit=limit)
            delivered += stats["delivered"]
            failed += stats["failed"]
            if not stats["delivered"] and not stats["failed"]:
                break

        summary = {
            "requeued": requeued,
            "delivered": delivered,
            "failed": failed,
            "outbox": outbox_stats(db),
        }
        logger.info("Outbox drain job finished: %s", summary)
        return summary
    finally:
        db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Deliver pending timeline, notification and audit events")
    parser.add_argument("--limit", type=int, default=None, help="Events per pass")
    parser.add_argument("--passes", type=int, default=1, help="Maximum number of passes")
    parser.add_argument("--requeue-failed", action="store_true", help="Retry events that gave up")
    args = parser.parse_args()

    summary = run_drain_outbox_job(limit=args.limit, requeue=args.requeue_failed, max_passes=args.passes)
    print(summary)


if __name__ == "__main__":
    main()
