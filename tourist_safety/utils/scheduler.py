import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler

from ..config import SCORE_RECOMPUTE_INTERVAL_MINUTES
from ..core.processing import recompute_safety_score
from ..db.store import get_store

logger = logging.getLogger(__name__)


def recompute_all_scores(store=None):
    """
    Recompute the safety score of every tourist with a stored location.

    Each sweep deducts every still-active anomaly again from the stored
    score, so a tourist's score keeps falling while anomalies stay active.
    """
    store = store or get_store()
    updated, failed = 0, 0
    for dtid in store.list_tracked_tourists():
        try:
            recompute_safety_score(store, dtid)
            updated += 1
        except Exception as e:
            # one bad record must not stop the sweep
            failed += 1
            logger.error(f"[✗] Error recomputing safety score for {dtid}: {e}")
    logger.info(f"[Scheduler] Safety scores recomputed at {datetime.now(timezone.utc).isoformat()}: {updated} updated, {failed} failed")
    return updated, failed


def start_scheduler(store=None, interval_minutes=SCORE_RECOMPUTE_INTERVAL_MINUTES):
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        recompute_all_scores, "interval",
        minutes=interval_minutes,
        kwargs={"store": store},
        id="recompute_safety_scores",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"[i] Scheduler started, recomputing scores every {interval_minutes} minutes")
    return scheduler
