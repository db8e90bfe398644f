"""Daily subscription sweep: promote due renewals, expire ended plans"""
import threading
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from rentalhub.core.database import SessionLocal
from rentalhub.core.logging import get_logger
from rentalhub.services import subscription_service

logger = get_logger(__name__)

# in-process guard on top of APScheduler's max_instances=1 (covers manual runs)
_sweep_lock = threading.Lock()


def run_subscription_sweep(
    session_factory: Callable[[], Session] = SessionLocal,
    now: Optional[datetime] = None,
) -> Optional[dict]:
    """Returns the counts, or None when a sweep is already running"""
    if not _sweep_lock.acquire(blocking=False):
        logger.warning("Subscription sweep already running, skipping")
        return None

    db = session_factory()
    try:
        now = now or subscription_service.utcnow()
        activated = subscription_service.activate_upcoming_subscriptions(db, now)
        expired = subscription_service.expire_subscriptions(db, now)
        logger.info(f"Subscription sweep done: activated={activated}, expired={expired}")
        return {"activated": activated, "expired": expired}
    except Exception as e:
        db.rollback()
        logger.error(f"Subscription sweep error: {e}", exc_info=True)
        return None
    finally:
        db.close()
        _sweep_lock.release()
