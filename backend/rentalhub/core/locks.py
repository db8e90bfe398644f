"""Per-landlord distributed lock around ledger mutations"""
from contextlib import contextmanager

from redis.exceptions import LockError

from rentalhub.core.config import settings
from rentalhub.core.errors import ConflictError
from rentalhub.core.redis import get_lock_redis
from rentalhub.core.logging import get_logger

logger = get_logger(__name__)

LANDLORD_LOCK_PREFIX = "lock:subscription:landlord:"


@contextmanager
def landlord_lock(landlord_id: int):
    """Serialize check-then-write billing operations for one landlord"""
    r = get_lock_redis()
    lock = r.lock(
        f"{LANDLORD_LOCK_PREFIX}{landlord_id}",
        timeout=settings.LANDLORD_LOCK_TIMEOUT_SECONDS,
        blocking_timeout=settings.LANDLORD_LOCK_WAIT_SECONDS,
    )
    if not lock.acquire():
        logger.warning(f"Landlord lock busy: landlord_id={landlord_id}")
        raise ConflictError("Another billing request is in progress, please retry shortly")
    try:
        yield
    finally:
        try:
            lock.release()
        except LockError:
            # expired while held; the next holder already owns it
            logger.warning(f"Landlord lock expired before release: landlord_id={landlord_id}")
