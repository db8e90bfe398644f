"""Server-side login sessions.

A session is a Redis hash keyed by an opaque cookie value. Every read
slides the idle TTL forward, so a session lives until it goes unused for
SESSION_TIMEOUT_MINUTES.
"""
import secrets
import time
from typing import Optional

import redis.asyncio as aioredis

from rentalhub.core.config import settings

SESSION_COOKIE = "session_id"
SESSION_PREFIX = "session:"
SESSION_TTL = settings.SESSION_TIMEOUT_MINUTES * 60


def _key(session_id: str) -> str:
    return f"{SESSION_PREFIX}{session_id}"


def _epoch() -> str:
    return str(int(time.time()))


async def create_session(r: aioredis.Redis, account_id: int, role: str, email: str) -> str:
    session_id = secrets.token_hex(32)
    issued = _epoch()
    await r.hset(_key(session_id), mapping={
        "account_id": str(account_id),
        "role": role,
        "email": email,
        "created_at": issued,
        "last_accessed": issued,
    })
    await r.expire(_key(session_id), SESSION_TTL)
    return session_id


async def get_session(r: aioredis.Redis, session_id: Optional[str]) -> Optional[dict]:
    """Session hash for a cookie value, or None when unknown or idle too long"""
    if not session_id:
        return None
    key = _key(session_id)
    data = await r.hgetall(key)
    if not data:
        return None
    await r.hset(key, "last_accessed", _epoch())
    await r.expire(key, SESSION_TTL)
    return data


async def destroy_session(r: aioredis.Redis, session_id: Optional[str]) -> None:
    if session_id:
        await r.delete(_key(session_id))
