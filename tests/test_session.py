import asyncio
from unittest.mock import AsyncMock

from rentalhub.core import session


def test_create_session_stores_account_and_sets_ttl():
    r = AsyncMock()
    session_id = asyncio.run(session.create_session(r, 5, "landlord", "owner@example.com"))

    key = f"session:{session_id}"
    stored = r.hset.await_args.kwargs["mapping"]
    assert r.hset.await_args.args[0] == key
    assert stored["account_id"] == "5"
    assert stored["role"] == "landlord"
    r.expire.assert_awaited_once_with(key, session.SESSION_TTL)


def test_get_session_slides_ttl():
    r = AsyncMock()
    r.hgetall.return_value = {"account_id": "5", "role": "landlord"}

    data = asyncio.run(session.get_session(r, "abc"))

    assert data["account_id"] == "5"
    r.expire.assert_awaited_once_with("session:abc", session.SESSION_TTL)


def test_get_session_unknown_or_blank():
    r = AsyncMock()
    r.hgetall.return_value = {}

    assert asyncio.run(session.get_session(r, "missing")) is None
    assert asyncio.run(session.get_session(r, "")) is None
    r.expire.assert_not_awaited()


def test_destroy_session():
    r = AsyncMock()
    asyncio.run(session.destroy_session(r, "abc"))
    r.delete.assert_awaited_once_with("session:abc")
