import inspect
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import Depends, FastAPI
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from conftest import signed_callback
from rentalhub.core.config import settings
from rentalhub.core.database import get_db
from rentalhub.core.redis import get_redis
from rentalhub.main import app
from rentalhub.models.subscription import Subscription
from rentalhub.routers.deps import (
    SUBSCRIPTION_REQUIRED_MESSAGE, require_active_subscription, require_admin, require_landlord, require_login,
)
from rentalhub.services import auth_service
from rentalhub.services.subscription_service import utcnow


@pytest.fixture
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _act_as(account):
    app.dependency_overrides[require_login] = lambda: account
    if account.role == "landlord":
        app.dependency_overrides[require_landlord] = lambda: account
    if account.role == "admin":
        app.dependency_overrides[require_admin] = lambda: account


# =========================================================
# Subscriptions
# =========================================================

def test_trial_route(client, landlord, trial_package, mock_mail):
    _act_as(landlord)

    response = client.post("/api/subscriptions/trial")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "active"
    assert body["is_trial"] is True
    assert body["package"]["name"] == "Trial"
    mock_mail.trial_welcome.assert_called_once()

    again = client.post("/api/subscriptions/trial")
    assert again.status_code == 409
    assert "already used" in again.json()["detail"]


def test_trial_route_without_trial_package_hides_detail(client, landlord):
    _act_as(landlord)
    response = client.post("/api/subscriptions/trial")
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error, please try again later"}


def test_buy_then_callback(client, db, landlord, paid_package, mock_mail):
    _act_as(landlord)

    response = client.post(
        "/api/subscriptions/buy",
        json={"package_id": paid_package.id},
        headers={"X-Forwarded-For": "198.51.100.7, 10.0.0.1"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["payment_url"].startswith(settings.VNP_URL)
    assert "vnp_IpAddr=198.51.100.7" in body["payment_url"]

    sub = db.query(Subscription).filter(Subscription.id == body["subscription_id"]).first()

    callback = client.get("/api/subscriptions/payment-callback", params=signed_callback(sub))
    assert callback.status_code == 200
    assert callback.json() == {
        "success": True,
        "message": "Payment successful; your package is active",
        "subscription_id": sub.id,
        "status": "active",
    }
    mock_mail.payment_success.assert_called_once()

    replay = client.get("/api/subscriptions/payment-callback", params=signed_callback(sub))
    assert replay.status_code == 200
    assert replay.json()["message"] == "Payment was already processed"


def test_callback_bad_signature(client, landlord, paid_package, make_subscription):
    sub = make_subscription(landlord.id, paid_package, status="pending_payment")
    params = signed_callback(sub)
    params["vnp_TransactionNo"] = "99999999"

    response = client.get("/api/subscriptions/payment-callback", params=params)
    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid payment signature", "code": "97"}


def test_callback_gateway_failure_code(client, landlord, paid_package, make_subscription):
    sub = make_subscription(landlord.id, paid_package, status="pending_payment")
    response = client.get("/api/subscriptions/payment-callback", params=signed_callback(sub, response_code="24"))
    assert response.status_code == 400
    assert response.json()["code"] == "24"


def test_buy_validation_error(client, landlord):
    _act_as(landlord)
    response = client.post("/api/subscriptions/buy", json={"package_id": 0})
    assert response.status_code == 422
    assert "package_id" in response.json()["detail"]


def test_renew_without_plan(client, landlord):
    _act_as(landlord)
    response = client.post("/api/subscriptions/renew")
    assert response.status_code == 409


def test_history_and_detail(client, landlord, make_account, paid_package, make_subscription):
    _act_as(landlord)
    now = utcnow()
    sub = make_subscription(landlord.id, paid_package, start_date=now, end_date=now + timedelta(days=30))
    make_subscription(landlord.id, paid_package, status="pending_payment", start_date=now)

    listing = client.get("/api/subscriptions", params={"limit": 5})
    assert listing.status_code == 200
    body = listing.json()
    assert body["total"] == 1
    assert body["total_pages"] == 1
    assert body["items"][0]["id"] == sub.id
    assert body["items"][0]["package"]["id"] == paid_package.id

    bad = client.get("/api/subscriptions", params={"status": "nope"})
    assert bad.status_code == 400

    detail = client.get(f"/api/subscriptions/{sub.id}")
    assert detail.status_code == 200

    _act_as(make_account("landlord"))
    assert client.get(f"/api/subscriptions/{sub.id}").status_code == 403


def test_current_package(client, landlord, paid_package, make_subscription):
    _act_as(landlord)
    assert client.get("/api/subscriptions/current").status_code == 404

    now = utcnow()
    make_subscription(landlord.id, paid_package, start_date=now - timedelta(days=3), end_date=now + timedelta(days=27))
    response = client.get("/api/subscriptions/current")
    assert response.status_code == 200
    body = response.json()
    assert body["is_active"] is True
    assert body["total_days"] == 30
    assert body["subscription"]["package"]["name"] == paid_package.name


def test_cancel_route(client, landlord, paid_package, make_subscription):
    _act_as(landlord)
    now = utcnow()
    sub = make_subscription(landlord.id, paid_package, start_date=now, end_date=now + timedelta(days=30))

    response = client.post(f"/api/subscriptions/{sub.id}/cancel")
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    again = client.post(f"/api/subscriptions/{sub.id}/cancel")
    assert again.status_code == 409


@pytest.mark.parametrize("path,method", [
    ("/api/subscriptions/trial", "POST"),
    ("/api/subscriptions/buy", "POST"),
    ("/api/subscriptions/renew", "POST"),
    ("/api/subscriptions/payment-callback", "GET"),
    ("/api/subscriptions/{subscription_id}/cancel", "POST"),
])
def test_locking_routes_run_off_the_event_loop(path, method):
    route = next(
        r for r in app.routes
        if isinstance(r, APIRoute) and r.path == path and method in r.methods
    )
    assert not inspect.iscoroutinefunction(route.endpoint)
    assert not inspect.iscoroutinefunction(route.dependant.call)


def test_unhandled_error_returns_generic_500(db, landlord):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    _act_as(landlord)
    try:
        with patch("rentalhub.services.subscription_service.list_subscriptions", side_effect=RuntimeError("boom")):
            with TestClient(app, raise_server_exceptions=False) as c:
                response = c.get("/api/subscriptions")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error, please try again later"}


# =========================================================
# Packages
# =========================================================

def test_public_packages(client, make_package):
    make_package(name="Visible")
    make_package(name="Hidden", is_active=False)

    response = client.get("/api/packages")
    assert response.status_code == 200
    assert [p["name"] for p in response.json()] == ["Visible"]


def test_admin_package_crud(client, make_account, landlord, make_subscription):
    admin = make_account("admin")
    _act_as(admin)

    created = client.post(
        "/api/admin/packages",
        json={"name": "Trial", "price": 50000, "duration_days": 7, "room_limit": 5, "type": "trial"},
    )
    assert created.status_code == 201
    assert created.json()["price"] == 0
    package_id = created.json()["id"]

    updated = client.put(f"/api/admin/packages/{package_id}", json={"duration_days": 14})
    assert updated.status_code == 200
    assert updated.json()["duration_days"] == 14

    invalid = client.post(
        "/api/admin/packages",
        json={"name": "Bad", "price": 1, "duration_days": 7, "room_limit": 0},
    )
    assert invalid.status_code == 422


def test_admin_delete_referenced_package(client, db, make_account, landlord, paid_package, make_subscription):
    _act_as(make_account("admin"))
    make_subscription(landlord.id, paid_package)

    response = client.delete(f"/api/admin/packages/{paid_package.id}")
    assert response.status_code == 409


def test_admin_routes_need_admin(client):
    # no override: the real require_admin rejects anonymous callers
    fake_redis = AsyncMock()
    app.dependency_overrides[get_redis] = lambda: fake_redis
    assert client.get("/api/admin/packages").status_code == 401


# =========================================================
# Auth and health
# =========================================================

def test_login_sets_session_cookie(client, make_account):
    account = make_account("landlord", email="owner@example.com", password_hash=auth_service.hash_password("s3cret-pass"))
    fake_redis = AsyncMock()
    app.dependency_overrides[get_redis] = lambda: fake_redis

    response = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "s3cret-pass"})
    assert response.status_code == 200
    assert response.json()["account_id"] == account.id
    assert "session_id" in response.headers["set-cookie"]
    fake_redis.hset.assert_awaited_once()

    wrong = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "nope"})
    assert wrong.status_code == 401


def test_health_degraded(client):
    with patch("rentalhub.routers.health.check_db_connection", return_value=True), \
         patch("rentalhub.routers.health.check_redis_connection", AsyncMock(return_value=False)):
        response = client.get("/health")
    assert response.status_code == 503
    assert response.json() == {"status": "degraded", "db": True, "redis": False}


# =========================================================
# Entitlement gate
# =========================================================

gate_app = FastAPI()


@gate_app.get("/feature")
async def feature(user=Depends(require_active_subscription)):
    return {"account_id": user.id}


@pytest.fixture
def gate_client(db):
    def _get_db():
        yield db

    gate_app.dependency_overrides[get_db] = _get_db
    with TestClient(gate_app) as c:
        yield c
    gate_app.dependency_overrides.clear()


def _gate_as(account):
    gate_app.dependency_overrides[require_login] = lambda: account


def test_gate_rejects_landlord_without_plan(gate_client, landlord):
    _gate_as(landlord)
    response = gate_client.get("/feature")
    assert response.status_code == 403
    assert response.json()["detail"] == SUBSCRIPTION_REQUIRED_MESSAGE


def test_gate_rejects_expired_plan(gate_client, landlord, paid_package, make_subscription):
    now = utcnow()
    make_subscription(landlord.id, paid_package, start_date=now - timedelta(days=31), end_date=now - timedelta(days=1))
    _gate_as(landlord)
    assert gate_client.get("/feature").status_code == 403


def test_gate_allows_landlord_and_staff_with_plan(gate_client, landlord, make_staff, paid_package, make_subscription):
    now = utcnow()
    make_subscription(landlord.id, paid_package, start_date=now, end_date=now + timedelta(days=30))

    _gate_as(landlord)
    assert gate_client.get("/feature").status_code == 200

    staff = make_staff(landlord.id)
    _gate_as(staff)
    assert gate_client.get("/feature").json() == {"account_id": staff.id}


def test_gate_admin_bypass_and_orphan_staff(gate_client, make_account):
    _gate_as(make_account("admin"))
    assert gate_client.get("/feature").status_code == 200

    _gate_as(make_account("staff"))
    assert gate_client.get("/feature").status_code == 403
