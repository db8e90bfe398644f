import os

# settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("VNP_TMNCODE", "TESTTMN1")
os.environ.setdefault("VNP_HASHSECRET", "TESTHASHSECRET0123456789")
os.environ.setdefault("DEBUG", "false")

from contextlib import nullcontext
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rentalhub.core.config import settings
from rentalhub.core.database import Base
from rentalhub.models import Account, Building, Floor, Package, Room, Staff, Subscription
from rentalhub.services import vnpay_service

NOW = datetime(2026, 3, 1, 8, 0, 0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def no_landlord_lock():
    """Redis is not available in tests"""
    with patch(
        "rentalhub.services.subscription_service.landlord_lock",
        side_effect=lambda landlord_id: nullcontext(),
    ) as mock_lock:
        yield mock_lock


@pytest.fixture(autouse=True)
def mock_mail():
    ok = {"success": True, "error": None}
    with patch("rentalhub.services.mail_service.send_trial_welcome_email", MagicMock(return_value=ok)) as trial, \
         patch("rentalhub.services.mail_service.send_payment_success_email", MagicMock(return_value=ok)) as paid:
        yield MagicMock(trial_welcome=trial, payment_success=paid)


# =========================================================
# Factories
# =========================================================

@pytest.fixture
def make_account(db):
    counter = {"n": 0}

    def _make(role="landlord", **kwargs):
        counter["n"] += 1
        account = Account(
            email=kwargs.pop("email", f"{role}{counter['n']}@example.com"),
            password_hash=kwargs.pop("password_hash", "not-a-real-hash"),
            full_name=kwargs.pop("full_name", f"{role.title()} {counter['n']}"),
            role=role,
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        db.add(account)
        db.commit()
        db.refresh(account)
        return account

    return _make


@pytest.fixture
def landlord(make_account):
    return make_account("landlord")


@pytest.fixture
def make_package(db):
    def _make(**kwargs):
        values = {
            "name": "Basic",
            "price": 200000,
            "duration_days": 30,
            "room_limit": 10,
            "type": "paid",
            "is_active": True,
        }
        values.update(kwargs)
        pkg = Package(**values)
        db.add(pkg)
        db.commit()
        db.refresh(pkg)
        return pkg

    return _make


@pytest.fixture
def trial_package(make_package):
    return make_package(name="Trial", price=0, duration_days=7, room_limit=5, type="trial")


@pytest.fixture
def paid_package(make_package):
    return make_package(name="Standard", price=300000, duration_days=30, room_limit=20)


@pytest.fixture
def make_subscription(db):
    def _make(landlord_id, package, **kwargs):
        values = {
            "landlord_id": landlord_id,
            "package_id": package.id,
            "start_date": NOW,
            "status": "active",
            "amount": package.price,
            "duration_days": package.duration_days,
            "room_limit": package.room_limit,
            "payment_method": "free" if package.type == "trial" else "vnpay",
            "is_trial": package.type == "trial",
            "is_renewal": False,
        }
        values.update(kwargs)
        sub = Subscription(**values)
        db.add(sub)
        db.commit()
        db.refresh(sub)
        return sub

    return _make


@pytest.fixture
def make_rooms(db):
    def _make(landlord_id, count, **room_kwargs):
        building = Building(landlord_id=landlord_id, name="Block A", address="1 Le Loi")
        db.add(building)
        db.flush()
        floor = Floor(building_id=building.id, level=1)
        db.add(floor)
        db.flush()
        rooms = []
        for i in range(count):
            room = Room(building_id=building.id, floor_id=floor.id, room_number=f"1{i:02d}", **room_kwargs)
            db.add(room)
            rooms.append(room)
        db.commit()
        return rooms

    return _make


@pytest.fixture
def make_staff(db, make_account):
    def _make(landlord_id):
        account = make_account("staff")
        db.add(Staff(account_id=account.id, landlord_id=landlord_id))
        db.commit()
        return account

    return _make


# =========================================================
# Gateway callbacks
# =========================================================

def signed_callback(sub, response_code="00", amount=None, txn_ref=None, transaction_no="14012345", secret=None):
    """Callback query params as VNPay would send them, signed with the configured secret"""
    if txn_ref is None:
        txn_ref = sub.transaction_ref or f"{vnpay_service.ORDER_TYPE_SUBSCRIPTION}_20260301150000_000001"
    params = {
        "vnp_Amount": str((sub.amount if amount is None else amount) * 100),
        "vnp_BankCode": "NCB",
        "vnp_OrderInfo": str(sub.id),
        "vnp_PayDate": "20260301150500",
        "vnp_ResponseCode": response_code,
        "vnp_TmnCode": settings.VNP_TMNCODE,
        "vnp_TransactionNo": transaction_no,
        "vnp_TransactionStatus": response_code,
        "vnp_TxnRef": txn_ref,
    }
    params["vnp_SecureHash"] = vnpay_service.sign(
        vnpay_service.canonical_query(params), secret or settings.VNP_HASHSECRET,
    )
    return params
