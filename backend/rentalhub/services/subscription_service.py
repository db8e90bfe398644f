"""Subscription ledger: trial, purchase, renewal, gateway reconciliation, cancellation, expiry"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Mapping, Optional

from fastapi import BackgroundTasks
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from rentalhub.core.config import settings
from rentalhub.core.errors import (
    AuthorizationError, ConflictError, GatewayError, NotFoundError, ValidationError,
)
from rentalhub.core.locks import landlord_lock
from rentalhub.models.account import Account
from rentalhub.models.package import Package, UNLIMITED_ROOMS
from rentalhub.models.subscription import Subscription, SUBSCRIPTION_STATUSES
from rentalhub.services import mail_service, package_service, room_usage_service, vnpay_service
from rentalhub.core.logging import get_logger

logger = get_logger(__name__)

PENDING = "pending_payment"
ACTIVE = "active"
UPCOMING = "upcoming"
EXPIRED = "expired"
CANCELLED = "cancelled"

MAX_PAGE_SIZE = 100
RENEWAL_REMINDER_DAYS = 7


@dataclass
class CheckoutResult:
    subscription: Subscription
    payment_url: str
    expires_at: Optional[datetime]
    old_subscription_id: Optional[int] = None


@dataclass
class CallbackResult:
    subscription: Subscription
    already_processed: bool


def utcnow() -> datetime:
    """Naive UTC, matching the DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_remaining(end_date: Optional[datetime], now: datetime) -> int:
    """Whole days left, rounded up; 0 once ended"""
    if end_date is None:
        return 0
    seconds = (end_date - now).total_seconds()
    return max(0, math.ceil(seconds / 86400))


def _effective_filter(now: datetime):
    """Active and unexpired, or an upcoming renewal whose start has already arrived"""
    return or_(
        and_(Subscription.status == ACTIVE, Subscription.end_date > now),
        and_(
            Subscription.status == UPCOMING,
            Subscription.start_date <= now,
            Subscription.end_date > now,
        ),
    )


def find_current_subscription(
    db: Session,
    landlord_id: int,
    now: Optional[datetime] = None,
    include_trial: bool = True,
) -> Optional[Subscription]:
    """The landlord's effective plan right now"""
    now = now or utcnow()
    query = db.query(Subscription).filter(
        Subscription.landlord_id == landlord_id,
        _effective_filter(now),
    )
    if not include_trial:
        query = query.filter(Subscription.is_trial == False)
    return query.order_by(Subscription.end_date.desc(), Subscription.id.desc()).first()


def has_active_subscription(db: Session, landlord_id: int, now: Optional[datetime] = None) -> bool:
    """Entitlement gate consulted by feature routers"""
    now = now or utcnow()
    return db.query(Subscription.id).filter(
        Subscription.landlord_id == landlord_id,
        _effective_filter(now),
    ).first() is not None


# =========================================================
# Side effects
# =========================================================

def _send_quietly(send: Callable[..., dict], **kwargs) -> None:
    """Run a mail sender; failures are logged and never reach the ledger"""
    try:
        result = send(**kwargs)
    except Exception as e:
        logger.error(f"Mail side effect raised: {getattr(send, '__name__', send)} - {e}")
        return
    if not result or not result.get("success"):
        error = result.get("error") if result else None
        logger.warning(f"Mail side effect failed: {getattr(send, '__name__', send)} - {error}")


def _queue_email(background_tasks: Optional[BackgroundTasks], send: Callable[..., dict], **kwargs) -> None:
    if background_tasks is not None:
        background_tasks.add_task(_send_quietly, send, **kwargs)
    else:
        _send_quietly(send, **kwargs)


# =========================================================
# Checkout helpers
# =========================================================

def _attach_redirect(sub: Subscription, order_type: str, client_ip: str, now: datetime) -> None:
    """Mint a fresh gateway URL keyed by the subscription id"""
    redirect = vnpay_service.build_redirect(
        order_id=str(sub.id),
        amount=sub.amount,
        order_type=order_type,
        client_ip=client_ip,
        now=now,
    )
    sub.payment_url = redirect.url
    sub.vnp_expire_date = redirect.expire_at
    sub.transaction_ref = redirect.txn_ref


def _reuse_pending(
    db: Session,
    sub: Subscription,
    order_type: str,
    client_ip: str,
    now: datetime,
) -> CheckoutResult:
    """Hand back the pending record's URL, regenerating it once its TTL has passed"""
    if sub.payment_url and sub.vnp_expire_date and sub.vnp_expire_date > now:
        logger.info(f"Reusing pending payment URL: subscription_id={sub.id}")
        return CheckoutResult(subscription=sub, payment_url=sub.payment_url, expires_at=sub.vnp_expire_date)

    if not sub.is_renewal:
        # a fresh purchase period starts from the latest checkout attempt
        sub.start_date = now
    _attach_redirect(sub, order_type, client_ip, now)
    db.commit()
    db.refresh(sub)
    logger.info(f"Payment URL regenerated: subscription_id={sub.id}, txn_ref={sub.transaction_ref}")
    return CheckoutResult(subscription=sub, payment_url=sub.payment_url, expires_at=sub.vnp_expire_date)


def _unlink_from_predecessor(db: Session, sub: Subscription) -> None:
    if not sub.renewed_from:
        return
    prev = db.query(Subscription).filter(Subscription.id == sub.renewed_from).first()
    if prev and prev.renewed_to == sub.id:
        prev.renewed_to = None


# =========================================================
# Trial
# =========================================================

def start_trial(
    db: Session,
    landlord: Account,
    now: Optional[datetime] = None,
    background_tasks: Optional[BackgroundTasks] = None,
) -> Subscription:
    """One-time free trial, created directly in active"""
    now = now or utcnow()
    with landlord_lock(landlord.id):
        used = db.query(Subscription.id).filter(
            Subscription.landlord_id == landlord.id,
            Subscription.is_trial == True,
        ).first()
        if used:
            raise ConflictError("You have already used your free trial")

        current = find_current_subscription(db, landlord.id, now)
        if current:
            raise ConflictError(
                f"You already have an active package with {days_remaining(current.end_date, now)} days remaining"
            )

        pkg = package_service.find_active_trial_package(db)
        sub = Subscription(
            landlord_id=landlord.id,
            package_id=pkg.id,
            start_date=now,
            end_date=now + timedelta(days=pkg.duration_days),
            status=ACTIVE,
            amount=0,
            duration_days=pkg.duration_days,
            room_limit=pkg.room_limit,
            payment_method="free",
            is_trial=True,
            is_renewal=False,
        )
        db.add(sub)
        db.commit()
        db.refresh(sub)

    logger.info(f"Trial started: landlord_id={landlord.id}, subscription_id={sub.id}, end_date={sub.end_date}")

    _queue_email(
        background_tasks,
        mail_service.send_trial_welcome_email,
        to=landlord.email,
        full_name=landlord.full_name,
        duration_days=sub.duration_days,
        start_date=sub.start_date,
        end_date=sub.end_date,
        max_rooms=sub.room_limit,
    )
    return sub


# =========================================================
# Purchase / renewal
# =========================================================

def buy_package(
    db: Session,
    landlord: Account,
    package_id: int,
    client_ip: str,
    now: Optional[datetime] = None,
) -> CheckoutResult:
    """Create (or reuse) a pending purchase and return its gateway URL"""
    now = now or utcnow()
    with landlord_lock(landlord.id):
        pkg = package_service.find_by_id(db, package_id)
        if not pkg:
            raise NotFoundError("Package not found")
        if not pkg.is_active:
            raise ValidationError("This package is no longer available")
        if pkg.type == "trial":
            raise ValidationError("Trial packages cannot be purchased; start the free trial instead")

        if pkg.room_limit != UNLIMITED_ROOMS:
            room_count = room_usage_service.count_active_rooms(db, landlord.id)
            if room_count > pkg.room_limit:
                raise ConflictError(
                    f"This package allows up to {pkg.room_limit} rooms but you currently have "
                    f"{room_count} active rooms"
                )

        # an active trial does not block a purchase, another paid plan does
        current = find_current_subscription(db, landlord.id, now, include_trial=False)
        if current:
            raise ConflictError(
                f"You already have an active package with {days_remaining(current.end_date, now)} days remaining"
            )

        pending = db.query(Subscription).filter(
            Subscription.landlord_id == landlord.id,
            Subscription.package_id == pkg.id,
            Subscription.status == PENDING,
            Subscription.is_renewal == False,
        ).order_by(Subscription.id.desc()).first()
        if pending:
            return _reuse_pending(db, pending, vnpay_service.ORDER_TYPE_SUBSCRIPTION, client_ip, now)

        sub = Subscription(
            landlord_id=landlord.id,
            package_id=pkg.id,
            start_date=now,
            status=PENDING,
            amount=pkg.price,
            duration_days=pkg.duration_days,
            room_limit=pkg.room_limit,
            payment_method="vnpay",
            is_trial=False,
            is_renewal=False,
        )
        db.add(sub)
        db.flush()
        _attach_redirect(sub, vnpay_service.ORDER_TYPE_SUBSCRIPTION, client_ip, now)
        db.commit()
        db.refresh(sub)

    logger.info(
        f"Purchase pending: landlord_id={landlord.id}, subscription_id={sub.id}, "
        f"package_id={pkg.id}, amount={sub.amount}"
    )
    return CheckoutResult(subscription=sub, payment_url=sub.payment_url, expires_at=sub.vnp_expire_date)


def renew_package(
    db: Session,
    landlord: Account,
    client_ip: str,
    now: Optional[datetime] = None,
) -> CheckoutResult:
    """Chain a pending renewal after the current paid plan"""
    now = now or utcnow()
    with landlord_lock(landlord.id):
        current = find_current_subscription(db, landlord.id, now, include_trial=False)
        if not current:
            if find_current_subscription(db, landlord.id, now):
                raise ConflictError("A trial cannot be renewed; please buy a package instead")
            raise ConflictError("You have no active package to renew")

        pkg = package_service.find_by_id(db, current.package_id)
        if not pkg or pkg.type == "trial" or not pkg.is_active:
            raise ConflictError("Your current package is no longer offered; please buy a new package")

        left = days_remaining(current.end_date, now)
        window = settings.RENEWAL_WINDOW_DAYS
        if left > window:
            raise ConflictError(
                f"Renewal opens {window} days before expiry; you still have {left} days remaining"
            )

        existing = db.query(Subscription).filter(
            Subscription.renewed_from == current.id,
            Subscription.status.in_([PENDING, UPCOMING]),
        ).order_by(Subscription.id.desc()).first()
        if existing:
            if existing.status == UPCOMING:
                raise ConflictError("A renewal for your current package is already confirmed")
            result = _reuse_pending(db, existing, vnpay_service.ORDER_TYPE_RENEWAL, client_ip, now)
            result.old_subscription_id = current.id
            return result

        new_start = current.end_date + timedelta(days=1)
        new_sub = Subscription(
            landlord_id=landlord.id,
            package_id=pkg.id,
            start_date=new_start,
            end_date=new_start + timedelta(days=pkg.duration_days),
            status=PENDING,
            amount=pkg.price,
            duration_days=pkg.duration_days,
            room_limit=pkg.room_limit,
            payment_method="vnpay",
            is_trial=False,
            is_renewal=True,
            renewed_from=current.id,
        )
        db.add(new_sub)
        db.flush()
        current.renewed_to = new_sub.id
        _attach_redirect(new_sub, vnpay_service.ORDER_TYPE_RENEWAL, client_ip, now)
        db.commit()
        db.refresh(new_sub)
        current_id = current.id

    logger.info(
        f"Renewal pending: landlord_id={landlord.id}, subscription_id={new_sub.id}, "
        f"renewed_from={current_id}, start_date={new_sub.start_date}"
    )
    return CheckoutResult(
        subscription=new_sub,
        payment_url=new_sub.payment_url,
        expires_at=new_sub.vnp_expire_date,
        old_subscription_id=current_id,
    )


# =========================================================
# Gateway callback
# =========================================================

def _expire_active_trials(db: Session, landlord_id: int) -> int:
    trials = db.query(Subscription).filter(
        Subscription.landlord_id == landlord_id,
        Subscription.is_trial == True,
        Subscription.status == ACTIVE,
    ).all()
    for trial in trials:
        trial.status = EXPIRED
    return len(trials)


def _cancel_other_pending(db: Session, confirmed: Subscription) -> int:
    """Cancel every other open order of the landlord, purchases and renewals alike"""
    others = db.query(Subscription).filter(
        Subscription.landlord_id == confirmed.landlord_id,
        Subscription.status == PENDING,
        Subscription.id != confirmed.id,
    ).all()
    for other in others:
        if other.is_renewal:
            _unlink_from_predecessor(db, other)
        other.status = CANCELLED
    return len(others)


def handle_payment_callback(
    db: Session,
    query_params: Mapping[str, str],
    now: Optional[datetime] = None,
    background_tasks: Optional[BackgroundTasks] = None,
) -> CallbackResult:
    """Reconcile a gateway callback into the ledger. Safe to call repeatedly."""
    now = now or utcnow()
    secure_hash = query_params.get("vnp_SecureHash")
    order_info = query_params.get("vnp_OrderInfo")
    if not secure_hash or not order_info:
        raise ValidationError("Missing vnp_SecureHash or vnp_OrderInfo")
    try:
        subscription_id = int(order_info)
    except (TypeError, ValueError):
        raise ValidationError("Invalid vnp_OrderInfo")

    sub = db.query(Subscription).filter(Subscription.id == subscription_id).first()
    if not sub:
        raise NotFoundError("Subscription not found")

    with landlord_lock(sub.landlord_id):
        db.refresh(sub)
        if sub.status in (ACTIVE, UPCOMING):
            logger.info(f"Payment callback already settled: subscription_id={sub.id}, status={sub.status}")
            return CallbackResult(subscription=sub, already_processed=True)

        if not vnpay_service.verify_callback(query_params):
            # unverified input must not change the record; it stays pending
            logger.warning(f"Payment callback signature mismatch: subscription_id={sub.id}")
            raise GatewayError("Invalid payment signature", response_code="97")

        data = vnpay_service.parse_callback(query_params)

        if sub.status != PENDING:
            logger.error(
                f"Verified payment for non-pending subscription: subscription_id={sub.id}, "
                f"status={sub.status}, transaction_no={data.transaction_no}"
            )
            raise ConflictError("This payment order is no longer valid, please contact support")

        if not data.is_success:
            # the minted URL is spent; force a new one on the next retry
            sub.status = PENDING
            sub.vnp_expire_date = now
            db.commit()
            logger.warning(f"Payment failed: subscription_id={sub.id}, response_code={data.response_code}")
            raise GatewayError(
                f"Payment failed with gateway code {data.response_code}",
                response_code=data.response_code,
            )

        if data.amount is not None and data.amount != sub.amount:
            sub.vnp_expire_date = now
            db.commit()
            logger.error(
                f"Payment amount mismatch: subscription_id={sub.id}, expected={sub.amount}, paid={data.amount}"
            )
            raise GatewayError("Paid amount does not match the subscription amount", response_code="04")

        if not sub.is_renewal:
            # one paid plan at a time; a second paid order needs a refund, not a second plan
            current = find_current_subscription(db, sub.landlord_id, now, include_trial=False)
            if current:
                logger.error(
                    f"Verified payment while another paid plan is active: subscription_id={sub.id}, "
                    f"active_subscription_id={current.id}, transaction_no={data.transaction_no}"
                )
                raise ConflictError("You already have an active package; please contact support about this payment")

        if sub.end_date is None:
            sub.end_date = sub.start_date + timedelta(days=sub.duration_days)

        if data.is_renewal_ref != bool(sub.is_renewal):
            logger.warning(
                f"Transaction reference disagrees with renewal flag: subscription_id={sub.id}, "
                f"txn_ref={data.txn_ref}, is_renewal={sub.is_renewal}"
            )

        pkg = package_service.find_by_id(db, sub.package_id)
        old_status = sub.status
        expired_trials = 0
        if sub.is_renewal:
            sub.status = UPCOMING if sub.start_date > now else ACTIVE
        else:
            sub.status = ACTIVE
            if pkg and pkg.type == "paid":
                expired_trials = _expire_active_trials(db, sub.landlord_id)

        sub.payment_id = data.transaction_no
        cancelled = _cancel_other_pending(db, sub)
        if sub.renewed_from:
            prev = db.query(Subscription).filter(Subscription.id == sub.renewed_from).first()
            if prev:
                prev.renewed_to = sub.id
        db.commit()
        db.refresh(sub)

    logger.info(
        f"Payment confirmed: subscription_id={sub.id}, {old_status} -> {sub.status}, "
        f"transaction_no={sub.payment_id}, expired_trials={expired_trials}, cancelled_pending={cancelled}"
    )

    landlord = db.query(Account).filter(Account.id == sub.landlord_id).first()
    if landlord:
        _queue_email(
            background_tasks,
            mail_service.send_payment_success_email,
            to=landlord.email,
            full_name=landlord.full_name,
            action="Renewal" if sub.is_renewal else "New activation",
            package_name=pkg.name if pkg else f"Package #{sub.package_id}",
            duration_days=sub.duration_days,
            amount=sub.amount,
            start_date=sub.start_date,
            end_date=sub.end_date,
            transaction_no=sub.payment_id,
        )
    return CallbackResult(subscription=sub, already_processed=False)


# =========================================================
# Cancellation
# =========================================================

def cancel_subscription(db: Session, landlord_id: int, subscription_id: int) -> Subscription:
    """Cancel a non-trial active/upcoming subscription, unwinding its renewal links"""
    with landlord_lock(landlord_id):
        sub = db.query(Subscription).filter(
            Subscription.id == subscription_id,
            Subscription.landlord_id == landlord_id,
        ).first()
        if not sub:
            raise NotFoundError("Subscription not found")
        if sub.is_trial:
            raise ConflictError("A trial cannot be cancelled")
        if sub.status not in (ACTIVE, UPCOMING):
            raise ConflictError(f"Only active or upcoming subscriptions can be cancelled (current status: {sub.status})")

        _unlink_from_predecessor(db, sub)

        if sub.renewed_to:
            successor = db.query(Subscription).filter(Subscription.id == sub.renewed_to).first()
            if successor and successor.status == PENDING:
                successor.status = CANCELLED
                sub.renewed_to = None

        old_status = sub.status
        sub.status = CANCELLED
        db.commit()
        db.refresh(sub)

    logger.info(f"Subscription cancelled: subscription_id={sub.id}, landlord_id={landlord_id}, {old_status} -> cancelled")
    return sub


# =========================================================
# Scheduled sweep
# =========================================================

def activate_upcoming_subscriptions(db: Session, now: datetime) -> int:
    """upcoming → active once the start date arrives"""
    count = db.query(Subscription).filter(
        Subscription.status == UPCOMING,
        Subscription.start_date <= now,
    ).update({Subscription.status: ACTIVE}, synchronize_session=False)
    db.commit()
    return count


def expire_subscriptions(db: Session, now: datetime) -> int:
    """active → expired once the end date has passed"""
    count = db.query(Subscription).filter(
        Subscription.status == ACTIVE,
        Subscription.end_date < now,
    ).update({Subscription.status: EXPIRED}, synchronize_session=False)
    db.commit()
    return count


# =========================================================
# Queries
# =========================================================

def list_subscriptions(
    db: Session,
    landlord_id: int,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Subscription], int]:
    """Paginated history; pending checkouts are hidden unless asked for"""
    if status is not None and status not in SUBSCRIPTION_STATUSES:
        raise ValidationError(f"Invalid status filter: {status}")
    if page < 1:
        raise ValidationError("page must be at least 1")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

    query = db.query(Subscription).filter(Subscription.landlord_id == landlord_id)
    if status:
        query = query.filter(Subscription.status == status)
    else:
        query = query.filter(Subscription.status != PENDING)

    total = query.count()
    items = query.order_by(
        Subscription.created_at.desc(), Subscription.id.desc(),
    ).offset((page - 1) * limit).limit(limit).all()
    return items, total


def get_subscription_detail(db: Session, subscription_id: int, account: Account) -> Subscription:
    """Owner landlord or admin only"""
    sub = db.query(Subscription).filter(Subscription.id == subscription_id).first()
    if not sub:
        raise NotFoundError("Subscription not found")
    if account.role != "admin" and sub.landlord_id != account.id:
        raise AuthorizationError("You do not have access to this subscription")
    return sub


def get_current_package_stats(db: Session, landlord_id: int, now: Optional[datetime] = None) -> dict:
    """Usage of the current plan, or of the most recently ended one"""
    now = now or utcnow()
    sub = find_current_subscription(db, landlord_id, now)
    if not sub:
        sub = db.query(Subscription).filter(
            Subscription.landlord_id == landlord_id,
            Subscription.status.in_([ACTIVE, EXPIRED]),
            Subscription.end_date != None,
        ).order_by(Subscription.end_date.desc(), Subscription.id.desc()).first()
    if not sub:
        raise NotFoundError("You do not have a package yet")

    total_days = max(1, math.ceil((sub.end_date - sub.start_date).total_seconds() / 86400))
    days_left = min(total_days, days_remaining(sub.end_date, now))
    days_used = total_days - days_left
    percentage_used = round(days_used * 100 / total_days, 2)

    is_expired = sub.end_date <= now
    is_active = sub.status in (ACTIVE, UPCOMING) and not is_expired and sub.start_date <= now

    if is_expired:
        status_message = "Your package has expired"
    elif days_left <= RENEWAL_REMINDER_DAYS:
        status_message = f"Your package expires in {days_left} days, renew soon"
    else:
        status_message = f"{days_left} days remaining"

    return {
        "subscription": sub,
        "days_used": days_used,
        "days_left": days_left,
        "total_days": total_days,
        "percentage_used": percentage_used,
        "percentage_left": round(100 - percentage_used, 2),
        "is_active": is_active,
        "is_expired": is_expired,
        "status_message": status_message,
        "upcoming_renewal_id": sub.renewed_to,
    }


def package_lookup(db: Session, subs: list[Subscription]) -> dict[int, Package]:
    """package_id → Package for serializing a page of subscriptions"""
    ids = {s.package_id for s in subs}
    if not ids:
        return {}
    return {p.id: p for p in db.query(Package).filter(Package.id.in_(ids)).all()}
