"""Subscription router: trial, buy, renew, gateway callback, cancel, history"""
import math
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from rentalhub.core.database import get_db
from rentalhub.core.rate_limit import limiter, get_client_ip, CHECKOUT_RATE_LIMIT
from rentalhub.models.account import Account
from rentalhub.models.package import Package
from rentalhub.models.subscription import Subscription
from rentalhub.schemas.subscription import (
    BuyPackageRequest, CallbackResponse, CancelResponse, CheckoutResponse,
    CurrentPackageStats, PackageBrief, SubscriptionInfo, SubscriptionPage,
)
from rentalhub.services import subscription_service
from rentalhub.services.subscription_service import CheckoutResult
from rentalhub.routers.deps import require_landlord, require_login

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])

# Handlers that take the landlord lock are plain `def`: the lock waits with a
# blocking sleep, so they must run in the threadpool, off the event loop.


def _to_info(sub: Subscription, package: Optional[Package]) -> SubscriptionInfo:
    info = SubscriptionInfo.model_validate(sub)
    if package:
        info.package = PackageBrief.model_validate(package)
    return info


def _to_checkout(result: CheckoutResult) -> CheckoutResponse:
    return CheckoutResponse(
        payment_url=result.payment_url,
        subscription_id=result.subscription.id,
        expires_at=result.expires_at,
        old_subscription_id=result.old_subscription_id,
    )


@router.post("/trial", response_model=SubscriptionInfo)
def start_trial(
    background_tasks: BackgroundTasks,
    user: Account = Depends(require_landlord),
    db: Session = Depends(get_db),
):
    """Activate the one-time free trial"""
    sub = subscription_service.start_trial(db, user, background_tasks=background_tasks)
    packages = subscription_service.package_lookup(db, [sub])
    return _to_info(sub, packages.get(sub.package_id))


@router.post("/buy", response_model=CheckoutResponse)
@limiter.limit(CHECKOUT_RATE_LIMIT)
def buy_package(
    request: Request,
    req: BuyPackageRequest,
    user: Account = Depends(require_landlord),
    db: Session = Depends(get_db),
):
    """Start a purchase and return the gateway URL"""
    result = subscription_service.buy_package(db, user, req.package_id, get_client_ip(request))
    return _to_checkout(result)


@router.post("/renew", response_model=CheckoutResponse)
@limiter.limit(CHECKOUT_RATE_LIMIT)
def renew_package(
    request: Request,
    user: Account = Depends(require_landlord),
    db: Session = Depends(get_db),
):
    """Start a renewal of the current package and return the gateway URL"""
    result = subscription_service.renew_package(db, user, get_client_ip(request))
    return _to_checkout(result)


@router.get("/payment-callback", response_model=CallbackResponse)
def payment_callback(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """VNPay return URL. Authenticated by signature, not by session"""
    result = subscription_service.handle_payment_callback(
        db, dict(request.query_params), background_tasks=background_tasks,
    )
    sub = result.subscription
    if result.already_processed:
        message = "Payment was already processed"
    elif sub.status == "upcoming":
        message = "Renewal paid; it starts when your current package ends"
    else:
        message = "Payment successful; your package is active"
    return CallbackResponse(success=True, message=message, subscription_id=sub.id, status=sub.status)


@router.get("", response_model=SubscriptionPage)
async def list_subscriptions(
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    user: Account = Depends(require_landlord),
    db: Session = Depends(get_db),
):
    """Subscription history, newest first"""
    items, total = subscription_service.list_subscriptions(db, user.id, status=status, page=page, limit=limit)
    packages = subscription_service.package_lookup(db, items)
    return SubscriptionPage(
        items=[_to_info(s, packages.get(s.package_id)) for s in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/current", response_model=CurrentPackageStats)
async def current_package(
    user: Account = Depends(require_landlord),
    db: Session = Depends(get_db),
):
    """Usage of the current package"""
    stats = subscription_service.get_current_package_stats(db, user.id)
    sub = stats.pop("subscription")
    packages = subscription_service.package_lookup(db, [sub])
    return CurrentPackageStats(subscription=_to_info(sub, packages.get(sub.package_id)), **stats)


@router.get("/{subscription_id}", response_model=SubscriptionInfo)
async def get_subscription(
    subscription_id: int,
    user: Account = Depends(require_login),
    db: Session = Depends(get_db),
):
    """Subscription detail for its landlord or an admin"""
    sub = subscription_service.get_subscription_detail(db, subscription_id, user)
    packages = subscription_service.package_lookup(db, [sub])
    return _to_info(sub, packages.get(sub.package_id))


@router.post("/{subscription_id}/cancel", response_model=CancelResponse)
def cancel_subscription(
    subscription_id: int,
    user: Account = Depends(require_landlord),
    db: Session = Depends(get_db),
):
    """Cancel an active or upcoming paid subscription"""
    sub = subscription_service.cancel_subscription(db, user.id, subscription_id)
    return CancelResponse(id=sub.id, status=sub.status, message="Subscription cancelled")
