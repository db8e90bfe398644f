"""Shared dependencies: authentication, roles, entitlement"""
from typing import Optional
from fastapi import Request, HTTPException, Depends
from sqlalchemy.orm import Session

from rentalhub.core.database import get_db
from rentalhub.core.redis import get_redis
from rentalhub.core.session import SESSION_COOKIE, get_session
from rentalhub.models.account import Account
from rentalhub.services import auth_service, subscription_service
from rentalhub.core.logging import get_logger

logger = get_logger(__name__)

SUBSCRIPTION_REQUIRED_MESSAGE = "An active package is required; your package is missing or has expired"


async def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    r=Depends(get_redis),
) -> Optional[Account]:
    """Cookie → Redis → DB. None when not logged in"""
    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        return None

    session_data = await get_session(r, session_id)
    if not session_data:
        return None

    account_id = int(session_data.get("account_id", 0))
    if not account_id:
        return None

    return db.query(Account).filter(Account.id == account_id, Account.is_active == True).first()


async def require_login(
    user: Optional[Account] = Depends(get_current_user),
) -> Account:
    """401 when not logged in"""
    if user is None:
        raise HTTPException(status_code=401, detail="Login required")
    return user


async def require_landlord(
    user: Account = Depends(require_login),
) -> Account:
    """403 unless the caller is a landlord"""
    if user.role != "landlord":
        raise HTTPException(status_code=403, detail="Landlord account required")
    return user


async def require_admin(
    user: Account = Depends(require_login),
) -> Account:
    """403 unless the caller is an admin"""
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return user


async def require_active_subscription(
    user: Account = Depends(require_login),
    db: Session = Depends(get_db),
) -> Account:
    """Entitlement gate for feature routers: admins pass, staff are checked against their landlord"""
    if user.role == "admin":
        return user

    landlord_id = auth_service.resolve_landlord_id(db, user)
    if landlord_id is None:
        raise HTTPException(status_code=403, detail=SUBSCRIPTION_REQUIRED_MESSAGE)

    if not subscription_service.has_active_subscription(db, landlord_id):
        logger.info(f"Entitlement denied: account_id={user.id}, landlord_id={landlord_id}")
        raise HTTPException(status_code=403, detail=SUBSCRIPTION_REQUIRED_MESSAGE)
    return user
