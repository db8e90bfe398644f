"""Auth router: login, logout, current account"""
from fastapi import APIRouter, Depends, HTTPException, Response, Request
from sqlalchemy.orm import Session

from rentalhub.core.database import get_db
from rentalhub.core.redis import get_redis
from rentalhub.core.session import SESSION_COOKIE, create_session, destroy_session
from rentalhub.core.config import settings
from rentalhub.core.rate_limit import limiter, LOGIN_RATE_LIMIT
from rentalhub.schemas.auth import LoginRequest, AuthResponse, AccountInfo
from rentalhub.services import auth_service
from rentalhub.routers.deps import require_login
from rentalhub.core.logging import get_logger

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = get_logger(__name__)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    req: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    r=Depends(get_redis),
):
    """Log in"""
    account = auth_service.authenticate(db, req.email, req.password)
    if not account:
        raise HTTPException(status_code=401, detail="Incorrect email or password")

    if not account.is_active:
        raise HTTPException(status_code=403, detail="This account has been disabled")

    # new session id on every login
    session_id = await create_session(r, account.id, account.role, account.email)
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_id,
        httponly=True,
        secure=not settings.DEBUG,
        samesite="lax",
        max_age=settings.SESSION_TIMEOUT_MINUTES * 60,
    )
    logger.info(f"Login: account_id={account.id}, role={account.role}")
    return AuthResponse(message="Logged in", account_id=account.id, role=account.role)


@router.post("/logout")
async def logout(request: Request, response: Response, r=Depends(get_redis)):
    """Log out"""
    session_id = request.cookies.get(SESSION_COOKIE)
    if session_id:
        await destroy_session(r, session_id)
    response.delete_cookie(SESSION_COOKIE)
    return {"message": "Logged out"}


@router.get("/me", response_model=AccountInfo)
async def get_me(user=Depends(require_login)):
    """Current account"""
    return AccountInfo.model_validate(user)
