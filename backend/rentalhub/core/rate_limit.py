"""Rate limiting (slowapi)"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse


def get_client_ip(request: Request) -> str:
    """
    Client IP, honouring X-Forwarded-For when behind a proxy.
    Also passed to VNPay as vnp_IpAddr.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request) or "127.0.0.1"


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=["100/minute"],
    storage_uri="memory://",
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many requests, please wait a moment and try again",
            "retry_after": exc.detail,
        },
    )


LOGIN_RATE_LIMIT = "5/minute"
CHECKOUT_RATE_LIMIT = "10/minute"  # buy / renew mint gateway URLs
