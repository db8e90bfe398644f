from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from rentalhub.core.config import settings
from rentalhub.core.errors import BillingError, GatewayError, InternalServiceError
from rentalhub.core.logging import setup_logging, get_logger
from rentalhub.core.rate_limit import limiter, rate_limit_exceeded_handler
from rentalhub.routers import health, auth, subscriptions, packages, admin_packages

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    setup_logging(debug=settings.DEBUG)
    logger.info("Application starting")
    yield
    logger.info("Application stopped")


app = FastAPI(
    title=settings.SITE_NAME,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
)

# rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    if isinstance(exc, InternalServiceError):
        logger.error(f"Internal service error: path={request.url.path}, detail={exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.public_message})
    content = {"detail": exc.message}
    if isinstance(exc, GatewayError) and exc.response_code:
        content["code"] = exc.response_code
    return JSONResponse(status_code=exc.status_code, content=content)


def _format_validation_error(err: dict) -> str:
    loc = [str(part) for part in err.get("loc", []) if part not in ("body", "query", "path")]
    field = ".".join(loc)
    return f"{field}: {err.get('msg', 'invalid value')}" if field else err.get("msg", "invalid value")


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = [_format_validation_error(e) for e in exc.errors()]
    return JSONResponse(status_code=422, content={"detail": "; ".join(messages)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error: path={request.url.path}, error={exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": InternalServiceError.public_message})


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(packages.router)
app.include_router(subscriptions.router)
app.include_router(admin_packages.router)
