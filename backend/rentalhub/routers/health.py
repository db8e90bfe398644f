from fastapi import APIRouter
from fastapi.responses import JSONResponse
from rentalhub.core.database import check_db_connection
from rentalhub.core.redis import check_redis_connection

router = APIRouter()


@router.get("/health")
async def health():
    """DB and Redis connectivity"""
    db_ok = check_db_connection()
    redis_ok = await check_redis_connection()
    status = "ok" if db_ok and redis_ok else "degraded"
    body = {"status": status, "db": db_ok, "redis": redis_ok}
    if status != "ok":
        return JSONResponse(status_code=503, content=body)
    return body
