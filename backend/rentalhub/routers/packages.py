"""Public package catalog"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rentalhub.core.database import get_db
from rentalhub.schemas.package import PackageInfo
from rentalhub.services import package_service

router = APIRouter(prefix="/api/packages", tags=["packages"])


@router.get("", response_model=list[PackageInfo])
async def list_public_packages(db: Session = Depends(get_db)):
    """Active packages only"""
    return package_service.list_packages(db, active_only=True)
