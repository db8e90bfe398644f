"""Admin: package CRUD"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rentalhub.core.database import get_db
from rentalhub.models.account import Account
from rentalhub.schemas.package import PackageCreate, PackageInfo, PackageUpdate
from rentalhub.services import package_service
from rentalhub.routers.deps import require_admin

router = APIRouter(prefix="/api/admin/packages", tags=["admin-packages"])


@router.get("", response_model=list[PackageInfo])
async def list_packages(
    active_only: bool = False,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return package_service.list_packages(db, active_only=active_only)


@router.get("/{package_id}", response_model=PackageInfo)
async def get_package(
    package_id: int,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return package_service.get_package(db, package_id)


@router.post("", response_model=PackageInfo, status_code=201)
async def create_package(
    req: PackageCreate,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Create a package (trial packages are stored with price 0)"""
    return package_service.create_package(db, req, created_by=admin.id)


@router.put("/{package_id}", response_model=PackageInfo)
async def update_package(
    package_id: int,
    req: PackageUpdate,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return package_service.update_package(db, package_id, req)


@router.delete("/{package_id}")
async def delete_package(
    package_id: int,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Delete an unreferenced package"""
    package_service.delete_package(db, package_id)
    return {"message": "Package deleted"}
