"""Package catalog: reference data consulted by the subscription ledger"""
from typing import Optional
from sqlalchemy.orm import Session

from rentalhub.core.errors import ConflictError, InternalServiceError, NotFoundError
from rentalhub.models.package import Package
from rentalhub.models.subscription import Subscription
from rentalhub.schemas.package import PackageCreate, PackageUpdate
from rentalhub.core.logging import get_logger

logger = get_logger(__name__)


def list_packages(db: Session, active_only: bool = False) -> list[Package]:
    """All packages, cheapest first"""
    query = db.query(Package)
    if active_only:
        query = query.filter(Package.is_active == True)
    return query.order_by(Package.price.asc(), Package.id.asc()).all()


def find_by_id(db: Session, package_id: int) -> Optional[Package]:
    return db.query(Package).filter(Package.id == package_id).first()


def get_package(db: Session, package_id: int) -> Package:
    pkg = find_by_id(db, package_id)
    if not pkg:
        raise NotFoundError("Package not found")
    return pkg


def find_active_trial_package(db: Session) -> Package:
    """The single active trial package. Missing = server misconfiguration."""
    pkg = db.query(Package).filter(
        Package.type == "trial",
        Package.is_active == True,
    ).order_by(Package.id.desc()).first()
    if not pkg:
        logger.error("No active trial package configured")
        raise InternalServiceError("No active trial package configured")
    return pkg


def create_package(db: Session, data: PackageCreate, created_by: Optional[int] = None) -> Package:
    """Create a package. Trial packages are always free."""
    pkg = Package(
        name=data.name,
        description=data.description,
        price=0 if data.type == "trial" else data.price,
        duration_days=data.duration_days,
        room_limit=data.room_limit,
        type=data.type,
        is_active=data.is_active,
        created_by=created_by,
    )
    db.add(pkg)
    db.commit()
    db.refresh(pkg)
    logger.info(f"Package created: package_id={pkg.id}, type={pkg.type}, price={pkg.price}")
    return pkg


def update_package(db: Session, package_id: int, data: PackageUpdate) -> Package:
    """Partial update. Existing subscriptions keep their own price/duration snapshot."""
    pkg = get_package(db, package_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field != "description":
            continue
        setattr(pkg, field, value)
    if pkg.type == "trial":
        pkg.price = 0
    db.commit()
    db.refresh(pkg)
    logger.info(f"Package updated: package_id={pkg.id}")
    return pkg


def delete_package(db: Session, package_id: int) -> None:
    """Delete a package that no subscription references"""
    pkg = get_package(db, package_id)
    sub_count = db.query(Subscription).filter(Subscription.package_id == pkg.id).count()
    if sub_count > 0:
        raise ConflictError(
            f"Package is referenced by {sub_count} subscription(s); deactivate it instead"
        )
    db.delete(pkg)
    db.commit()
    logger.info(f"Package deleted: package_id={package_id}")
