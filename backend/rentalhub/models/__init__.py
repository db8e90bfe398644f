# import every model so Alembic autogenerate sees them
from rentalhub.models.account import Account
from rentalhub.models.staff import Staff
from rentalhub.models.package import Package
from rentalhub.models.subscription import Subscription
from rentalhub.models.building import Building
from rentalhub.models.floor import Floor
from rentalhub.models.room import Room

__all__ = [
    "Account",
    "Staff",
    "Package",
    "Subscription",
    "Building",
    "Floor",
    "Room",
]
