"""Room-usage counter used to gate capacity-limited packages"""
from sqlalchemy.orm import Session

from rentalhub.models.building import Building
from rentalhub.models.floor import Floor
from rentalhub.models.room import Room


def count_active_rooms(db: Session, landlord_id: int) -> int:
    """landlord → active buildings → active floors → active rooms, skipping soft-deleted rows"""
    return db.query(Room).join(
        Floor, Room.floor_id == Floor.id,
    ).join(
        Building, Floor.building_id == Building.id,
    ).filter(
        Building.landlord_id == landlord_id,
        Building.status == "active",
        Building.is_deleted == False,
        Floor.status == "active",
        Floor.is_deleted == False,
        Room.is_active == True,
        Room.is_deleted == False,
    ).count()
