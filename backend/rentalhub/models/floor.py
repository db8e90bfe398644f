from sqlalchemy import Column, Integer, Boolean, DateTime, Enum as SAEnum, ForeignKey, func
from rentalhub.core.database import Base


class Floor(Base):
    __tablename__ = "floors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    building_id = Column(Integer, ForeignKey("buildings.id", ondelete="CASCADE"), nullable=False, index=True)
    level = Column(Integer, nullable=False)
    status = Column(SAEnum("active", "inactive", name="floor_status"), nullable=False, default="active")
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
