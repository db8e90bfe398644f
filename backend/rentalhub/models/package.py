from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime, Enum as SAEnum, ForeignKey, func
from rentalhub.core.database import Base

UNLIMITED_ROOMS = -1


class Package(Base):
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=False, default=0, comment="VND; always 0 for trial packages")
    duration_days = Column(Integer, nullable=False)
    room_limit = Column(Integer, nullable=False, comment="-1 = unlimited")
    type = Column(SAEnum("trial", "paid", name="package_type"), nullable=False, default="paid")
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
