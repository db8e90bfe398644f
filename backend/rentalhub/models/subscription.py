from sqlalchemy import (
    Column, Integer, String, Boolean, Text, DateTime, Enum as SAEnum, ForeignKey, Index, func,
)
from rentalhub.core.database import Base

SUBSCRIPTION_STATUSES = ("pending_payment", "active", "upcoming", "expired", "cancelled")
PAYMENT_METHODS = ("free", "vnpay", "momo", "manual")


class Subscription(Base):
    """One billing period for one landlord"""

    __tablename__ = "subscriptions"
    __table_args__ = (
        Index("ix_subscriptions_status_end_date", "status", "end_date"),
        Index("ix_subscriptions_landlord_status", "landlord_id", "status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    landlord_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("packages.id", ondelete="RESTRICT"), nullable=False, index=True)

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True, comment="set once payment confirms the period")
    status = Column(SAEnum(*SUBSCRIPTION_STATUSES, name="subscription_status"), nullable=False, default="pending_payment")

    # package snapshot at creation time
    amount = Column(Integer, nullable=False, default=0, comment="VND")
    duration_days = Column(Integer, nullable=False)
    room_limit = Column(Integer, nullable=False)

    payment_method = Column(SAEnum(*PAYMENT_METHODS, name="payment_method"), nullable=False, default="vnpay")
    payment_id = Column(String(100), nullable=True, comment="vnp_TransactionNo on success")
    payment_url = Column(Text, nullable=True)
    vnp_expire_date = Column(DateTime, nullable=True, comment="payment_url TTL")
    transaction_ref = Column(String(100), nullable=True, comment="last vnp_TxnRef minted")

    is_trial = Column(Boolean, nullable=False, default=False)
    is_renewal = Column(Boolean, nullable=False, default=False)
    renewed_from = Column(Integer, ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True)
    renewed_to = Column(Integer, ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
