from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class BuyPackageRequest(BaseModel):
    package_id: int = Field(ge=1)


class CheckoutResponse(BaseModel):
    payment_url: str
    subscription_id: int
    expires_at: Optional[datetime] = None
    old_subscription_id: Optional[int] = None


class PackageBrief(BaseModel):
    id: int
    name: str
    type: str
    price: int
    duration_days: int
    room_limit: int

    model_config = {"from_attributes": True}


class SubscriptionInfo(BaseModel):
    id: int
    landlord_id: int
    package_id: int
    package: Optional[PackageBrief] = None
    status: str
    start_date: datetime
    end_date: Optional[datetime] = None
    amount: int
    duration_days: int
    room_limit: int
    payment_method: str
    payment_id: Optional[str] = None
    is_trial: bool
    is_renewal: bool
    renewed_from: Optional[int] = None
    renewed_to: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SubscriptionPage(BaseModel):
    items: list[SubscriptionInfo]
    total: int
    page: int
    limit: int
    total_pages: int


class CancelResponse(BaseModel):
    id: int
    status: str
    message: str


class CallbackResponse(BaseModel):
    success: bool
    message: str
    subscription_id: int
    status: str


class CurrentPackageStats(BaseModel):
    subscription: SubscriptionInfo
    days_used: int
    days_left: int
    total_days: int
    percentage_used: float
    percentage_left: float
    is_active: bool
    is_expired: bool
    status_message: str
    upcoming_renewal_id: Optional[int] = None
