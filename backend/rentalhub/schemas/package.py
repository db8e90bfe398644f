from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional
from datetime import datetime


def _validate_room_limit(value: Optional[int]) -> Optional[int]:
    if value is None:
        return value
    if value != -1 and value < 1:
        raise ValueError("room_limit must be at least 1, or -1 for unlimited")
    return value


class PackageCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    price: int = Field(default=0, ge=0)
    duration_days: int = Field(ge=1)
    room_limit: int
    type: Literal["trial", "paid"] = "paid"
    is_active: bool = True

    @field_validator("room_limit")
    @classmethod
    def check_room_limit(cls, v):
        return _validate_room_limit(v)


class PackageUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[int] = Field(default=None, ge=0)
    duration_days: Optional[int] = Field(default=None, ge=1)
    room_limit: Optional[int] = None
    type: Optional[Literal["trial", "paid"]] = None
    is_active: Optional[bool] = None

    @field_validator("room_limit")
    @classmethod
    def check_room_limit(cls, v):
        return _validate_room_limit(v)


class PackageInfo(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: int
    duration_days: int
    room_limit: int
    type: str
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
