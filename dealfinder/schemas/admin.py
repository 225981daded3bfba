from typing import Literal, Optional

from pydantic import EmailStr, Field, field_validator

from dealfinder.schemas.auth import UserOut
from dealfinder.schemas.business import BusinessOut, BusinessStatus
from dealfinder.schemas.common import ApiModel


class AdminUserUpdateIn(ApiModel):
    name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[Literal["admin", "business", "user"]] = None
    is_verified: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if len(cleaned) < 3:
            raise ValueError("Name must be at least 3 characters")
        return cleaned


class AdminUserDetailOut(ApiModel):
    user: UserOut
    businesses: list[BusinessOut]


class BusinessVerifyIn(ApiModel):
    is_verified: bool = True
    status: BusinessStatus = "active"


class PromotionFeatureIn(ApiModel):
    is_featured: bool = True
