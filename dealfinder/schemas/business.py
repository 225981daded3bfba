from datetime import datetime
from typing import Literal, Optional

from pydantic import EmailStr, Field, field_validator

from dealfinder.schemas.common import ApiModel, strip_optional, strip_required, validate_http_url

Category = Literal[
    "food",
    "fashion",
    "electronics",
    "home",
    "beauty",
    "sports",
    "travel",
    "entertainment",
    "other",
]
BusinessStatus = Literal["pending", "active", "suspended"]
Weekday = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class AddressIn(ApiModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class SocialMediaIn(ApiModel):
    facebook: Optional[str] = None
    instagram: Optional[str] = None
    twitter: Optional[str] = None
    linkedin: Optional[str] = None


class BusinessHourIn(ApiModel):
    day: Weekday
    open: Optional[str] = None
    close: Optional[str] = None
    is_closed: bool = False


class _BusinessFields(ApiModel):
    @field_validator("website", check_fields=False)
    @classmethod
    def validate_website(cls, value: Optional[str]) -> Optional[str]:
        value = strip_optional(value)
        if value is None:
            return None
        return validate_http_url(value)

    @field_validator("subcategory", "contact_phone", check_fields=False)
    @classmethod
    def normalize_optional_text(cls, value: Optional[str]) -> Optional[str]:
        return strip_optional(value)


class BusinessCreate(_BusinessFields):
    name: str = Field(max_length=100)
    description: str = Field(max_length=1000)
    category: Category
    subcategory: Optional[str] = None
    website: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    social_media: Optional[SocialMediaIn] = None
    address: Optional[AddressIn] = None
    business_hours: Optional[list[BusinessHourIn]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return strip_required(value, "Business name")

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: str) -> str:
        return strip_required(value, "Business description")


class BusinessUpdate(_BusinessFields):
    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    category: Optional[Category] = None
    subcategory: Optional[str] = None
    website: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    social_media: Optional[SocialMediaIn] = None
    address: Optional[AddressIn] = None
    business_hours: Optional[list[BusinessHourIn]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else strip_required(value, "Business name")

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else strip_required(value, "Business description")


class BusinessStatusIn(ApiModel):
    status: BusinessStatus


class BusinessOut(ApiModel):
    id: str
    owner: str = Field(validation_alias="owner_user_id", serialization_alias="owner")
    name: str
    description: str
    category: str
    subcategory: Optional[str] = None
    logo: str
    cover_image: Optional[str] = None
    website: Optional[str] = None
    social_media: Optional[dict] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    address: Optional[dict] = None
    business_hours: Optional[list[dict]] = None
    is_verified: bool
    status: str
    promotion_count: int
    impressions: int
    clicks: int
    created_at: datetime
    updated_at: datetime


class BusinessBriefOut(ApiModel):
    id: str
    name: str
    logo: str
