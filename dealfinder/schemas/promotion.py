from datetime import datetime
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator

from dealfinder.schemas.business import BusinessBriefOut, Category
from dealfinder.schemas.common import ApiModel, strip_optional, strip_required, to_utc, validate_http_url

PromotionType = Literal["discount", "bogo", "gift", "freeShipping", "bundle", "other"]
SortBy = Literal["newest", "discount", "price-low", "price-high", "ending-soon"]


def parse_tags(raw: Optional[str]) -> list[str]:
    """Split a comma-separated tag string, keeping the first position of each tag."""
    if not raw:
        return []
    tags: list[str] = []
    for chunk in raw.split(","):
        tag = chunk.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


class _PromotionFields(ApiModel):
    discount_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    original_price: Optional[float] = Field(default=None, ge=0)
    discounted_price: Optional[float] = Field(default=None, ge=0)
    terms: Optional[str] = Field(default=None, max_length=1000)
    code: Optional[str] = Field(default=None, max_length=100)
    tags: Optional[list[str]] = None
    start_date: Optional[datetime] = None

    @field_validator("redirect_url", check_fields=False)
    @classmethod
    def validate_redirect_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return validate_http_url(value)

    @field_validator("terms", "code")
    @classmethod
    def normalize_optional_text(cls, value: Optional[str]) -> Optional[str]:
        return strip_optional(value)

    @field_validator("start_date", "end_date", check_fields=False)
    @classmethod
    def normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value)


class PromotionCreate(_PromotionFields):
    business: str
    title: str = Field(max_length=100)
    description: str = Field(max_length=2000)
    category: Category
    type: PromotionType
    redirect_url: str
    end_date: datetime

    @field_validator("business")
    @classmethod
    def validate_business(cls, value: str) -> str:
        return strip_required(value, "Business")

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        return strip_required(value, "Promotion title")

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: str) -> str:
        return strip_required(value, "Promotion description")

    @model_validator(mode="after")
    def validate_window(self) -> "PromotionCreate":
        if self.start_date is not None and self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class PromotionUpdate(_PromotionFields):
    title: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)
    category: Optional[Category] = None
    type: Optional[PromotionType] = None
    redirect_url: Optional[str] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else strip_required(value, "Promotion title")

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else strip_required(value, "Promotion description")

    @model_validator(mode="after")
    def validate_window(self) -> "PromotionUpdate":
        if self.start_date is not None and self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class PromotionOut(ApiModel):
    id: str
    business: BusinessBriefOut
    title: str
    description: str
    category: str
    type: str
    discount_percentage: Optional[float] = None
    original_price: Optional[float] = None
    discounted_price: Optional[float] = None
    images: list[str]
    redirect_url: str
    tags: list[str]
    terms: Optional[str] = None
    code: Optional[str] = None
    start_date: datetime
    end_date: datetime
    is_active: bool
    is_featured: bool
    impressions: int
    clicks: int
    conversion_rate: float
    created_at: datetime
    updated_at: datetime


class PromotionClickOut(ApiModel):
    success: bool = True
    message: str = "Click recorded successfully"
    redirect_url: str
