import math
import re
from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from dealfinder.core.time_utils import as_utc

T = TypeVar("T")

HTTP_URL_RE = re.compile(
    r"^https?://(www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b([-a-zA-Z0-9()@:%_+.~#?&/=]*)$"
)


def validate_http_url(value: str) -> str:
    cleaned = value.strip()
    if not HTTP_URL_RE.match(cleaned):
        raise ValueError("Please provide a valid URL with HTTP or HTTPS")
    return cleaned


def strip_required(value: str, field_name: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        raise ValueError(f"{field_name} is required")
    return cleaned


def strip_optional(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def to_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return as_utc(value)


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


class ApiModel(BaseModel):
    """Base for request/response bodies: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageOut(ApiModel):
    success: bool = True
    message: str


class DataOut(ApiModel, Generic[T]):
    success: bool = True
    message: str | None = None
    data: T


class PageOut(ApiModel, Generic[T]):
    success: bool = True
    count: int
    total_pages: int
    current_page: int
    data: list[T]


class ListOut(ApiModel, Generic[T]):
    success: bool = True
    count: int
    data: list[T]


class ValidationIssueOut(BaseModel):
    field: str
    message: str
    type: str | None = None


class ErrorDetailOut(BaseModel):
    code: str
    message: str
    request_id: str
    path: str
    details: list[ValidationIssueOut] | None = None


class ErrorOut(BaseModel):
    success: bool = False
    message: str
    error: ErrorDetailOut

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "message": "Promotion not found",
                "error": {
                    "code": "not_found",
                    "message": "Promotion not found",
                    "request_id": "8d8f2b00-6c79-4a45-8ff4-b0a5f2bc4bc2",
                    "path": "/api/promotions/abc",
                    "details": None,
                },
            }
        }
    )
