from datetime import datetime
from typing import Literal, Optional

from pydantic import ConfigDict, EmailStr, Field, field_validator, model_validator

from dealfinder.schemas.business import AddressIn
from dealfinder.schemas.common import ApiModel, strip_optional


def _validate_name(value: str) -> str:
    cleaned = value.strip()
    if len(cleaned) < 3:
        raise ValueError("Name must be at least 3 characters")
    return cleaned


def _validate_password(value: str) -> str:
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters")
    return value


class RegisterIn(ApiModel):
    name: str = Field(max_length=100)
    email: EmailStr
    password: str
    role: Literal["user", "business"] = "user"

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _validate_name(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return _validate_password(value)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Jane Owner",
                "email": "owner@example.com",
                "password": "password123",
                "role": "business",
            }
        }
    )


class LoginIn(ApiModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Email is required")
        return cleaned

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "owner@example.com",
                "password": "password123",
            }
        }
    )


class UserOut(ApiModel):
    id: str
    name: str
    email: EmailStr
    role: str
    avatar: str
    phone: Optional[str] = None
    address: Optional[dict] = None
    is_verified: bool
    created_at: datetime
    updated_at: datetime


class TokenOut(ApiModel):
    success: bool = True
    access_token: str = Field(alias="access_token")
    refresh_token: str = Field(alias="refresh_token")
    token_type: str = Field(default="bearer", alias="token_type")
    user: UserOut


class RefreshIn(ApiModel):
    refresh_token: str

    @field_validator("refresh_token")
    @classmethod
    def validate_refresh_token(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Refresh token is required")
        return cleaned

    model_config = ConfigDict(
        json_schema_extra={"example": {"refreshToken": "paste-refresh-token-here"}}
    )


class LogoutIn(RefreshIn):
    pass


class UpdateProfileIn(ApiModel):
    name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=40)
    avatar: Optional[str] = Field(default=None, max_length=500)
    address: Optional[AddressIn] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _validate_name(value)

    @field_validator("phone", "avatar")
    @classmethod
    def normalize_optional_text(cls, value: Optional[str]) -> Optional[str]:
        return strip_optional(value)

    @model_validator(mode="after")
    def validate_any_field_present(self) -> "UpdateProfileIn":
        if self.name is None and self.phone is None and self.avatar is None and self.address is None:
            raise ValueError("At least one field must be provided")
        return self


class UpdatePasswordIn(ApiModel):
    current_password: str
    new_password: str

    @field_validator("current_password")
    @classmethod
    def validate_current_password(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Current password is required")
        return value

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return _validate_password(value)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "currentPassword": "password123",
                "newPassword": "new-password-456",
            }
        }
    )


class ForgotPasswordIn(ApiModel):
    email: EmailStr


class ResetPasswordIn(ApiModel):
    password: str

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return _validate_password(value)
