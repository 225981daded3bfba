import json
from typing import List, Union
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_list_setting(v: Union[str, List[str], None], *, name: str) -> List[str]:
    if v is None:
        return []
    if isinstance(v, str):
        if not v.strip():
            return []
        if v.startswith("["):
            parsed = json.loads(v)
            if not isinstance(parsed, list):
                raise ValueError(f"{name} JSON value must be a list")
            return [str(i).strip() for i in parsed if str(i).strip()]
        return [i.strip() for i in v.split(",") if i.strip()]
    if isinstance(v, list):
        return [str(i).strip() for i in v if str(i).strip()]
    raise ValueError(v)


class Settings(BaseSettings):
    app_name: str = "DealFinder Backend"
    env: str = "dev"
    log_level: str = "INFO"
    secret_key: str
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 14
    password_reset_expire_minutes: int = Field(default=60, ge=5, le=1440)

    # DATABASE
    database_url: str
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=20, ge=0, le=200)
    db_pool_timeout_seconds: int = Field(default=30, ge=1, le=300)
    db_pool_recycle_seconds: int = Field(default=1800, ge=30, le=86_400)

    # AUTH HARDENING
    auth_rate_limit_max_attempts: int = Field(default=5, ge=1)
    auth_rate_limit_window_seconds: int = Field(default=300, ge=1)
    auth_rate_limit_lock_seconds: int = Field(default=900, ge=1)
    bootstrap_admin_emails: List[str] = Field(default_factory=list)

    # UPLOADS
    upload_dir: str = "uploads"
    upload_max_bytes: int = Field(default=5 * 1024 * 1024, ge=1024)
    upload_allowed_extensions: List[str] = Field(
        default_factory=lambda: ["jpg", "jpeg", "png", "gif", "webp"]
    )
    promotion_max_images: int = Field(default=5, ge=1, le=20)

    # ANALYTICS
    record_view_events: bool = False

    # EMAIL
    smtp_host: str | None = None
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_sender_email: str | None = None
    smtp_reply_to_email: str | None = None
    smtp_use_starttls: bool = True
    smtp_use_ssl: bool = False
    frontend_url: str = "http://localhost:5173"
    api_timeout_hint_ms: int = Field(default=30000, ge=1000, le=1_800_000)

    # CORS
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])
    cors_origin_regex: str | None = None

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        return _split_list_setting(v, name="CORS_ORIGINS")

    @field_validator("bootstrap_admin_emails", mode="before")
    @classmethod
    def assemble_admin_emails(cls, v: Union[str, List[str]]) -> List[str]:
        return [email.lower() for email in _split_list_setting(v, name="BOOTSTRAP_ADMIN_EMAILS")]

    @field_validator("upload_allowed_extensions", mode="before")
    @classmethod
    def assemble_upload_extensions(cls, v: Union[str, List[str]]) -> List[str]:
        values = _split_list_setting(v, name="UPLOAD_ALLOWED_EXTENSIONS")
        return [ext.lower().lstrip(".") for ext in values]

    @field_validator(
        "smtp_host",
        "smtp_username",
        "smtp_password",
        "smtp_sender_email",
        "smtp_reply_to_email",
        mode="before",
    )
    @classmethod
    def normalize_optional_strings(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = str(value).strip()
        return cleaned or None

    @model_validator(mode="after")
    def validate_production_safety(self) -> "Settings":
        env_value = self.env.lower().strip()
        if env_value not in {"prod", "production"}:
            return self

        weak_secrets = {
            "",
            "change_me",
            "change_me_please_to_a_long_random_string",
            "dev-secret-key-change-before-prod",
        }
        if self.secret_key.strip() in weak_secrets or len(self.secret_key.strip()) < 32:
            raise ValueError("SECRET_KEY must be a strong random value in production")

        if "*" in self.cors_origins:
            raise ValueError("CORS_ORIGINS cannot contain '*' in production")
        if self.cors_origin_regex:
            raise ValueError("CORS_ORIGIN_REGEX cannot be set in production")

        if self.smtp_use_ssl and self.smtp_use_starttls:
            raise ValueError("Set only one of SMTP_USE_SSL or SMTP_USE_STARTTLS in production")

        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        enable_decoding=False,
    )


settings = Settings()
