from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import and_, func, select, update
from sqlalchemy.orm import Session

from dealfinder.core.api_docs import error_responses
from dealfinder.core.client_info import client_ip
from dealfinder.core.config import settings
from dealfinder.core.deps import get_db
from dealfinder.core.id_utils import generate_reset_token
from dealfinder.core.rate_limit import FailedLoginThrottle
from dealfinder.core.security import (
    TokenValidationError,
    create_access_token,
    create_refresh_token,
    get_token_metadata,
    hash_password,
    hash_reset_token,
    verify_password,
)
from dealfinder.core.security_current import get_current_user
from dealfinder.core.time_utils import as_utc, utcnow
from dealfinder.models.refresh_token import RefreshToken
from dealfinder.models.user import User
from dealfinder.schemas.auth import (
    ForgotPasswordIn,
    LoginIn,
    LogoutIn,
    RefreshIn,
    RegisterIn,
    ResetPasswordIn,
    TokenOut,
    UpdatePasswordIn,
    UpdateProfileIn,
    UserOut,
)
from dealfinder.schemas.common import DataOut, MessageOut
from dealfinder.services.email_service import send_password_reset_email

router = APIRouter(prefix="/auth", tags=["auth"])

login_throttle = FailedLoginThrottle(
    max_attempts=settings.auth_rate_limit_max_attempts,
    window_seconds=settings.auth_rate_limit_window_seconds,
    lock_seconds=settings.auth_rate_limit_lock_seconds,
)

FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a reset link has been sent"


def _enforce_rate_limit(identifier: str, ip: str) -> str:
    key = FailedLoginThrottle.key_for(identifier, ip)
    retry_after = login_throttle.retry_after(key)
    if retry_after > 0:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many failed attempts. Try again later.",
            headers={"Retry-After": str(retry_after)},
        )
    return key


def _find_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    ).scalar_one_or_none()


def _authenticate(db: Session, email: str, password: str, ip: str) -> User:
    key = _enforce_rate_limit(email, ip)
    user = _find_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        login_throttle.register_failure(key)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    login_throttle.register_success(key)
    return user


def _issue_token_pair(db: Session, user: User, *, ip: str | None = None) -> tuple[TokenOut, str]:
    access_token = create_access_token(user.id, user.role)
    refresh_token = create_refresh_token(user.id)
    refresh_meta = get_token_metadata(refresh_token, expected_type="refresh")

    db.add(
        RefreshToken(
            user_id=user.id,
            token_jti=refresh_meta.jti,
            expires_at=refresh_meta.expires_at,
            created_by_ip=ip,
        )
    )
    db.flush()

    token_out = TokenOut(
        access_token=access_token,
        refresh_token=refresh_token,
        user=UserOut.model_validate(user),
    )
    return token_out, refresh_meta.jti


def _revoke_user_tokens(db: Session, user_id: str) -> None:
    db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
        .values(revoked_at=utcnow())
    )


@router.post(
    "/register",
    response_model=TokenOut,
    status_code=201,
    summary="Register a user",
    description="Creates a user (role `user` or `business`) and returns access + refresh tokens.",
    responses=error_responses(400, 500),
)
def register(payload: RegisterIn, request: Request, db: Session = Depends(get_db)):
    normalized_email = payload.email.lower()
    if _find_user_by_email(db, normalized_email):
        raise HTTPException(status_code=400, detail="User already exists")

    role = "admin" if normalized_email in settings.bootstrap_admin_emails else payload.role
    user = User(
        name=payload.name,
        email=normalized_email,
        hashed_password=hash_password(payload.password),
        role=role,
    )
    db.add(user)
    db.flush()

    token_pair, _ = _issue_token_pair(db, user, ip=client_ip(request))
    db.commit()
    return token_pair


@router.post(
    "/login",
    response_model=TokenOut,
    summary="Login with JSON",
    responses=error_responses(400, 401, 429, 500),
)
def login(payload: LoginIn, request: Request, db: Session = Depends(get_db)):
    ip = client_ip(request)
    user = _authenticate(db, payload.email, payload.password, ip)
    token_pair, _ = _issue_token_pair(db, user, ip=ip)
    db.commit()
    return token_pair


@router.post(
    "/token",
    response_model=TokenOut,
    summary="OAuth2 password token (Swagger Authorize)",
    description="Form-data login used by Swagger Authorize. Put your email in the `username` field.",
    responses=error_responses(400, 401, 429, 500),
)
def login_for_swagger(
    request: Request,
    db: Session = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
):
    ip = client_ip(request)
    user = _authenticate(db, form_data.username, form_data.password, ip)
    token_pair, _ = _issue_token_pair(db, user, ip=ip)
    db.commit()
    return token_pair


@router.post(
    "/refresh-token",
    response_model=TokenOut,
    summary="Refresh access token",
    description="Uses a valid refresh token to issue a fresh token pair; the old one is revoked.",
    responses=error_responses(400, 401, 500),
)
def refresh_tokens(payload: RefreshIn, request: Request, db: Session = Depends(get_db)):
    try:
        refresh_meta = get_token_metadata(payload.refresh_token, expected_type="refresh")
    except TokenValidationError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    now = utcnow()
    token_row = db.execute(
        select(RefreshToken).where(
            and_(
                RefreshToken.token_jti == refresh_meta.jti,
                RefreshToken.user_id == refresh_meta.subject,
            )
        )
    ).scalar_one_or_none()
    expires_at = as_utc(token_row.expires_at) if token_row else None
    if not token_row or token_row.revoked_at is not None or not expires_at or expires_at <= now:
        raise HTTPException(status_code=401, detail="Refresh token is invalid or expired")

    user = db.get(User, refresh_meta.subject)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    token_row.revoked_at = now
    token_pair, new_jti = _issue_token_pair(db, user, ip=client_ip(request))
    token_row.replaced_by_jti = new_jti
    db.commit()
    return token_pair


@router.post(
    "/logout",
    response_model=MessageOut,
    summary="Logout (revoke refresh token)",
    responses=error_responses(400, 500),
)
def logout(payload: LogoutIn, db: Session = Depends(get_db)):
    try:
        refresh_meta = get_token_metadata(payload.refresh_token, expected_type="refresh")
    except TokenValidationError:
        return MessageOut(message="Logged out successfully")

    db.execute(
        update(RefreshToken)
        .where(
            RefreshToken.token_jti == refresh_meta.jti,
            RefreshToken.revoked_at.is_(None),
        )
        .values(revoked_at=utcnow())
    )
    db.commit()
    return MessageOut(message="Logged out successfully")


@router.get(
    "/me",
    response_model=DataOut[UserOut],
    summary="Get current user profile",
    responses=error_responses(401, 500),
)
def get_me(user: User = Depends(get_current_user)):
    return DataOut[UserOut](data=UserOut.model_validate(user))


@router.put(
    "/update-profile",
    response_model=DataOut[UserOut],
    summary="Update current user profile",
    description="Updates name, phone, avatar and/or address of the authenticated user.",
    responses=error_responses(400, 401, 500),
)
def update_profile(
    payload: UpdateProfileIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if payload.name is not None:
        user.name = payload.name
    if payload.phone is not None:
        user.phone = payload.phone
    if payload.avatar is not None:
        user.avatar = payload.avatar
    if payload.address is not None:
        user.address = payload.address.model_dump(by_alias=True)

    db.commit()
    db.refresh(user)
    return DataOut[UserOut](message="Profile updated successfully", data=UserOut.model_validate(user))


@router.put(
    "/update-password",
    response_model=TokenOut,
    summary="Change password",
    description="Changes the password, revokes every active refresh token and returns a new pair.",
    responses=error_responses(400, 401, 500),
)
def update_password(
    payload: UpdatePasswordIn,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not verify_password(payload.current_password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Current password is incorrect")
    if payload.current_password == payload.new_password:
        raise HTTPException(status_code=400, detail="New password must be different")

    user.hashed_password = hash_password(payload.new_password)
    _revoke_user_tokens(db, user.id)
    token_pair, _ = _issue_token_pair(db, user, ip=client_ip(request))
    db.commit()
    return token_pair


@router.post(
    "/forgot-password",
    response_model=MessageOut,
    summary="Request a password reset link",
    description="Always answers with the same message so account existence is not revealed.",
    responses=error_responses(400, 500),
)
def forgot_password(payload: ForgotPasswordIn, db: Session = Depends(get_db)):
    user = _find_user_by_email(db, payload.email)
    if not user:
        return MessageOut(message=FORGOT_PASSWORD_MESSAGE)

    raw_token = generate_reset_token()
    expires_at = utcnow() + timedelta(minutes=settings.password_reset_expire_minutes)
    user.reset_password_token_hash = hash_reset_token(raw_token)
    user.reset_password_expires_at = expires_at
    db.commit()

    send_password_reset_email(
        recipient_email=user.email,
        recipient_name=user.name,
        raw_token=raw_token,
        expires_at=expires_at,
    )
    return MessageOut(message=FORGOT_PASSWORD_MESSAGE)


@router.post(
    "/reset-password/{reset_token}",
    response_model=TokenOut,
    summary="Reset password with an emailed token",
    responses=error_responses(400, 500),
)
def reset_password(
    reset_token: str,
    payload: ResetPasswordIn,
    request: Request,
    db: Session = Depends(get_db),
):
    user = db.execute(
        select(User).where(User.reset_password_token_hash == hash_reset_token(reset_token))
    ).scalar_one_or_none()
    expires_at = as_utc(user.reset_password_expires_at) if user and user.reset_password_expires_at else None
    if not user or not expires_at or expires_at <= utcnow():
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    user.hashed_password = hash_password(payload.password)
    user.reset_password_token_hash = None
    user.reset_password_expires_at = None
    _revoke_user_tokens(db, user.id)
    token_pair, _ = _issue_token_pair(db, user, ip=client_ip(request))
    db.commit()
    return token_pair
