from collections.abc import Callable

from fastapi import Depends, HTTPException, status

from dealfinder.core.security_current import get_current_user
from dealfinder.models.business import Business
from dealfinder.models.user import User

USER_ROLES = ("admin", "business", "user")


def require_roles(*allowed_roles: str) -> Callable[[User], User]:
    normalized_allowed = {role.strip().lower() for role in allowed_roles if role.strip()}
    if not normalized_allowed:
        raise ValueError("At least one allowed role is required")
    unknown = normalized_allowed - set(USER_ROLES)
    if unknown:
        raise ValueError(f"Unknown roles: {', '.join(sorted(unknown))}")

    def dependency(user: User = Depends(get_current_user)) -> User:
        current_role = (user.role or "").lower()
        if current_role not in normalized_allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User role '{current_role or 'unknown'}' is not authorized to access this route",
            )
        return user

    return dependency


def is_admin(user: User) -> bool:
    return (user.role or "").lower() == "admin"


def can_manage_business(user: User, business: Business) -> bool:
    return is_admin(user) or business.owner_user_id == user.id


def ensure_business_owner(user: User, business: Business, *, action: str) -> None:
    if not can_manage_business(user, business):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Not authorized to {action}",
        )
