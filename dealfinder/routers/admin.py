from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from dealfinder.core.api_docs import error_responses
from dealfinder.core.deps import get_db
from dealfinder.core.permissions import require_roles
from dealfinder.models.business import Business
from dealfinder.models.user import User
from dealfinder.schemas.admin import (
    AdminUserDetailOut,
    AdminUserUpdateIn,
    BusinessVerifyIn,
    PromotionFeatureIn,
)
from dealfinder.schemas.analytics import AdminAnalyticsOut, DashboardStatsOut
from dealfinder.schemas.auth import UserOut
from dealfinder.schemas.business import BusinessOut
from dealfinder.schemas.common import DataOut, MessageOut, PageOut, total_pages
from dealfinder.schemas.promotion import PromotionOut
from dealfinder.services import analytics_service, business_service, promotion_service
from dealfinder.services.promotion_query import PromotionFilters, paginate_promotions

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_roles("admin"))],
)

ADMIN_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def _get_user_or_404(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get(
    "/dashboard",
    response_model=DataOut[DashboardStatsOut],
    summary="Platform summary counters",
    description="Month-to-date counts start at local midnight on the first day of the current month.",
    responses=error_responses(401, 403, 500),
)
def get_dashboard_stats(db: Session = Depends(get_db)):
    stats = analytics_service.get_dashboard_summary(db)
    return DataOut[DashboardStatsOut](data=DashboardStatsOut.model_validate(stats))


@router.get(
    "/analytics",
    response_model=DataOut[AdminAnalyticsOut],
    summary="Daily series, category distribution and top businesses",
    responses=error_responses(400, 401, 403, 500),
)
def get_analytics(
    period: int = Query(default=30, ge=1, le=365),
    db: Session = Depends(get_db),
):
    analytics = analytics_service.get_admin_analytics(db, period)
    return DataOut[AdminAnalyticsOut](data=AdminAnalyticsOut.model_validate(analytics))


@router.get(
    "/users",
    response_model=PageOut[UserOut],
    summary="List users",
    responses=error_responses(400, 401, 403, 500),
)
def list_users(
    role: Optional[Literal["admin", "business", "user"]] = None,
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=ADMIN_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    conditions = []
    if role:
        conditions.append(User.role == role)
    if search and search.strip():
        term = search.strip()
        conditions.append(
            or_(
                User.name.icontains(term, autoescape=True),
                User.email.icontains(term, autoescape=True),
            )
        )

    total = int(db.execute(select(func.count(User.id)).where(*conditions)).scalar_one())
    rows = db.execute(
        select(User)
        .where(*conditions)
        .order_by(User.created_at.desc(), User.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return PageOut[UserOut](
        count=len(rows),
        total_pages=total_pages(total, limit),
        current_page=page,
        data=[UserOut.model_validate(row) for row in rows],
    )


@router.get(
    "/users/{user_id}",
    response_model=DataOut[AdminUserDetailOut],
    summary="Get a user with the businesses they own",
    responses=error_responses(401, 403, 404, 500),
)
def get_user(user_id: str, db: Session = Depends(get_db)):
    user = _get_user_or_404(db, user_id)
    businesses = db.execute(
        select(Business)
        .where(Business.owner_user_id == user.id)
        .order_by(Business.created_at.desc(), Business.id.asc())
    ).scalars().all()
    return DataOut[AdminUserDetailOut](
        data=AdminUserDetailOut(
            user=UserOut.model_validate(user),
            businesses=[BusinessOut.model_validate(row) for row in businesses],
        )
    )


@router.put(
    "/users/{user_id}",
    response_model=DataOut[UserOut],
    summary="Update a user",
    responses=error_responses(400, 401, 403, 404, 409, 500),
)
def update_user(user_id: str, payload: AdminUserUpdateIn, db: Session = Depends(get_db)):
    user = _get_user_or_404(db, user_id)

    if payload.email is not None:
        normalized_email = payload.email.lower()
        taken = db.execute(
            select(User.id).where(func.lower(User.email) == normalized_email, User.id != user.id)
        ).scalar_one_or_none()
        if taken:
            raise HTTPException(status_code=409, detail="Email already in use")
        user.email = normalized_email
    if payload.name is not None:
        user.name = payload.name
    if payload.role is not None:
        user.role = payload.role
    if payload.is_verified is not None:
        user.is_verified = payload.is_verified

    db.commit()
    db.refresh(user)
    return DataOut[UserOut](message="User updated successfully", data=UserOut.model_validate(user))


@router.delete(
    "/users/{user_id}",
    response_model=MessageOut,
    summary="Delete a user with their businesses and promotions",
    responses=error_responses(401, 403, 404, 500),
)
def delete_user(user_id: str, db: Session = Depends(get_db)):
    user = _get_user_or_404(db, user_id)
    business_service.delete_user_cascade(db, user)
    db.commit()
    return MessageOut(message="User and associated data deleted successfully")


@router.get(
    "/businesses",
    response_model=PageOut[BusinessOut],
    summary="List businesses",
    responses=error_responses(400, 401, 403, 500),
)
def list_businesses(
    status: Optional[Literal["pending", "active", "suspended"]] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=ADMIN_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    conditions = []
    if status:
        conditions.append(Business.status == status)
    if category:
        conditions.append(Business.category == category)
    if search and search.strip():
        conditions.append(Business.name.icontains(search.strip(), autoescape=True))

    total = int(db.execute(select(func.count(Business.id)).where(*conditions)).scalar_one())
    rows = db.execute(
        select(Business)
        .where(*conditions)
        .order_by(Business.created_at.desc(), Business.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return PageOut[BusinessOut](
        count=len(rows),
        total_pages=total_pages(total, limit),
        current_page=page,
        data=[BusinessOut.model_validate(row) for row in rows],
    )


@router.patch(
    "/businesses/{business_id}/verify",
    response_model=DataOut[BusinessOut],
    summary="Verify a business",
    description="`isVerified` defaults to true and `status` to `active`.",
    responses=error_responses(400, 401, 403, 404, 500),
)
def verify_business(
    business_id: str,
    payload: Optional[BusinessVerifyIn] = None,
    db: Session = Depends(get_db),
):
    payload = payload or BusinessVerifyIn()
    business = db.get(Business, business_id)
    if not business:
        raise HTTPException(status_code=404, detail="Business not found")

    business.is_verified = payload.is_verified
    business.status = payload.status
    db.commit()
    db.refresh(business)
    return DataOut[BusinessOut](
        message="Business verification status updated",
        data=BusinessOut.model_validate(business),
    )


@router.get(
    "/promotions",
    response_model=PageOut[PromotionOut],
    summary="List all promotions",
    description="Includes inactive and expired promotions.",
    responses=error_responses(400, 401, 403, 500),
)
def list_promotions(
    category: Optional[str] = None,
    type: Optional[str] = None,
    featured: Optional[bool] = None,
    active: Optional[bool] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=ADMIN_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    filters = PromotionFilters(
        category=category or None,
        type=type or None,
        is_featured=featured,
        is_active=active,
        live_only=False,
    )
    rows, total = paginate_promotions(db, filters, page=page, limit=limit)
    return PageOut[PromotionOut](
        count=len(rows),
        total_pages=total_pages(total, limit),
        current_page=page,
        data=[PromotionOut.model_validate(row) for row in rows],
    )


@router.patch(
    "/promotions/{promotion_id}/featured",
    response_model=DataOut[PromotionOut],
    summary="Feature or unfeature a promotion",
    description="`isFeatured` defaults to true.",
    responses=error_responses(400, 401, 403, 404, 500),
)
def set_promotion_featured(
    promotion_id: str,
    payload: Optional[PromotionFeatureIn] = None,
    db: Session = Depends(get_db),
):
    payload = payload or PromotionFeatureIn()
    promotion = promotion_service.get_promotion(db, promotion_id)
    if not promotion:
        raise HTTPException(status_code=404, detail="Promotion not found")

    promotion.is_featured = payload.is_featured
    db.commit()
    db.refresh(promotion)
    state = "featured" if promotion.is_featured else "unfeatured"
    return DataOut[PromotionOut](
        message=f"Promotion {state} successfully",
        data=PromotionOut.model_validate(promotion),
    )
