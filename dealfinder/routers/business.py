from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy import select
from sqlalchemy.orm import Session

from dealfinder.core.api_docs import error_responses
from dealfinder.core.deps import get_db
from dealfinder.core.forms import drop_none, parse_json_field, validate_form
from dealfinder.core.permissions import ensure_business_owner, require_roles
from dealfinder.models.business import Business
from dealfinder.models.promotion import Promotion
from dealfinder.models.user import User
from dealfinder.schemas.analytics import BusinessAnalyticsOut
from dealfinder.schemas.business import BusinessCreate, BusinessOut, BusinessStatusIn, BusinessUpdate
from dealfinder.schemas.common import DataOut, ListOut, MessageOut
from dealfinder.schemas.promotion import PromotionOut
from dealfinder.services import analytics_service, business_service, upload_service

router = APIRouter(prefix="/business", tags=["business"])

UPLOAD_FOLDER = "businesses"


def _get_business_or_404(db: Session, business_id: str) -> Business:
    business = db.get(Business, business_id)
    if not business:
        raise HTTPException(status_code=404, detail="Business not found")
    return business


def _save_optional_image(file: UploadFile | None) -> str | None:
    if file is None or not file.filename:
        return None
    try:
        return upload_service.save_image(file, UPLOAD_FOLDER)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _form_values(
    *,
    name: str | None,
    description: str | None,
    category: str | None,
    subcategory: str | None,
    website: str | None,
    contact_email: str | None,
    contact_phone: str | None,
    social_media: str | None,
    address: str | None,
    business_hours: str | None,
) -> dict:
    return drop_none(
        {
            "name": name,
            "description": description,
            "category": category,
            "subcategory": subcategory,
            "website": website,
            "contact_email": contact_email or None,
            "contact_phone": contact_phone,
            "social_media": parse_json_field(social_media, "socialMedia"),
            "address": parse_json_field(address, "address"),
            "business_hours": parse_json_field(business_hours, "businessHours"),
        }
    )


def _apply_fields(business: Business, values: dict) -> None:
    for field_name, value in values.items():
        if field_name in {"social_media", "address"} and value is not None:
            value = value.model_dump(by_alias=True, exclude_none=True)
        elif field_name == "business_hours" and value is not None:
            value = [hour.model_dump(by_alias=True) for hour in value]
        setattr(business, field_name, value)


@router.post(
    "",
    response_model=DataOut[BusinessOut],
    status_code=201,
    summary="Create a business",
    description=(
        "Multipart form. `socialMedia`, `address` and `businessHours` are JSON strings; "
        "`logo` and `coverImage` are optional image files."
    ),
    responses=error_responses(400, 401, 403, 500),
)
def create_business(
    name: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    category: Optional[str] = Form(default=None),
    subcategory: Optional[str] = Form(default=None),
    website: Optional[str] = Form(default=None),
    contact_email: Optional[str] = Form(default=None, alias="contactEmail"),
    contact_phone: Optional[str] = Form(default=None, alias="contactPhone"),
    social_media: Optional[str] = Form(default=None, alias="socialMedia"),
    address: Optional[str] = Form(default=None),
    business_hours: Optional[str] = Form(default=None, alias="businessHours"),
    logo: Optional[UploadFile] = File(default=None),
    cover_image: Optional[UploadFile] = File(default=None, alias="coverImage"),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("business", "admin")),
):
    payload = validate_form(
        BusinessCreate,
        _form_values(
            name=name,
            description=description,
            category=category,
            subcategory=subcategory,
            website=website,
            contact_email=contact_email,
            contact_phone=contact_phone,
            social_media=social_media,
            address=address,
            business_hours=business_hours,
        ),
    )

    business = Business(owner_user_id=user.id)
    _apply_fields(business, {key: getattr(payload, key) for key in payload.model_fields_set})
    logo_path = _save_optional_image(logo)
    if logo_path:
        business.logo = logo_path
    business.cover_image = _save_optional_image(cover_image)

    db.add(business)
    db.commit()
    db.refresh(business)
    return DataOut[BusinessOut](
        message="Business created successfully",
        data=BusinessOut.model_validate(business),
    )


@router.get(
    "/my-businesses",
    response_model=ListOut[BusinessOut],
    summary="List businesses owned by the caller",
    responses=error_responses(401, 403, 500),
)
def get_my_businesses(
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("business", "admin")),
):
    rows = db.execute(
        select(Business)
        .where(Business.owner_user_id == user.id)
        .order_by(Business.created_at.desc(), Business.id.asc())
    ).scalars().all()
    return ListOut[BusinessOut](
        count=len(rows),
        data=[BusinessOut.model_validate(row) for row in rows],
    )


@router.get(
    "/my-businesses/{business_id}/promotions",
    response_model=ListOut[PromotionOut],
    summary="List every promotion of a business",
    description="Includes inactive and expired promotions. Owner or admin only.",
    responses=error_responses(401, 403, 404, 500),
)
def get_business_promotions(
    business_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("business", "admin")),
):
    business = _get_business_or_404(db, business_id)
    ensure_business_owner(user, business, action="access this business data")

    rows = db.execute(
        select(Promotion)
        .where(Promotion.business_id == business.id)
        .order_by(Promotion.created_at.desc(), Promotion.id.asc())
    ).scalars().all()
    return ListOut[PromotionOut](
        count=len(rows),
        data=[PromotionOut.model_validate(row) for row in rows],
    )


@router.get(
    "/my-businesses/{business_id}/analytics",
    response_model=DataOut[BusinessAnalyticsOut],
    summary="Promotion summary and 30-day daily series for one business",
    responses=error_responses(401, 403, 404, 500),
)
def get_business_analytics(
    business_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("business", "admin")),
):
    business = _get_business_or_404(db, business_id)
    ensure_business_owner(user, business, action="access this business analytics")

    analytics = analytics_service.get_business_analytics(db, business)
    return DataOut[BusinessAnalyticsOut](data=BusinessAnalyticsOut.model_validate(analytics))


@router.get(
    "/{business_id}",
    response_model=DataOut[BusinessOut],
    summary="Get a business",
    description="Public. Each call counts one business impression.",
    responses=error_responses(404, 500),
)
def get_business(business_id: str, db: Session = Depends(get_db)):
    business = _get_business_or_404(db, business_id)
    business_service.increment_impressions(db, business.id)
    db.commit()
    db.refresh(business)
    return DataOut[BusinessOut](data=BusinessOut.model_validate(business))


@router.put(
    "/{business_id}",
    response_model=DataOut[BusinessOut],
    summary="Update a business",
    description="Partial multipart update; only provided fields change. Owner or admin only.",
    responses=error_responses(400, 401, 403, 404, 500),
)
def update_business(
    business_id: str,
    name: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    category: Optional[str] = Form(default=None),
    subcategory: Optional[str] = Form(default=None),
    website: Optional[str] = Form(default=None),
    contact_email: Optional[str] = Form(default=None, alias="contactEmail"),
    contact_phone: Optional[str] = Form(default=None, alias="contactPhone"),
    social_media: Optional[str] = Form(default=None, alias="socialMedia"),
    address: Optional[str] = Form(default=None),
    business_hours: Optional[str] = Form(default=None, alias="businessHours"),
    logo: Optional[UploadFile] = File(default=None),
    cover_image: Optional[UploadFile] = File(default=None, alias="coverImage"),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("business", "admin")),
):
    business = _get_business_or_404(db, business_id)
    ensure_business_owner(user, business, action="update this business")

    payload = validate_form(
        BusinessUpdate,
        _form_values(
            name=name,
            description=description,
            category=category,
            subcategory=subcategory,
            website=website,
            contact_email=contact_email,
            contact_phone=contact_phone,
            social_media=social_media,
            address=address,
            business_hours=business_hours,
        ),
    )
    _apply_fields(
        business,
        {key: getattr(payload, key) for key in payload.model_fields_set if getattr(payload, key) is not None},
    )
    logo_path = _save_optional_image(logo)
    if logo_path:
        business.logo = logo_path
    cover_path = _save_optional_image(cover_image)
    if cover_path:
        business.cover_image = cover_path

    db.commit()
    db.refresh(business)
    return DataOut[BusinessOut](
        message="Business updated successfully",
        data=BusinessOut.model_validate(business),
    )


@router.delete(
    "/{business_id}",
    response_model=MessageOut,
    summary="Delete a business and all its promotions",
    responses=error_responses(401, 403, 404, 500),
)
def delete_business(
    business_id: str,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_roles("admin")),
):
    business = _get_business_or_404(db, business_id)
    business_service.delete_business_cascade(db, business)
    db.commit()
    return MessageOut(message="Business and all associated promotions deleted successfully")


@router.patch(
    "/{business_id}/status",
    response_model=DataOut[BusinessOut],
    summary="Set business status",
    responses=error_responses(400, 401, 403, 404, 500),
)
def update_business_status(
    business_id: str,
    payload: BusinessStatusIn,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_roles("admin")),
):
    business = _get_business_or_404(db, business_id)
    business.status = payload.status
    db.commit()
    db.refresh(business)
    return DataOut[BusinessOut](
        message=f"Business status updated to {payload.status}",
        data=BusinessOut.model_validate(business),
    )
