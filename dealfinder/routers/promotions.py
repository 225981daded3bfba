from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from sqlalchemy.orm import Session

from dealfinder.core.api_docs import error_responses
from dealfinder.core.client_info import get_client_info
from dealfinder.core.config import settings
from dealfinder.core.deps import get_db
from dealfinder.core.forms import drop_none, validate_form
from dealfinder.core.permissions import ensure_business_owner, require_roles
from dealfinder.models.business import Business
from dealfinder.models.promotion import Promotion
from dealfinder.models.user import User
from dealfinder.schemas.common import DataOut, ListOut, MessageOut, PageOut, total_pages
from dealfinder.schemas.promotion import (
    PromotionClickOut,
    PromotionCreate,
    PromotionOut,
    PromotionUpdate,
    parse_tags,
)
from dealfinder.services import promotion_service, upload_service
from dealfinder.services.promotion_query import PromotionFilters, paginate_promotions

router = APIRouter(prefix="/promotions", tags=["promotions"])

UPLOAD_FOLDER = "promotions"
PUBLIC_PAGE_SIZE = 12
MAX_PAGE_SIZE = 100


def _get_promotion_or_404(db: Session, promotion_id: str) -> Promotion:
    promotion = promotion_service.get_promotion(db, promotion_id)
    if not promotion:
        raise HTTPException(status_code=404, detail="Promotion not found")
    return promotion


def _page_out(rows: list[Promotion], total: int, page: int, limit: int) -> PageOut[PromotionOut]:
    return PageOut[PromotionOut](
        count=len(rows),
        total_pages=total_pages(total, limit),
        current_page=page,
        data=[PromotionOut.model_validate(row) for row in rows],
    )


def _save_images(images: list[UploadFile] | None) -> list[str]:
    files = [image for image in images or [] if image.filename]
    try:
        return upload_service.save_images(files, UPLOAD_FOLDER, max_files=settings.promotion_max_images)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get(
    "",
    response_model=PageOut[PromotionOut],
    summary="List live promotions",
    responses=error_responses(400, 500),
)
def list_promotions(
    category: Optional[str] = None,
    type: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=PUBLIC_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    filters = PromotionFilters(category=category or None, type=type or None)
    rows, total = paginate_promotions(db, filters, page=page, limit=limit)
    return _page_out(rows, total, page, limit)


@router.get(
    "/featured",
    response_model=ListOut[PromotionOut],
    summary="Up to six featured live promotions",
    responses=error_responses(500),
)
def list_featured_promotions(db: Session = Depends(get_db)):
    rows = promotion_service.list_featured(db)
    return ListOut[PromotionOut](
        count=len(rows),
        data=[PromotionOut.model_validate(row) for row in rows],
    )


@router.get(
    "/category/{category}",
    response_model=PageOut[PromotionOut],
    summary="List live promotions of one category",
    responses=error_responses(400, 500),
)
def list_promotions_by_category(
    category: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=PUBLIC_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    rows, total = paginate_promotions(db, PromotionFilters(category=category), page=page, limit=limit)
    return _page_out(rows, total, page, limit)


@router.get(
    "/search",
    response_model=PageOut[PromotionOut],
    summary="Search live promotions",
    description=(
        "`q` matches any whitespace-separated word against title, description and tags. "
        "`category=all` disables the category filter. A non-empty `q` is logged as a search event."
    ),
    responses=error_responses(400, 500),
)
def search_promotions(
    request: Request,
    q: Optional[str] = None,
    category: Optional[str] = None,
    type: Optional[str] = None,
    sort_by: Optional[str] = Query(default=None, alias="sortBy"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=PUBLIC_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    filters = PromotionFilters(
        category=None if not category or category == "all" else category,
        type=type or None,
        query=q,
    )
    rows, total = paginate_promotions(db, filters, page=page, limit=limit, sort_by=sort_by)

    if q and q.strip():
        promotion_service.record_search(db, q.strip(), client=get_client_info(request))
        db.commit()

    return _page_out(rows, total, page, limit)


@router.get(
    "/{promotion_id}",
    response_model=DataOut[PromotionOut],
    summary="Get a promotion",
    description="Public. Each call counts one impression and refreshes the conversion rate.",
    responses=error_responses(404, 500),
)
def get_promotion(promotion_id: str, request: Request, db: Session = Depends(get_db)):
    promotion = promotion_service.record_impression(db, promotion_id, client=get_client_info(request))
    if not promotion:
        raise HTTPException(status_code=404, detail="Promotion not found")
    db.commit()
    db.refresh(promotion)
    return DataOut[PromotionOut](data=PromotionOut.model_validate(promotion))


@router.post(
    "/{promotion_id}/click",
    response_model=PromotionClickOut,
    summary="Record a promotion click",
    description="Not idempotent: every call counts a click and logs a click event.",
    responses=error_responses(404, 500),
)
def record_promotion_click(promotion_id: str, request: Request, db: Session = Depends(get_db)):
    promotion = _get_promotion_or_404(db, promotion_id)
    promotion_service.record_click(db, promotion, client=get_client_info(request))
    db.commit()
    return PromotionClickOut(redirect_url=promotion.redirect_url)


@router.post(
    "",
    response_model=DataOut[PromotionOut],
    status_code=201,
    summary="Create a promotion",
    description=(
        "Multipart form with 1 to 5 `images`. `tags` is a comma-separated string. "
        "`startDate` defaults to now. Business owner or admin only."
    ),
    responses=error_responses(400, 401, 403, 404, 500),
)
def create_promotion(
    business: Optional[str] = Form(default=None),
    title: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    category: Optional[str] = Form(default=None),
    type: Optional[str] = Form(default=None),
    discount_percentage: Optional[str] = Form(default=None, alias="discountPercentage"),
    original_price: Optional[str] = Form(default=None, alias="originalPrice"),
    discounted_price: Optional[str] = Form(default=None, alias="discountedPrice"),
    redirect_url: Optional[str] = Form(default=None, alias="redirectUrl"),
    tags: Optional[str] = Form(default=None),
    terms: Optional[str] = Form(default=None),
    code: Optional[str] = Form(default=None),
    start_date: Optional[str] = Form(default=None, alias="startDate"),
    end_date: Optional[str] = Form(default=None, alias="endDate"),
    images: Optional[list[UploadFile]] = File(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("business", "admin")),
):
    # Existence and ownership are checked before any field validation; a blank
    # business id is left to the validator.
    business_row = None
    if business and business.strip():
        business_row = db.get(Business, business.strip())
        if not business_row:
            raise HTTPException(status_code=404, detail="Business not found")
        ensure_business_owner(user, business_row, action="create promotions for this business")

    payload = validate_form(
        PromotionCreate,
        drop_none(
            {
                "business": business,
                "title": title,
                "description": description,
                "category": category,
                "type": type,
                "discount_percentage": discount_percentage or None,
                "original_price": original_price or None,
                "discounted_price": discounted_price or None,
                "redirect_url": redirect_url,
                "tags": parse_tags(tags),
                "terms": terms,
                "code": code,
                "start_date": start_date or None,
                "end_date": end_date,
            }
        ),
    )

    if not any(image.filename for image in images or []):
        raise HTTPException(status_code=400, detail="Please upload at least one image")
    image_paths = _save_images(images)

    try:
        promotion = promotion_service.create_promotion(db, business_row, payload, image_paths)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    db.refresh(promotion)
    return DataOut[PromotionOut](
        message="Promotion created successfully",
        data=PromotionOut.model_validate(promotion),
    )


@router.put(
    "/{promotion_id}",
    response_model=DataOut[PromotionOut],
    summary="Update a promotion",
    description="Partial multipart update. New `images` replace the current list. Owner or admin only.",
    responses=error_responses(400, 401, 403, 404, 500),
)
def update_promotion(
    promotion_id: str,
    title: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    category: Optional[str] = Form(default=None),
    type: Optional[str] = Form(default=None),
    discount_percentage: Optional[str] = Form(default=None, alias="discountPercentage"),
    original_price: Optional[str] = Form(default=None, alias="originalPrice"),
    discounted_price: Optional[str] = Form(default=None, alias="discountedPrice"),
    redirect_url: Optional[str] = Form(default=None, alias="redirectUrl"),
    tags: Optional[str] = Form(default=None),
    terms: Optional[str] = Form(default=None),
    code: Optional[str] = Form(default=None),
    start_date: Optional[str] = Form(default=None, alias="startDate"),
    end_date: Optional[str] = Form(default=None, alias="endDate"),
    is_active: Optional[str] = Form(default=None, alias="isActive"),
    images: Optional[list[UploadFile]] = File(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("business", "admin")),
):
    promotion = _get_promotion_or_404(db, promotion_id)
    ensure_business_owner(user, promotion.business, action="update this promotion")

    payload = validate_form(
        PromotionUpdate,
        drop_none(
            {
                "title": title,
                "description": description,
                "category": category,
                "type": type,
                "discount_percentage": discount_percentage or None,
                "original_price": original_price or None,
                "discounted_price": discounted_price or None,
                "redirect_url": redirect_url,
                "tags": parse_tags(tags) if tags is not None else None,
                "terms": terms,
                "code": code,
                "start_date": start_date or None,
                "end_date": end_date or None,
                "is_active": is_active or None,
            }
        ),
    )
    image_paths = _save_images(images)

    try:
        promotion_service.update_promotion(db, promotion, payload, image_paths or None)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    db.refresh(promotion)
    return DataOut[PromotionOut](
        message="Promotion updated successfully",
        data=PromotionOut.model_validate(promotion),
    )


@router.delete(
    "/{promotion_id}",
    response_model=MessageOut,
    summary="Delete a promotion",
    responses=error_responses(401, 403, 404, 500),
)
def delete_promotion(
    promotion_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("business", "admin")),
):
    promotion = _get_promotion_or_404(db, promotion_id)
    ensure_business_owner(user, promotion.business, action="delete this promotion")
    promotion_service.delete_promotion(db, promotion)
    db.commit()
    return MessageOut(message="Promotion deleted successfully")
