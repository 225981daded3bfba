import logging

from sqlalchemy import Float, case, cast, select, update
from sqlalchemy.orm import Session

from dealfinder.core.client_info import ClientInfo
from dealfinder.core.config import settings
from dealfinder.core.time_utils import as_utc, utcnow
from dealfinder.models.analytic_event import EVENT_TYPES, AnalyticEvent
from dealfinder.models.business import Business
from dealfinder.models.promotion import Promotion
from dealfinder.schemas.promotion import PromotionCreate, PromotionUpdate
from dealfinder.services import business_service
from dealfinder.services.promotion_query import PromotionFilters

logger = logging.getLogger(__name__)

FEATURED_LIMIT = 6


def get_promotion(db: Session, promotion_id: str) -> Promotion | None:
    return db.execute(select(Promotion).where(Promotion.id == promotion_id)).scalar_one_or_none()


def create_promotion(
    db: Session,
    business: Business,
    payload: PromotionCreate,
    images: list[str],
) -> Promotion:
    if not images:
        raise ValueError("Please upload at least one image")

    promotion = Promotion(
        business_id=business.id,
        title=payload.title,
        description=payload.description,
        category=payload.category,
        type=payload.type,
        discount_percentage=payload.discount_percentage,
        original_price=payload.original_price,
        discounted_price=payload.discounted_price,
        images=images,
        redirect_url=payload.redirect_url,
        tags=payload.tags or [],
        terms=payload.terms,
        code=payload.code,
        start_date=payload.start_date or utcnow(),
        end_date=payload.end_date,
    )
    db.add(promotion)
    db.flush()
    business_service.recount_promotions(db, business.id)
    logger.info("promotion %s created for business %s", promotion.id, business.id)
    return promotion


def update_promotion(
    db: Session,
    promotion: Promotion,
    payload: PromotionUpdate,
    images: list[str] | None = None,
) -> Promotion:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    start_date = changes.get("start_date", promotion.start_date)
    end_date = changes.get("end_date", promotion.end_date)
    if ("start_date" in changes or "end_date" in changes) and as_utc(end_date) <= as_utc(start_date):
        raise ValueError("End date must be after start date")

    for field_name, value in changes.items():
        setattr(promotion, field_name, value)
    if images:
        promotion.images = images
    db.flush()
    return promotion


def delete_promotion(db: Session, promotion: Promotion) -> None:
    business_id = promotion.business_id
    db.delete(promotion)
    db.flush()
    business_service.recount_promotions(db, business_id)
    logger.info("promotion %s deleted from business %s", promotion.id, business_id)


def _bump_counters(db: Session, promotion_id: str, *, impressions: int = 0, clicks: int = 0) -> bool:
    # SET expressions see pre-update values, so the rate is computed from the new counts explicitly.
    new_impressions = Promotion.impressions + impressions
    new_clicks = Promotion.clicks + clicks
    result = db.execute(
        update(Promotion)
        .where(Promotion.id == promotion_id)
        .values(
            impressions=new_impressions,
            clicks=new_clicks,
            conversion_rate=case(
                (new_impressions > 0, cast(new_clicks, Float) / new_impressions * 100.0),
                else_=0.0,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    return bool(result.rowcount)


def record_impression(
    db: Session,
    promotion_id: str,
    *,
    client: ClientInfo | None = None,
    user_id: str | None = None,
) -> Promotion | None:
    if not _bump_counters(db, promotion_id, impressions=1):
        return None

    promotion = get_promotion(db, promotion_id)
    db.refresh(promotion)
    if settings.record_view_events:
        _append_event(
            db,
            "view",
            client=client,
            user_id=user_id,
            promotion_id=promotion.id,
            business_id=promotion.business_id,
        )
    return promotion


def record_click(
    db: Session,
    promotion: Promotion,
    *,
    client: ClientInfo | None = None,
    user_id: str | None = None,
) -> Promotion:
    _bump_counters(db, promotion.id, clicks=1)
    business_service.increment_clicks(db, promotion.business_id)
    _append_event(
        db,
        "click",
        client=client,
        user_id=user_id,
        promotion_id=promotion.id,
        business_id=promotion.business_id,
    )
    db.flush()
    db.refresh(promotion)
    return promotion


def record_search(
    db: Session,
    query: str,
    *,
    client: ClientInfo | None = None,
    user_id: str | None = None,
) -> AnalyticEvent:
    return _append_event(db, "search", client=client, user_id=user_id, search_query=query)


def _append_event(
    db: Session,
    event_type: str,
    *,
    client: ClientInfo | None,
    user_id: str | None = None,
    promotion_id: str | None = None,
    business_id: str | None = None,
    search_query: str | None = None,
) -> AnalyticEvent:
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown analytic event type: {event_type}")
    event = AnalyticEvent(
        event_type=event_type,
        user_id=user_id,
        promotion_id=promotion_id,
        business_id=business_id,
        search_query=search_query,
        device=client.device if client else "other",
        browser=client.browser if client else None,
        os=client.os if client else None,
        ip=client.ip if client else None,
        referer=client.referer if client else None,
        timestamp=utcnow(),
    )
    db.add(event)
    return event


def list_featured(db: Session, limit: int = FEATURED_LIMIT) -> list[Promotion]:
    filters = PromotionFilters(is_featured=True)
    rows = db.execute(
        select(Promotion)
        .where(*filters.conditions())
        .order_by(Promotion.created_at.desc(), Promotion.id.asc())
        .limit(limit)
    ).scalars().all()
    return list(rows)
