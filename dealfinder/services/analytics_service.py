from datetime import datetime

from sqlalchemy import func, literal_column, select
from sqlalchemy.orm import Session

from dealfinder.core.time_utils import start_of_local_month, utcnow, window_start
from dealfinder.models.analytic_event import AnalyticEvent
from dealfinder.models.business import Business
from dealfinder.models.promotion import Promotion
from dealfinder.models.user import User

BUSINESS_SERIES_DAYS = 30
TOP_BUSINESSES_LIMIT = 10


def rate(numerator: int, denominator: int) -> float:
    """Percentage rounded to two places, 0 when the denominator is empty."""
    if denominator <= 0:
        return 0.0
    return round(numerator / denominator * 100, 2)


def _count(db: Session, stmt) -> int:
    return int(db.execute(stmt).scalar_one() or 0)


def get_dashboard_summary(db: Session, now: datetime | None = None) -> dict:
    now = now or utcnow()
    month_start = start_of_local_month(now)

    total_clicks, total_impressions = db.execute(
        select(
            func.coalesce(func.sum(Promotion.clicks), 0),
            func.coalesce(func.sum(Promotion.impressions), 0),
        )
    ).one()
    total_clicks = int(total_clicks)
    total_impressions = int(total_impressions)

    return {
        "total_users": _count(db, select(func.count(User.id))),
        "new_users": _count(db, select(func.count(User.id)).where(User.created_at >= month_start)),
        "total_businesses": _count(db, select(func.count(Business.id))),
        "new_businesses": _count(
            db, select(func.count(Business.id)).where(Business.created_at >= month_start)
        ),
        "pending_businesses": _count(
            db, select(func.count(Business.id)).where(Business.status == "pending")
        ),
        "total_promotions": _count(db, select(func.count(Promotion.id))),
        "new_promotions": _count(
            db, select(func.count(Promotion.id)).where(Promotion.created_at >= month_start)
        ),
        "active_promotions": _count(
            db,
            select(func.count(Promotion.id)).where(
                Promotion.is_active.is_(True),
                Promotion.end_date > now,
            ),
        ),
        "total_clicks": total_clicks,
        "total_impressions": total_impressions,
        "average_conversion_rate": rate(total_clicks, total_impressions),
    }


def utc_day(db: Session):
    """SQL expression for the UTC calendar day of an event timestamp."""
    timestamp = AnalyticEvent.timestamp
    if db.get_bind().dialect.name == "postgresql":
        timestamp = func.timezone(literal_column("'UTC'"), timestamp)
    return func.date(timestamp)


def get_time_series(
    db: Session,
    window_days: int,
    *,
    business_id: str | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """Per-day click/view/search counts over the trailing window.

    Days are UTC calendar dates in ascending order. Days without events are
    left out rather than zero-filled.
    """
    day = utc_day(db)
    stmt = (
        select(day, AnalyticEvent.event_type, func.count(AnalyticEvent.id))
        .where(AnalyticEvent.timestamp >= window_start(window_days, now))
        .group_by(day, AnalyticEvent.event_type)
        .order_by(day)
    )
    if business_id is not None:
        stmt = stmt.where(AnalyticEvent.business_id == business_id)

    buckets: dict[str, dict[str, int]] = {}
    for bucket_day, event_type, count in db.execute(stmt).all():
        key = bucket_day if isinstance(bucket_day, str) else bucket_day.isoformat()
        buckets.setdefault(key, {})[event_type] = int(count)

    series = []
    for key in sorted(buckets):
        counts = buckets[key]
        clicks = counts.get("click", 0)
        views = counts.get("view", 0)
        series.append(
            {
                "date": key,
                "clicks": clicks,
                "views": views,
                "searches": counts.get("search", 0),
                "conversion_rate": rate(clicks, views),
            }
        )
    return series


def get_category_distribution(db: Session) -> list[dict]:
    count = func.count(Promotion.id)
    rows = db.execute(
        select(
            Promotion.category,
            count,
            func.coalesce(func.sum(Promotion.clicks), 0),
            func.coalesce(func.sum(Promotion.impressions), 0),
        )
        .group_by(Promotion.category)
        .order_by(count.desc(), Promotion.category.asc())
    ).all()
    return [
        {
            "category": category,
            "count": int(total),
            "total_clicks": int(clicks),
            "total_impressions": int(impressions),
        }
        for category, total, clicks, impressions in rows
    ]


def get_top_businesses(db: Session, limit: int = TOP_BUSINESSES_LIMIT) -> list[dict]:
    total_clicks = func.coalesce(func.sum(Promotion.clicks), 0)
    total_impressions = func.coalesce(func.sum(Promotion.impressions), 0)
    rows = db.execute(
        select(
            Business.id,
            Business.name,
            Business.category,
            total_clicks,
            total_impressions,
            func.count(Promotion.id),
        )
        .outerjoin(Promotion, Promotion.business_id == Business.id)
        .group_by(Business.id, Business.name, Business.category)
        .order_by(total_clicks.desc(), Business.id.asc())
        .limit(limit)
    ).all()

    result = []
    for business_id, name, category, clicks, impressions, promotions in rows:
        clicks = int(clicks)
        impressions = int(impressions)
        result.append(
            {
                "id": business_id,
                "name": name,
                "category": category,
                "total_clicks": clicks,
                "total_impressions": impressions,
                "total_promotions": int(promotions),
                # Unrounded, like the per-promotion rate.
                "conversion_rate": clicks / impressions * 100 if impressions > 0 else 0.0,
            }
        )
    return result


def get_admin_analytics(db: Session, window_days: int) -> dict:
    return {
        "daily_analytics": get_time_series(db, window_days),
        "category_distribution": get_category_distribution(db),
        "top_businesses": get_top_businesses(db),
    }


def get_business_analytics(db: Session, business: Business, now: datetime | None = None) -> dict:
    now = now or utcnow()
    total_clicks, total_impressions, total_promotions = db.execute(
        select(
            func.coalesce(func.sum(Promotion.clicks), 0),
            func.coalesce(func.sum(Promotion.impressions), 0),
            func.count(Promotion.id),
        ).where(Promotion.business_id == business.id)
    ).one()
    active_promotions = _count(
        db,
        select(func.count(Promotion.id)).where(
            Promotion.business_id == business.id,
            Promotion.is_active.is_(True),
            Promotion.end_date > now,
        ),
    )
    total_clicks = int(total_clicks)
    total_impressions = int(total_impressions)

    return {
        "summary": {
            "total_promotions": int(total_promotions),
            "active_promotions": active_promotions,
            "total_clicks": total_clicks,
            "total_impressions": total_impressions,
            "conversion_rate": rate(total_clicks, total_impressions),
        },
        "daily_analytics": get_time_series(
            db, BUSINESS_SERIES_DAYS, business_id=business.id, now=now
        ),
    }
