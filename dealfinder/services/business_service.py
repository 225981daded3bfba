import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from dealfinder.models.business import Business
from dealfinder.models.promotion import Promotion
from dealfinder.models.refresh_token import RefreshToken
from dealfinder.models.user import User

logger = logging.getLogger(__name__)


def recount_promotions(db: Session, business_id: str) -> int:
    """Recomputes ``promotion_count`` from the promotions table."""
    db.flush()
    count = int(
        db.execute(
            select(func.count(Promotion.id)).where(Promotion.business_id == business_id)
        ).scalar_one()
    )
    db.execute(
        update(Business).where(Business.id == business_id).values(promotion_count=count)
    )
    return count


def increment_impressions(db: Session, business_id: str) -> None:
    db.execute(
        update(Business)
        .where(Business.id == business_id)
        .values(impressions=Business.impressions + 1)
    )


def increment_clicks(db: Session, business_id: str) -> None:
    db.execute(
        update(Business)
        .where(Business.id == business_id)
        .values(clicks=Business.clicks + 1)
    )


def delete_business_cascade(db: Session, business: Business) -> int:
    """Removes a business and its promotions. Returns the number of promotions removed."""
    result = db.execute(delete(Promotion).where(Promotion.business_id == business.id))
    removed = result.rowcount or 0
    db.delete(business)
    db.flush()
    logger.info("business %s deleted with %s promotions", business.id, removed)
    return removed


def delete_user_cascade(db: Session, user: User) -> None:
    """Removes a user, their refresh tokens, and every business they own.

    Steps run one after the other inside the caller's transaction.
    """
    businesses = db.execute(
        select(Business).where(Business.owner_user_id == user.id)
    ).scalars().all()
    for business in businesses:
        delete_business_cascade(db, business)

    db.execute(delete(RefreshToken).where(RefreshToken.user_id == user.id))
    db.delete(user)
    logger.info("user %s deleted with %s businesses", user.id, len(businesses))
