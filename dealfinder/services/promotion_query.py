from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from dealfinder.core.time_utils import utcnow
from dealfinder.models.promotion import Promotion

DEFAULT_SORT = "newest"

_SORTS = {
    "newest": (Promotion.created_at.desc(),),
    "discount": (Promotion.discount_percentage.desc().nulls_last(), Promotion.created_at.desc()),
    "price-low": (Promotion.discounted_price.asc().nulls_last(), Promotion.created_at.desc()),
    "price-high": (Promotion.discounted_price.desc().nulls_last(), Promotion.created_at.desc()),
    "ending-soon": (Promotion.end_date.asc(), Promotion.created_at.desc()),
}


@dataclass
class PromotionFilters:
    """Optional, independently toggled predicates for promotion listings.

    ``live_only`` is on for every public listing: active and not yet ended.
    """

    category: str | None = None
    type: str | None = None
    business_id: str | None = None
    is_featured: bool | None = None
    is_active: bool | None = None
    query: str | None = None
    live_only: bool = True

    def conditions(self, now: datetime | None = None) -> list:
        clauses = []
        if self.live_only:
            clauses.append(Promotion.is_active.is_(True))
            clauses.append(Promotion.end_date > (now or utcnow()))
        if self.category:
            clauses.append(Promotion.category == self.category)
        if self.type:
            clauses.append(Promotion.type == self.type)
        if self.business_id:
            clauses.append(Promotion.business_id == self.business_id)
        if self.is_featured is not None:
            clauses.append(Promotion.is_featured.is_(self.is_featured))
        if self.is_active is not None:
            clauses.append(Promotion.is_active.is_(self.is_active))

        tokens = search_tokens(self.query)
        if tokens:
            matches = []
            for token in tokens:
                matches.append(Promotion.title.icontains(token, autoescape=True))
                matches.append(Promotion.description.icontains(token, autoescape=True))
                matches.append(Promotion.tags_text.contains(token.lower(), autoescape=True))
            clauses.append(or_(*matches))
        return clauses


def search_tokens(query: str | None) -> list[str]:
    if not query:
        return []
    return [token for token in query.split() if token]


def sort_clauses(sort_by: str | None) -> tuple:
    return _SORTS.get(sort_by or DEFAULT_SORT, _SORTS[DEFAULT_SORT]) + (Promotion.id.asc(),)


def paginate_promotions(
    db: Session,
    filters: PromotionFilters,
    *,
    page: int,
    limit: int,
    sort_by: str | None = None,
) -> tuple[list[Promotion], int]:
    """Returns one page of promotions and the total number of matches."""
    now = utcnow()
    conditions = filters.conditions(now)

    total = int(
        db.execute(select(func.count(Promotion.id)).where(*conditions)).scalar_one()
    )
    rows = db.execute(
        select(Promotion)
        .where(*conditions)
        .order_by(*sort_clauses(sort_by))
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return list(rows), total
