from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dealfinder.core.id_utils import new_id
from dealfinder.core.time_utils import utcnow
from dealfinder.db.base import Base
from dealfinder.models.business import Business


def compute_conversion_rate(clicks: int, impressions: int) -> float:
    if impressions > 0:
        return clicks / impressions * 100
    return 0.0


def tags_search_text(tags: list[str] | None) -> str:
    return "\n".join(tag.lower() for tag in tags or [])


class Promotion(Base):
    __tablename__ = "promotions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    business_id: Mapped[str] = mapped_column(String(36), ForeignKey("businesses.id"), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    discount_percentage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    original_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    discounted_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    images: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    redirect_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    # Lowercased tags, one per line, kept in sync on flush for free-text search.
    tags_text: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")

    impressions: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    conversion_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    business: Mapped[Business] = relationship(Business, lazy="joined")

    __table_args__ = (
        Index("ix_promotions_active_end_date", "is_active", "end_date"),
        Index("ix_promotions_featured_active_end_date", "is_featured", "is_active", "end_date"),
        Index("ix_promotions_business_created_at", "business_id", "created_at"),
    )


@event.listens_for(Promotion, "before_insert")
@event.listens_for(Promotion, "before_update")
def _sync_conversion_rate(_mapper, _connection, target: Promotion) -> None:
    target.conversion_rate = compute_conversion_rate(target.clicks or 0, target.impressions or 0)


@event.listens_for(Promotion, "before_insert")
@event.listens_for(Promotion, "before_update")
def _sync_tags_text(_mapper, _connection, target: Promotion) -> None:
    target.tags_text = tags_search_text(target.tags)
