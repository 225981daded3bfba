from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from dealfinder.core.id_utils import new_id
from dealfinder.core.time_utils import utcnow
from dealfinder.db.base import Base

EVENT_TYPES = ("view", "click", "conversion", "signup", "login", "search")


class AnalyticEvent(Base):
    """Append-only event log.

    Entity references are plain ids on purpose: events outlive the users,
    businesses and promotions they point at.
    """

    __tablename__ = "analytic_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    event_type: Mapped[str] = mapped_column(String(20), nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    promotion_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    business_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    search_query: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    device: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    browser: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    os: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    ip: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    referer: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_analytic_events_business_timestamp", "business_id", "timestamp"),
    )


Index("ix_analytic_events_timestamp_desc", AnalyticEvent.timestamp.desc())
