"""
UsageTracking Database Model

Monthly generation counter per user.
"""

from uuid import UUID

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from app.infrastructure.db.models.base import TimestampMixin, UUIDMixin


class UsageTrackingModel(UUIDMixin, TimestampMixin, table=True):
    """One row per (user, calendar month)."""

    __tablename__ = "usage_tracking"
    __table_args__ = (
        UniqueConstraint("user_id", "month_year", name="uq_usage_tracking_user_month"),
    )

    user_id: UUID = Field(..., index=True, nullable=False)
    month_year: str = Field(..., max_length=7, description="UTC month as YYYY-MM")
    generations_used: int = Field(default=0, nullable=False)
    plan_limit: int = Field(default=1, nullable=False)
