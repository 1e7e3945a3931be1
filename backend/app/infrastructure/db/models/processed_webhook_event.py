"""
ProcessedWebhookEvent Database Model

Stripe event IDs already applied, so redeliveries are acknowledged
without being processed twice.
"""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from app.infrastructure.db.models.base import utcnow


class ProcessedWebhookEventModel(SQLModel, table=True):
    __tablename__ = "processed_webhook_events"

    event_id: str = Field(primary_key=True, max_length=255)
    event_type: str = Field(..., max_length=100)
    processed_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        index=True,
        sa_type=DateTime(timezone=True),
    )
