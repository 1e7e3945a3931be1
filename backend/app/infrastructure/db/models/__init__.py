"""
SQLModel ORM Models for HaircutFun

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from app.infrastructure.db.models.base import (
    TimestampMixin,
    UUIDMixin,
    utcnow,
)
from app.infrastructure.db.models.user_profile import UserProfileModel
from app.infrastructure.db.models.subscription import SubscriptionModel
from app.infrastructure.db.models.usage_tracking import UsageTrackingModel
from app.infrastructure.db.models.generated_image import GeneratedImageModel
from app.infrastructure.db.models.processed_webhook_event import ProcessedWebhookEventModel
from app.infrastructure.db.models.payment import PaymentModel


__all__ = [
    # Base
    "TimestampMixin",
    "UUIDMixin",
    "utcnow",
    # Tables
    "UserProfileModel",
    "SubscriptionModel",
    "UsageTrackingModel",
    "GeneratedImageModel",
    "ProcessedWebhookEventModel",
    "PaymentModel",
]
