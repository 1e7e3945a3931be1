"""
Repository Layer for HaircutFun

Exports all repository classes for dependency injection.
"""

from app.infrastructure.db.repositories.base_repository import (
    BaseRepository,
    to_uuid,
)
from app.infrastructure.db.repositories.user_profile_repository import (
    UserProfileRepository,
)
from app.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)
from app.infrastructure.db.repositories.usage_repository import (
    UsageRepository,
)
from app.infrastructure.db.repositories.generated_image_repository import (
    GeneratedImageRepository,
)
from app.infrastructure.db.repositories.payment_repository import (
    PaymentRepository,
)
from app.infrastructure.db.repositories.webhook_event_repository import (
    WebhookEventRepository,
)


__all__ = [
    # Base
    "BaseRepository",
    "to_uuid",
    # Repositories
    "UserProfileRepository",
    "SubscriptionRepository",
    "UsageRepository",
    "GeneratedImageRepository",
    "WebhookEventRepository",
    "PaymentRepository",
]
