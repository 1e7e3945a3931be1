"""
Dependency Injection Providers for HaircutFun

FastAPI dependencies for database sessions and repositories.
All repositories of a request share the request's session.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.database import get_session
from app.infrastructure.db.repositories import (
    GeneratedImageRepository,
    PaymentRepository,
    SubscriptionRepository,
    UsageRepository,
    UserProfileRepository,
    WebhookEventRepository,
)


# Type alias for session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]


def get_user_profile_repository(session: SessionDep) -> UserProfileRepository:
    return UserProfileRepository(session)


def get_subscription_repository(session: SessionDep) -> SubscriptionRepository:
    return SubscriptionRepository(session)


def get_usage_repository(session: SessionDep) -> UsageRepository:
    return UsageRepository(session)


def get_generated_image_repository(session: SessionDep) -> GeneratedImageRepository:
    return GeneratedImageRepository(session)


def get_payment_repository(session: SessionDep) -> PaymentRepository:
    return PaymentRepository(session)


def get_webhook_event_repository(session: SessionDep) -> WebhookEventRepository:
    return WebhookEventRepository(session)


# Type aliases for repository dependencies
UserProfileRepoDep = Annotated[UserProfileRepository, Depends(get_user_profile_repository)]
SubscriptionRepoDep = Annotated[SubscriptionRepository, Depends(get_subscription_repository)]
UsageRepoDep = Annotated[UsageRepository, Depends(get_usage_repository)]
GeneratedImageRepoDep = Annotated[GeneratedImageRepository, Depends(get_generated_image_repository)]
WebhookEventRepoDep = Annotated[WebhookEventRepository, Depends(get_webhook_event_repository)]
PaymentRepoDep = Annotated[PaymentRepository, Depends(get_payment_repository)]
