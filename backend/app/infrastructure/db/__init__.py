"""
Database Infrastructure Package for HaircutFun

Exports database utilities and repository providers.
"""

from app.infrastructure.db.database import (
    DatabaseManager,
    after_commit,
    build_database_url,
    get_db_manager,
    get_session,
    init_db,
    close_db,
)

from app.infrastructure.db.dependencies import (
    SessionDep,
    get_user_profile_repository,
    get_subscription_repository,
    get_usage_repository,
    get_generated_image_repository,
    get_webhook_event_repository,
    get_payment_repository,
    UserProfileRepoDep,
    SubscriptionRepoDep,
    UsageRepoDep,
    GeneratedImageRepoDep,
    WebhookEventRepoDep,
    PaymentRepoDep,
)


__all__ = [
    # Database management
    "DatabaseManager",
    "after_commit",
    "build_database_url",
    "get_db_manager",
    "get_session",
    "init_db",
    "close_db",
    # Dependencies
    "SessionDep",
    "get_user_profile_repository",
    "get_subscription_repository",
    "get_usage_repository",
    "get_generated_image_repository",
    "get_webhook_event_repository",
    "get_payment_repository",
    "UserProfileRepoDep",
    "SubscriptionRepoDep",
    "UsageRepoDep",
    "GeneratedImageRepoDep",
    "WebhookEventRepoDep",
    "PaymentRepoDep",
]
