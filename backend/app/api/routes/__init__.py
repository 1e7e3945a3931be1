# API Routes Module
from app.api.routes import (
    auth,
    checkout,
    generate,
    payment,
    subscriptions,
    user,
    user_images,
    webhooks,
)

__all__ = [
    "auth",
    "checkout",
    "generate",
    "payment",
    "subscriptions",
    "user",
    "user_images",
    "webhooks",
]
