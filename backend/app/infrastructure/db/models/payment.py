"""
Payment Database Model

Ledger of one-time unlock payments. The payment intent ID is unique, so
a redelivered webhook or a repeated confirm never records twice.
"""

from uuid import UUID

from sqlmodel import Field

from app.infrastructure.db.models.base import TimestampMixin, UUIDMixin


class PaymentModel(UUIDMixin, TimestampMixin, table=True):
    __tablename__ = "payments"

    user_id: UUID = Field(..., index=True, nullable=False)
    stripe_payment_intent_id: str = Field(..., max_length=255, unique=True, nullable=False)
    amount: int = Field(default=0, nullable=False)
    currency: str = Field(default="usd", max_length=10)
    status: str = Field(..., max_length=20)
