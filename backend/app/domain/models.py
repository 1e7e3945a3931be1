"""
Domain Models for HaircutFun

Pure Python/Pydantic models with no framework dependencies.
These models define the core business entities and validation rules.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuthenticatedUser(BaseModel):
    """Identity resolved from a verified Supabase access token."""
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class UserProfile(BaseModel):
    """Complete user profile entity from database."""
    id: Optional[str] = None
    user_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    has_pro_access: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserProfileUpdate(BaseModel):
    """Schema for updating an existing user profile. All fields optional."""
    full_name: Optional[str] = Field(None, max_length=200)
    avatar_url: Optional[str] = Field(None, max_length=2048)

    @field_validator("full_name")
    @classmethod
    def strip_full_name(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class UsageRecord(BaseModel):
    """One row of the monthly usage ledger."""
    id: Optional[str] = None
    user_id: str
    month_year: str
    generations_used: int = 0
    plan_limit: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def remaining(self) -> int:
        return max(self.plan_limit - self.generations_used, 0)


class UsageSnapshot(BaseModel):
    """Usage summary returned by the API."""
    month_year: str
    generations_used: int
    plan_limit: int
    remaining: int
    has_pro_access: bool = False


class GeneratedImage(BaseModel):
    """A saved try-on result."""
    id: Optional[str] = None
    user_id: str
    image_url: str
    original_image_url: Optional[str] = None
    haircut_style: str
    gender: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Payment(BaseModel):
    """One-time unlock payment, keyed by its Stripe payment intent."""
    id: Optional[str] = None
    user_id: str
    stripe_payment_intent_id: str
    amount: int = 0
    currency: str = "usd"
    status: PaymentStatus
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_intent(cls, user_id: str, intent: Dict[str, Any], status: PaymentStatus) -> "Payment":
        """Build the ledger entry for a Stripe payment intent."""
        return cls(
            user_id=user_id,
            stripe_payment_intent_id=intent["id"],
            amount=intent.get("amount") or 0,
            currency=intent.get("currency") or "usd",
            status=status,
        )


# =============================================================================
# Request DTOs
# =============================================================================

class GenerateHaircutRequest(BaseModel):
    """Body of a generation request."""
    user_photo: str = Field(..., alias="userPhoto", min_length=1)
    haircut_style: str = Field(..., alias="haircutStyle", min_length=1, max_length=200)
    haircut_description: Optional[str] = Field(None, alias="haircutDescription", max_length=2000)
    is_first_try: bool = Field(False, alias="isFirstTry")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("user_photo", "haircut_style")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Field cannot be empty or whitespace only")
        return v.strip()


class SaveImageRequest(BaseModel):
    """Body of a save-generated-image request."""
    image_url: str = Field(..., alias="imageUrl", min_length=1)
    original_image_url: Optional[str] = Field(None, alias="originalImageUrl")
    haircut_style: str = Field(..., alias="haircutStyle", min_length=1, max_length=200)
    gender: Optional[str] = Field(None, max_length=50)

    model_config = ConfigDict(populate_by_name=True)


class ConfirmPaymentRequest(BaseModel):
    """Body of a legacy one-time unlock confirmation."""
    payment_intent_id: str = Field(..., alias="paymentIntentId", min_length=1)

    model_config = ConfigDict(populate_by_name=True)
