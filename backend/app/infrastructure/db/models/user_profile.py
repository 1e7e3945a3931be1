"""
UserProfile SQLModel for HaircutFun

One row per authenticated user, keyed by the Supabase auth user ID.
"""

from typing import Optional
from uuid import UUID

from sqlmodel import Field

from app.infrastructure.db.models.base import TimestampMixin, UUIDMixin


class UserProfileModel(UUIDMixin, TimestampMixin, table=True):
    """
    UserProfile database table model.

    ``has_pro_access`` is the unlimited-generation override granted by
    the one-time unlock payment.
    """

    __tablename__ = "user_profiles"

    user_id: UUID = Field(
        ...,
        unique=True,
        index=True,
        description="Reference to authenticated user"
    )
    email: Optional[str] = Field(default=None, max_length=320)
    full_name: Optional[str] = Field(default=None, max_length=200)
    avatar_url: Optional[str] = Field(default=None)
    has_pro_access: bool = Field(default=False, nullable=False)
