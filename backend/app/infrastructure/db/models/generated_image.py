"""
GeneratedImage Database Model

Saved try-on results shown in the user's gallery.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime
from sqlmodel import Field

from app.infrastructure.db.models.base import UUIDMixin, utcnow


class GeneratedImageModel(UUIDMixin, table=True):
    __tablename__ = "generated_images"

    user_id: UUID = Field(..., index=True, nullable=False)
    image_url: str = Field(..., nullable=False)
    original_image_url: Optional[str] = Field(default=None)
    haircut_style: str = Field(..., max_length=200)
    gender: Optional[str] = Field(default=None, max_length=50)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),
    )
