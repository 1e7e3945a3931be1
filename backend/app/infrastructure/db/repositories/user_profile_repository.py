"""
UserProfile Repository for HaircutFun

Specialized repository for user profile operations.
"""

from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import UserProfile, UserProfileUpdate
from app.infrastructure.db.models.base import utcnow
from app.infrastructure.db.models.user_profile import UserProfileModel
from app.infrastructure.db.repositories.base_repository import BaseRepository, to_uuid


class UserProfileRepository(BaseRepository[UserProfileModel]):
    """
    Repository for UserProfile CRUD and specialized queries.

    - get_by_user_id: Find profile by authenticated user
    - get_or_create: Lazily create the profile from identity claims
    - set_pro_access: Grant or revoke the unlimited override
    """

    def __init__(self, session: AsyncSession):
        super().__init__(UserProfileModel, session)

    async def _get_model(self, user_id: str) -> Optional[UserProfileModel]:
        stmt = select(UserProfileModel).where(UserProfileModel.user_id == to_uuid(user_id))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_user_id(self, user_id: str) -> Optional[UserProfile]:
        """
        Get a profile by the authenticated user's ID.

        Args:
            user_id: The auth user's UUID (not profile ID)

        Returns:
            UserProfile or None if not found
        """
        model = await self._get_model(user_id)
        return self._to_domain(model) if model else None

    async def get_or_create(
        self,
        user_id: str,
        email: Optional[str] = None,
        full_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Tuple[UserProfile, bool]:
        """
        Get existing profile or create a new one.

        Returns:
            Tuple of (UserProfile, was_created)
        """
        existing = await self._get_model(user_id)
        if existing:
            return self._to_domain(existing), False

        now = utcnow()
        model = await self._add(UserProfileModel(
            user_id=to_uuid(user_id),
            email=email,
            full_name=full_name,
            avatar_url=avatar_url,
            created_at=now,
            updated_at=now,
        ))
        return self._to_domain(model), True

    async def update(self, user_id: str, data: UserProfileUpdate) -> Optional[UserProfile]:
        """
        Update a profile by user ID.

        Returns:
            Updated UserProfile or None if not found
        """
        model = await self._get_model(user_id)
        if not model:
            return None

        update_data = data.model_dump(exclude_unset=True)
        update_data["updated_at"] = utcnow()
        for field, value in update_data.items():
            setattr(model, field, value)

        model = await self._add(model)
        return self._to_domain(model)

    async def set_pro_access(self, user_id: str, has_pro_access: bool = True) -> UserProfile:
        """Set the unlimited override, creating a bare profile if none exists."""
        model = await self._get_model(user_id)
        if model is None:
            model = UserProfileModel(user_id=to_uuid(user_id))

        model.has_pro_access = has_pro_access
        model.updated_at = utcnow()
        model = await self._add(model)
        return self._to_domain(model)

    def _to_domain(self, model: UserProfileModel) -> UserProfile:
        return UserProfile(
            id=str(model.id),
            user_id=str(model.user_id),
            email=model.email,
            full_name=model.full_name,
            avatar_url=model.avatar_url,
            has_pro_access=bool(model.has_pro_access),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
