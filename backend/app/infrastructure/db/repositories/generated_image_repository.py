"""
GeneratedImage Repository

Gallery persistence: list, save, delete and truncate per user.
"""

import logging
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import GeneratedImage
from app.infrastructure.db.models.base import utcnow
from app.infrastructure.db.models.generated_image import GeneratedImageModel
from app.infrastructure.db.repositories.base_repository import BaseRepository, to_uuid


logger = logging.getLogger(__name__)


class GeneratedImageRepository(BaseRepository[GeneratedImageModel]):

    def __init__(self, session: AsyncSession):
        super().__init__(GeneratedImageModel, session)

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[GeneratedImage]:
        """Newest first."""
        stmt = (
            select(GeneratedImageModel)
            .where(GeneratedImageModel.user_id == to_uuid(user_id))
            .order_by(GeneratedImageModel.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    async def create(self, image: GeneratedImage) -> GeneratedImage:
        model = await self._add(GeneratedImageModel(
            user_id=to_uuid(image.user_id),
            image_url=image.image_url,
            original_image_url=image.original_image_url,
            haircut_style=image.haircut_style,
            gender=image.gender,
            created_at=image.created_at or utcnow(),
        ))
        return self._to_domain(model)

    async def delete(self, user_id: str, image_id: str) -> bool:
        """
        Delete an image owned by the user.

        Returns:
            True if deleted, False if absent or owned by someone else
        """
        stmt = (
            delete(GeneratedImageModel)
            .where(
                GeneratedImageModel.id == to_uuid(image_id),
                GeneratedImageModel.user_id == to_uuid(user_id),
            )
            .returning(GeneratedImageModel.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def prune(self, user_id: str, keep: int) -> int:
        """
        Keep only the ``keep`` most recent images of a user.

        Returns:
            Number of rows removed
        """
        uid = to_uuid(user_id)
        newest = (
            select(GeneratedImageModel.id)
            .where(GeneratedImageModel.user_id == uid)
            .order_by(GeneratedImageModel.created_at.desc())
            .limit(keep)
        )
        stmt = (
            delete(GeneratedImageModel)
            .where(
                GeneratedImageModel.user_id == uid,
                GeneratedImageModel.id.not_in(newest),
            )
            .returning(GeneratedImageModel.id)
        )
        result = await self.session.execute(stmt)
        removed = len(result.scalars().all())
        if removed:
            logger.info(f"Pruned {removed} old images for user {user_id}")
        return removed

    def _to_domain(self, model: GeneratedImageModel) -> GeneratedImage:
        return GeneratedImage(
            id=str(model.id),
            user_id=str(model.user_id),
            image_url=model.image_url,
            original_image_url=model.original_image_url,
            haircut_style=model.haircut_style,
            gender=model.gender,
            created_at=model.created_at,
        )
