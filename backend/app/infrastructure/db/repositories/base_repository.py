"""
Base Repository for HaircutFun

Generic async repository holding the request session and the CRUD
helpers shared by the concrete repositories.
"""

from typing import Generic, Optional, Type, TypeVar, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel


# Type variable for generic repository
ModelType = TypeVar("ModelType", bound=SQLModel)


def to_uuid(value: Union[str, UUID]) -> UUID:
    """Coerce a string ID into a UUID for PostgreSQL compatibility."""
    return value if isinstance(value, UUID) else UUID(str(value))


class BaseRepository(Generic[ModelType]):
    """
    Generic async repository.

    Repositories only flush; the request-scoped session provider owns
    commit and rollback.

    Args:
        model: The SQLModel class to operate on
        session: Async database session
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self._model = model
        self._session = session

    @property
    def session(self) -> AsyncSession:
        """Get the current session."""
        return self._session

    async def get_by_id(self, id: Union[str, UUID]) -> Optional[ModelType]:
        """Get a single record by its primary key."""
        return await self._session.get(self._model, to_uuid(id))

    async def _add(self, db_obj: ModelType) -> ModelType:
        self._session.add(db_obj)
        await self._session.flush()
        await self._session.refresh(db_obj)
        return db_obj
