"""
Usage Repository

Data access for the monthly usage ledger. Writes are single-statement
PostgreSQL upserts on the unique (user_id, month_year) key.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import UsageRecord
from app.infrastructure.db.models.base import utcnow
from app.infrastructure.db.models.usage_tracking import UsageTrackingModel
from app.infrastructure.db.repositories.base_repository import BaseRepository, to_uuid


_CONFLICT_KEY = ["user_id", "month_year"]


class UsageRepository(BaseRepository[UsageTrackingModel]):

    def __init__(self, session: AsyncSession):
        super().__init__(UsageTrackingModel, session)

    async def get(self, user_id: str, month_year: str) -> Optional[UsageRecord]:
        stmt = select(UsageTrackingModel).where(
            UsageTrackingModel.user_id == to_uuid(user_id),
            UsageTrackingModel.month_year == month_year,
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list_for_user(self, user_id: str, limit: int = 12) -> List[UsageRecord]:
        """Most recent months first."""
        stmt = (
            select(UsageTrackingModel)
            .where(UsageTrackingModel.user_id == to_uuid(user_id))
            .order_by(UsageTrackingModel.month_year.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    async def increment(self, user_id: str, month_year: str, plan_limit: int) -> int:
        """
        Atomically add one generation, creating the month row if needed.

        ``plan_limit`` is only used when the row is created.

        Returns:
            The new ``generations_used`` value
        """
        now = utcnow()
        table = UsageTrackingModel.__table__
        stmt = pg_insert(UsageTrackingModel).values(
            user_id=to_uuid(user_id),
            month_year=month_year,
            generations_used=1,
            plan_limit=plan_limit,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=_CONFLICT_KEY,
            set_={
                "generations_used": table.c.generations_used + 1,
                "updated_at": now,
            },
        ).returning(table.c.generations_used)

        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def set_limit(
        self,
        user_id: str,
        month_year: str,
        plan_limit: int,
        reset_usage: bool,
    ) -> UsageRecord:
        """Upsert the month row with a new limit, optionally zeroing usage."""
        now = utcnow()
        table = UsageTrackingModel.__table__
        stmt = pg_insert(UsageTrackingModel).values(
            user_id=to_uuid(user_id),
            month_year=month_year,
            generations_used=0,
            plan_limit=plan_limit,
            created_at=now,
            updated_at=now,
        )
        set_ = {"plan_limit": stmt.excluded.plan_limit, "updated_at": now}
        if reset_usage:
            set_["generations_used"] = 0

        stmt = stmt.on_conflict_do_update(
            index_elements=_CONFLICT_KEY,
            set_=set_,
        ).returning(*table.c)

        result = await self.session.execute(stmt)
        row = result.mappings().one()
        return UsageRecord(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            month_year=row["month_year"],
            generations_used=row["generations_used"],
            plan_limit=row["plan_limit"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _to_domain(self, model: UsageTrackingModel) -> UsageRecord:
        return UsageRecord(
            id=str(model.id),
            user_id=str(model.user_id),
            month_year=model.month_year,
            generations_used=model.generations_used,
            plan_limit=model.plan_limit,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
