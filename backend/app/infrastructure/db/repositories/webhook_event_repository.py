"""
Webhook Event Repository

Idempotency ledger for Stripe webhook deliveries.
"""

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.models.base import utcnow
from app.infrastructure.db.models.processed_webhook_event import ProcessedWebhookEventModel


class WebhookEventRepository:

    def __init__(self, session: AsyncSession):
        self._session = session

    async def is_processed(self, event_id: str) -> bool:
        stmt = select(ProcessedWebhookEventModel.event_id).where(
            ProcessedWebhookEventModel.event_id == event_id
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def mark_processed(self, event_id: str, event_type: str) -> None:
        stmt = pg_insert(ProcessedWebhookEventModel).values(
            event_id=event_id,
            event_type=event_type,
            processed_at=utcnow(),
        ).on_conflict_do_nothing(index_elements=["event_id"])
        await self._session.execute(stmt)
