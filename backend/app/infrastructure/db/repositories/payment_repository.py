"""
Payment Repository

Writes to the one-time unlock payment ledger as upserts on the unique
payment intent ID.
"""

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import Payment, PaymentStatus
from app.infrastructure.db.models.base import utcnow
from app.infrastructure.db.models.payment import PaymentModel
from app.infrastructure.db.repositories.base_repository import BaseRepository, to_uuid


class PaymentRepository(BaseRepository[PaymentModel]):

    def __init__(self, session: AsyncSession):
        super().__init__(PaymentModel, session)

    async def record(self, payment: Payment) -> None:
        """
        Insert the payment, or update the status of a known intent.

        An intent that failed and then succeeded on retry ends up as
        ``succeeded``; a succeeded row is never overwritten.
        """
        now = utcnow()
        stmt = pg_insert(PaymentModel).values(
            user_id=to_uuid(payment.user_id),
            stripe_payment_intent_id=payment.stripe_payment_intent_id,
            amount=payment.amount,
            currency=payment.currency,
            status=payment.status.value,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["stripe_payment_intent_id"],
            set_={"status": stmt.excluded.status, "updated_at": now},
            where=PaymentModel.__table__.c.status != PaymentStatus.SUCCEEDED.value,
        )
        await self.session.execute(stmt)
