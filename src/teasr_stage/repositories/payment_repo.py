"""Data access helpers for the payment ledger."""
from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from teasr_stage.models.payment import (
    PAYMENT_TYPE_CONTENT,
    PaymentRecord,
    PlatformFeeRecord,
    SettlementRecord,
)
from teasr_stage.models.post import Post

__all__ = ["PaymentRepository"]


class PaymentRepository:
    """Reads and append-only writes for payments, fees and settlements."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find(self, payer_id: str, post_id: str, payment_type: str) -> PaymentRecord | None:
        """Return the payment for an exact (payer, post, type) tuple, if any."""
        result = await self.session.execute(
            select(PaymentRecord).where(
                PaymentRecord.payer_id == payer_id,
                PaymentRecord.post_id == post_id,
                PaymentRecord.payment_type == payment_type,
            )
        )
        return result.scalars().first()

    async def add(self, record: PaymentRecord) -> PaymentRecord:
        """Insert a payment; the unique constraint fires on flush."""
        self.session.add(record)
        await self.session.flush()
        return record

    async def add_fee(self, fee: PlatformFeeRecord) -> PlatformFeeRecord:
        self.session.add(fee)
        await self.session.flush()
        return fee

    async def add_settlement(self, settlement: SettlementRecord) -> SettlementRecord:
        self.session.add(settlement)
        await self.session.flush()
        return settlement

    async def count_content_unlocks(self, post_id: str) -> int:
        """Return how many content payments exist for a post."""
        result = await self.session.execute(
            select(func.count())
            .select_from(PaymentRecord)
            .where(
                PaymentRecord.post_id == post_id,
                PaymentRecord.payment_type == PAYMENT_TYPE_CONTENT,
            )
        )
        return int(result.scalar_one())

    async def list_for_post(self, post_id: str) -> Sequence[PaymentRecord]:
        result = await self.session.execute(
            select(PaymentRecord)
            .where(PaymentRecord.post_id == post_id)
            .order_by(PaymentRecord.paid_at)
        )
        return list(result.scalars())

    async def list_for_creator(self, creator_id: str) -> Sequence[PaymentRecord]:
        """Return every payment made for content owned by ``creator_id``."""
        result = await self.session.execute(
            select(PaymentRecord)
            .join(Post, Post.id == PaymentRecord.post_id)
            .where(Post.creator_id == creator_id)
            .order_by(PaymentRecord.paid_at)
        )
        return list(result.scalars())

    async def get_fee(self, payment_id: str) -> PlatformFeeRecord | None:
        result = await self.session.execute(
            select(PlatformFeeRecord).where(PlatformFeeRecord.payment_id == payment_id)
        )
        return result.scalars().first()

    async def get_settlement(self, payment_id: str) -> SettlementRecord | None:
        result = await self.session.execute(
            select(SettlementRecord).where(SettlementRecord.payment_id == payment_id)
        )
        return result.scalars().first()
