"""Data access helpers for investor positions."""
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from teasr_stage.models.investor import InvestorPosition
from teasr_stage.models.user import User

__all__ = ["InvestorRepository"]


class InvestorRepository:
    """Access to a post's investor pool."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def count(self, post_id: str) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(InvestorPosition)
            .where(InvestorPosition.post_id == post_id)
        )
        return int(result.scalar_one())

    async def list_for_post(self, post_id: str, *, for_update: bool = False) -> list[InvestorPosition]:
        """Return the pool ordered by position.

        With ``for_update`` the rows are locked on databases that support it, so
        a revenue distribution cannot interleave with another on the same post.
        """
        stmt = (
            select(InvestorPosition)
            .where(InvestorPosition.post_id == post_id)
            .order_by(InvestorPosition.position)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def list_with_wallets(self, post_id: str) -> list[tuple[InvestorPosition, str]]:
        """Return each position with the investor's wallet address."""
        result = await self.session.execute(
            select(InvestorPosition, User.wallet_address)
            .join(User, User.id == InvestorPosition.investor_id)
            .where(InvestorPosition.post_id == post_id)
            .order_by(InvestorPosition.position)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def list_for_investor(self, investor_id: str) -> list[InvestorPosition]:
        result = await self.session.execute(
            select(InvestorPosition).where(InvestorPosition.investor_id == investor_id)
        )
        return list(result.scalars())

    async def get_position(self, investor_id: str, post_id: str) -> int | None:
        result = await self.session.execute(
            select(InvestorPosition.position).where(
                InvestorPosition.investor_id == investor_id,
                InvestorPosition.post_id == post_id,
            )
        )
        return result.scalar_one_or_none()

    async def add(self, position: InvestorPosition) -> InvestorPosition:
        """Insert a position; unique constraints fire on flush."""
        self.session.add(position)
        await self.session.flush()
        return position
