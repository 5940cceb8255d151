"""Investor slot allocation and revenue-share distribution."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from teasr_stage.db.types import format_money, to_money
from teasr_stage.models.investor import InvestorPosition
from teasr_stage.models.post import Post
from teasr_stage.repositories.investor_repo import InvestorRepository
from teasr_stage.repositories.payment_repo import PaymentRepository
from teasr_stage.repositories.post_repo import PostRepository
from teasr_stage.services.errors import SlotsFullError
from teasr_stage.services.settlement import ZERO, Payee, compute_investor_share

logger = logging.getLogger(__name__)

OUTCOME_BUYOUT = "buyout"
OUTCOME_DISTRIBUTION = "distribution"
OUTCOME_UNLOCK = "unlock"

# The dashboard subtracts a flat 10 unlocks regardless of the post's pool size.
DASHBOARD_UNLOCK_OFFSET = 10


@dataclass(frozen=True)
class InvestorEarnings:
    investor_id: str
    wallet: str
    position: int
    total_earnings: Decimal


@dataclass(frozen=True)
class InvestorOutcome:
    """What the allocator did for one content payment.

    ``investors`` is the pool as it stands after the payment, ordered by position.
    """

    kind: str
    investor_count: int
    max_slots: int
    position: int | None = None
    per_investor_share: Decimal = ZERO
    investors: tuple[InvestorEarnings, ...] = field(default_factory=tuple)

    @property
    def payees(self) -> tuple[Payee, ...]:
        """Investors credited by this payment, in settlement form."""
        if self.kind != OUTCOME_DISTRIBUTION:
            return ()
        return tuple(
            Payee(investor_id=inv.investor_id, wallet=inv.wallet, position=inv.position)
            for inv in self.investors
        )


@dataclass(frozen=True)
class DashboardInvestment:
    post_id: str
    post_title: str
    position: int
    investment_amount: Decimal
    earnings_generated: Decimal
    total_unlocks: int


@dataclass(frozen=True)
class InvestorDashboard:
    total_earnings: Decimal
    investments: list[DashboardInvestment]


class InvestorAllocator:
    """Manages the bounded investor pool of each post.

    Callers must serialize :meth:`allocate` per post and run it inside the same
    transaction as the payment it belongs to; the pool rows are selected
    ``FOR UPDATE`` and unique constraints on (post, position) and
    (post, investor) back up the serialization across processes.
    """

    def __init__(self, *, platform_fee: Decimal) -> None:
        self.platform_fee = to_money(platform_fee)

    async def quote(self, session: AsyncSession, post: Post, *, is_buyout: bool) -> Decimal:
        """Return the price a payer is asked for.

        The buyout price only applies when a buyout is requested, slots remain and
        the post defines one.
        """
        if is_buyout and post.buyout_price is not None:
            count = await InvestorRepository(session).count(post.id)
            if count < post.max_investor_slots:
                return post.buyout_price
        return post.base_price

    async def allocate(
        self,
        session: AsyncSession,
        post: Post,
        *,
        payer_id: str,
        amount: Decimal,
        is_buyout: bool,
    ) -> InvestorOutcome:
        """Claim a slot or distribute revenue share for a content payment.

        Raises:
            SlotsFullError: If a buyout is requested and every slot is taken.
        """
        repo = InvestorRepository(session)
        pool = await repo.list_for_post(post.id, for_update=True)
        count = len(pool)

        if is_buyout:
            if count >= post.max_investor_slots:
                raise SlotsFullError(post.max_investor_slots)
            position = count + 1
            investment = post.buyout_price if post.buyout_price is not None else post.base_price
            await repo.add(
                InvestorPosition(
                    post_id=post.id,
                    investor_id=payer_id,
                    position=position,
                    investment_amount=investment,
                    total_earnings=ZERO,
                )
            )
            logger.info(
                "Assigned investor slot %d/%d on post %s to %s",
                position,
                post.max_investor_slots,
                post.id,
                payer_id,
            )
            return await self._outcome(
                session, post, OUTCOME_BUYOUT, position=position
            )

        percent = post.investor_revenue_share_percent
        if count >= post.max_investor_slots and percent > ZERO:
            share = compute_investor_share(amount, self.platform_fee, percent, count)
            if share > ZERO:
                for investor in pool:
                    investor.total_earnings = investor.total_earnings + share
                await session.flush()
                logger.info(
                    "Distributed %s to each of %d investors on post %s (%s%% of %s)",
                    format_money(share),
                    count,
                    post.id,
                    percent,
                    format_money(amount),
                )
                return await self._outcome(
                    session, post, OUTCOME_DISTRIBUTION, per_investor_share=share
                )

        return await self._outcome(session, post, OUTCOME_UNLOCK)

    async def _outcome(
        self,
        session: AsyncSession,
        post: Post,
        kind: str,
        *,
        position: int | None = None,
        per_investor_share: Decimal = ZERO,
    ) -> InvestorOutcome:
        rows = await InvestorRepository(session).list_with_wallets(post.id)
        investors = tuple(
            InvestorEarnings(
                investor_id=investor.investor_id,
                wallet=wallet,
                position=investor.position,
                total_earnings=investor.total_earnings,
            )
            for investor, wallet in rows
        )
        return InvestorOutcome(
            kind=kind,
            investor_count=len(investors),
            max_slots=post.max_investor_slots,
            position=position,
            per_investor_share=per_investor_share,
            investors=investors,
        )

    async def investor_count(self, session: AsyncSession, post_id: str) -> int:
        return await InvestorRepository(session).count(post_id)

    async def investor_position(
        self, session: AsyncSession, user_id: str, post_id: str
    ) -> int | None:
        """Return the user's slot number on a post, or None if they hold none."""
        return await InvestorRepository(session).get_position(user_id, post_id)

    async def investor_dashboard(self, session: AsyncSession, user_id: str) -> InvestorDashboard:
        """Summarize a user's investments, highest earners first."""
        positions = await InvestorRepository(session).list_for_investor(user_id)
        posts = PostRepository(session)
        payments = PaymentRepository(session)

        investments: list[DashboardInvestment] = []
        for investor in positions:
            post = await posts.get_by_id(investor.post_id)
            unlocks = await payments.count_content_unlocks(investor.post_id)
            investments.append(
                DashboardInvestment(
                    post_id=investor.post_id,
                    post_title=post.title if post is not None else "Deleted Post",
                    position=investor.position,
                    investment_amount=investor.investment_amount,
                    earnings_generated=investor.total_earnings,
                    total_unlocks=max(0, unlocks - DASHBOARD_UNLOCK_OFFSET),
                )
            )
        investments.sort(key=lambda item: item.earnings_generated, reverse=True)
        total = sum((item.earnings_generated for item in investments), ZERO)
        return InvestorDashboard(total_earnings=total, investments=investments)
