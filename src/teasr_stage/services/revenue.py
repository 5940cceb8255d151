"""USD revenue reporting over the payment ledger."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teasr_stage.models.payment import PaymentRecord
from teasr_stage.repositories.payment_repo import PaymentRepository
from teasr_stage.repositories.post_repo import PostRepository
from teasr_stage.services.errors import PostNotFoundError

logger = logging.getLogger(__name__)

USD_QUANTUM = Decimal("0.01")


class PriceOracle(ABC):
    """Source of USD prices per currency code."""

    @abstractmethod
    def usd_price(self, currency: str) -> Decimal | None:
        """Return the USD price of one unit of ``currency``, or None if unknown."""


class StaticPriceOracle(PriceOracle):
    """Price table fixed at construction time."""

    def __init__(self, prices: Mapping[str, Decimal]) -> None:
        self._prices = {code.upper(): Decimal(price) for code, price in prices.items()}

    def usd_price(self, currency: str) -> Decimal | None:
        return self._prices.get(currency.upper())


class RevenueReporter:
    """Sums payments in USD for posts and creators."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession], oracle: PriceOracle
    ) -> None:
        self._session_factory = session_factory
        self.oracle = oracle

    def total_usd(self, payments: Iterable[PaymentRecord]) -> str:
        """Return the USD value of ``payments`` as a two-decimal string.

        Payments in a currency the oracle cannot price are left out.
        """
        total = Decimal("0")
        for payment in payments:
            price = self.oracle.usd_price(payment.currency)
            if price is None:
                logger.warning(
                    "No USD price for %s, skipping payment %s", payment.currency, payment.id
                )
                continue
            total += payment.amount * price
        return str(total.quantize(USD_QUANTUM, rounding=ROUND_HALF_UP))

    async def post_revenue_usd(self, post_id: str) -> str:
        async with self._session_factory() as session:
            if await PostRepository(session).get_by_id(post_id) is None:
                raise PostNotFoundError(post_id)
            payments = await PaymentRepository(session).list_for_post(post_id)
        return self.total_usd(payments)

    async def creator_revenue_usd(self, user_id: str) -> str:
        async with self._session_factory() as session:
            payments = await PaymentRepository(session).list_for_creator(user_id)
        return self.total_usd(payments)
