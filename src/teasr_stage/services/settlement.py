"""Simulated settlement of payments.

No funds move. The simulator computes how a payment would be split between the
platform, the creator and the post's investors, logs each leg, and records the
breakdown for audit and display.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from teasr_stage.db.types import MONEY_QUANTUM, format_money, to_money
from teasr_stage.models.payment import SettlementRecord
from teasr_stage.repositories.payment_repo import PaymentRepository
from teasr_stage.services.networks import settlement_route

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def compute_investor_share(
    amount: Decimal,
    platform_fee: Decimal,
    revenue_share_percent: Decimal,
    investor_count: int,
) -> Decimal:
    """Return the equal per-investor share of a payment.

    ``(amount - fee) * percent / 100 / count``, rounded down to six places so the
    sum of the legs never exceeds the pool. Amounts that do not cover the fee
    yield zero.
    """
    if investor_count <= 0 or revenue_share_percent <= ZERO:
        return ZERO
    revenue_after_fee = to_money(amount) - to_money(platform_fee)
    if revenue_after_fee <= ZERO:
        return ZERO
    pool = revenue_after_fee * to_money(revenue_share_percent) / HUNDRED
    return (pool / investor_count).quantize(MONEY_QUANTUM, rounding=ROUND_DOWN)


@dataclass(frozen=True)
class Payee:
    """Investor eligible for a leg of the split."""

    investor_id: str
    wallet: str
    position: int


@dataclass(frozen=True)
class InvestorLeg:
    investor_id: str
    wallet: str
    position: int
    amount: Decimal


@dataclass(frozen=True)
class SettlementResult:
    """Intended distribution of a single payment."""

    route: str
    currency: str
    total: Decimal
    platform: Decimal
    creator: Decimal
    investors: tuple[InvestorLeg, ...] = field(default_factory=tuple)

    @property
    def investor_total(self) -> Decimal:
        return sum((leg.amount for leg in self.investors), ZERO)

    def as_dict(self) -> dict[str, Any]:
        """Return the breakdown with amounts rendered as fixed-point strings."""
        return {
            "route": self.route,
            "currency": self.currency,
            "total": format_money(self.total),
            "platform": format_money(self.platform),
            "creator": format_money(self.creator),
            "investors": [
                {
                    "investorId": leg.investor_id,
                    "wallet": leg.wallet,
                    "position": leg.position,
                    "amount": format_money(leg.amount),
                }
                for leg in self.investors
            ],
        }


class SettlementSimulator:
    """Computes and records the platform/creator/investor split of a payment."""

    def __init__(
        self,
        *,
        platform_fee: Decimal,
        platform_wallet: str,
        solana_platform_wallet: str,
    ) -> None:
        self.platform_fee = to_money(platform_fee)
        self.platform_wallet = platform_wallet
        self.solana_platform_wallet = solana_platform_wallet

    def platform_wallet_for(self, route: str) -> str:
        """Return the platform wallet used on a settlement route."""
        return self.solana_platform_wallet if route == "solana" else self.platform_wallet

    def compute(
        self,
        total_amount: Decimal,
        currency: str,
        *,
        revenue_share_percent: Decimal | None = None,
        investors: Sequence[Payee] = (),
    ) -> SettlementResult:
        """Return the split without touching storage.

        The creator receives whatever remains after the platform fee and the
        investor legs, so the parts always add up to ``total_amount``.
        """
        total = to_money(total_amount)
        percent = to_money(revenue_share_percent) if revenue_share_percent is not None else ZERO
        share = compute_investor_share(total, self.platform_fee, percent, len(investors))

        legs: tuple[InvestorLeg, ...] = ()
        if share > ZERO:
            legs = tuple(
                InvestorLeg(
                    investor_id=payee.investor_id,
                    wallet=payee.wallet,
                    position=payee.position,
                    amount=share,
                )
                for payee in investors
            )
        creator = total - self.platform_fee - sum((leg.amount for leg in legs), ZERO)
        return SettlementResult(
            route=settlement_route(currency),
            currency=currency.upper(),
            total=total,
            platform=self.platform_fee,
            creator=creator,
            investors=legs,
        )

    async def simulate(
        self,
        session: AsyncSession,
        *,
        payment_id: str,
        total_amount: Decimal,
        currency: str,
        network: str,
        creator_wallet: str,
        transaction_proof: str,
        revenue_share_percent: Decimal | None = None,
        investors: Sequence[Payee] = (),
    ) -> SettlementResult:
        """Compute the split, log every leg and persist a settlement row.

        Runs inside the caller's unit of work; nothing is committed here.
        """
        result = self.compute(
            total_amount,
            currency,
            revenue_share_percent=revenue_share_percent,
            investors=investors,
        )
        if result.creator < ZERO:
            logger.warning(
                "Payment %s of %s %s does not cover the platform fee",
                payment_id,
                format_money(result.total),
                result.currency,
            )

        logger.info(
            "[%s] settlement for payment %s on %s: total %s %s (proof %s)",
            result.route,
            payment_id,
            network,
            format_money(result.total),
            result.currency,
            transaction_proof,
        )
        logger.info(
            "[%s]   platform %s -> %s",
            result.route,
            format_money(result.platform),
            self.platform_wallet_for(result.route),
        )
        for leg in result.investors:
            logger.info(
                "[%s]   investor #%d %s -> %s",
                result.route,
                leg.position,
                format_money(leg.amount),
                leg.wallet,
            )
        logger.info(
            "[%s]   creator %s -> %s", result.route, format_money(result.creator), creator_wallet
        )

        await PaymentRepository(session).add_settlement(
            SettlementRecord(
                payment_id=payment_id,
                route=result.route,
                currency=result.currency,
                network=network,
                total_amount=result.total,
                platform_amount=result.platform,
                creator_amount=result.creator,
                creator_wallet=creator_wallet,
                investor_legs=result.as_dict()["investors"],
                transaction_proof=transaction_proof,
            )
        )
        return result
