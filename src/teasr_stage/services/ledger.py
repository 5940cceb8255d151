"""Idempotent payment ledger.

The ledger is the single writer of payments, platform fees, investor positions
and settlements. Each payment is recorded in one transaction; a retried request
for an already-paid (payer, post, payment type) tuple returns the existing
record without touching anything else.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import IntegrityError as StorageIntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teasr_stage.db.types import format_money, to_money
from teasr_stage.models.payment import (
    FEE_STATUS_COMPLETED,
    PAYMENT_TYPE_COMMENT,
    PAYMENT_TYPE_CONTENT,
    PAYMENT_TYPES,
    PaymentRecord,
    PlatformFeeRecord,
)
from teasr_stage.models.post import Post
from teasr_stage.models.user import User
from teasr_stage.repositories.payment_repo import PaymentRepository
from teasr_stage.repositories.post_repo import PostRepository
from teasr_stage.services.allocator import InvestorAllocator, InvestorOutcome
from teasr_stage.services.broadcast import (
    EVENT_BUYOUT_UPDATE,
    EVENT_COMMENT_UNLOCK,
    EVENT_INVESTOR_EARNINGS_UPDATE,
    Broadcaster,
    Event,
)
from teasr_stage.services.errors import (
    DuplicatePaymentConflict,
    MonetizationError,
    PaymentValidationError,
    PostNotFoundError,
    SettlementError,
)
from teasr_stage.services.networks import settlement_route, validate_payment_request
from teasr_stage.services.settlement import ZERO, SettlementResult, SettlementSimulator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentOutcome:
    """Result of :meth:`PaymentLedger.record_payment`."""

    already_paid: bool
    record: PaymentRecord | None = None
    investor_outcome: InvestorOutcome | None = None
    settlement: SettlementResult | None = None
    comment_access_granted: bool = False


class PaymentLedger:
    """Records payments and answers "has this user paid"."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        allocator: InvestorAllocator,
        simulator: SettlementSimulator,
        broadcaster: Broadcaster,
        *,
        platform_fee_currency: str,
        production: bool,
        max_attempts: int = 3,
    ) -> None:
        self._session_factory = session_factory
        self.allocator = allocator
        self.simulator = simulator
        self.broadcaster = broadcaster
        self.platform_fee_currency = platform_fee_currency
        self.production = production
        self.max_attempts = max(1, max_attempts)
        self._post_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, post_id: str) -> asyncio.Lock:
        lock = self._post_locks.get(post_id)
        if lock is None:
            lock = asyncio.Lock()
            self._post_locks[post_id] = lock
        return lock

    async def has_paid(
        self, user_id: str | None, post_id: str, payment_type: str = PAYMENT_TYPE_CONTENT
    ) -> bool:
        """Return whether ``user_id`` may access ``post_id`` for ``payment_type``.

        Content on a free post counts as paid for everyone, anonymous viewers
        included.

        Raises:
            PostNotFoundError: If the post does not exist.
        """
        async with self._session_factory() as session:
            post = await PostRepository(session).get_by_id(post_id)
            if post is None:
                raise PostNotFoundError(post_id)
            if post.is_free and payment_type == PAYMENT_TYPE_CONTENT:
                return True
            if user_id is None:
                return False
            record = await PaymentRepository(session).find(user_id, post_id, payment_type)
            return record is not None

    async def validate_request(
        self, post_id: str, currency: str, network: str | None
    ) -> tuple[str, str]:
        """Check currency and network for a payment on ``post_id``.

        Returns:
            The normalized ``(currency, network)`` pair.
        """
        async with self._session_factory() as session:
            post = await PostRepository(session).get_by_id(post_id)
        if post is None:
            raise PostNotFoundError(post_id)
        return validate_payment_request(post, currency, network, production=self.production)

    async def quote(self, post_id: str, payment_type: str, *, is_buyout: bool = False) -> Decimal:
        """Return the amount due for a payment on ``post_id``."""
        async with self._session_factory() as session:
            post = await PostRepository(session).get_by_id(post_id)
            if post is None:
                raise PostNotFoundError(post_id)
            if payment_type == PAYMENT_TYPE_COMMENT:
                return post.comment_fee if post.comment_fee is not None else ZERO
            if post.is_free:
                return ZERO
            return await self.allocator.quote(session, post, is_buyout=is_buyout)

    async def record_payment(
        self,
        payer_id: str,
        post_id: str,
        payment_type: str,
        amount: Decimal | str,
        currency: str,
        network: str,
        transaction_proof: str,
        is_buyout: bool = False,
    ) -> PaymentOutcome:
        """Record a payment and run its fee, allocation and settlement bookkeeping.

        Calls for the same post are serialized in-process; the unique constraint
        on (payer, post, payment type) catches races with other processes. A
        constraint race is answered from the row that won it.

        A comment payment on a post whose comments are open writes nothing and
        reports ``already_paid``.

        Raises:
            PostNotFoundError: If the post does not exist.
            SlotsFullError: If a buyout is requested and the investor pool is full.
            SettlementError: If the unit of work could not be completed.
        """
        if payment_type not in PAYMENT_TYPES:
            raise PaymentValidationError(f"Unknown payment type {payment_type!r}")
        money = to_money(amount)
        if money < ZERO:
            raise PaymentValidationError("Payment amount must not be negative")

        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            async with self._lock_for(post_id):
                try:
                    outcome = await self._record_once(
                        payer_id,
                        post_id,
                        payment_type,
                        money,
                        currency.upper(),
                        network,
                        transaction_proof,
                        is_buyout,
                    )
                except DuplicatePaymentConflict as err:
                    existing = await self._find(payer_id, post_id, payment_type)
                    if existing is not None:
                        logger.info(
                            "Payment race on %s/%s/%s resolved as already paid",
                            payer_id,
                            post_id,
                            payment_type,
                        )
                        return PaymentOutcome(already_paid=True, record=existing)
                    logger.warning(
                        "Constraint conflict recording payment for post %s (attempt %d/%d): %s",
                        post_id,
                        attempt,
                        self.max_attempts,
                        err,
                    )
                    last_error = err
                    continue
            self._broadcast(outcome, payer_id, post_id)
            return outcome

        raise SettlementError("Payment could not be recorded, please retry") from last_error

    async def _find(self, payer_id: str, post_id: str, payment_type: str) -> PaymentRecord | None:
        async with self._session_factory() as session:
            return await PaymentRepository(session).find(payer_id, post_id, payment_type)

    async def _record_once(
        self,
        payer_id: str,
        post_id: str,
        payment_type: str,
        amount: Decimal,
        currency: str,
        network: str,
        transaction_proof: str,
        is_buyout: bool,
    ) -> PaymentOutcome:
        try:
            async with self._session_factory() as session, session.begin():
                payments = PaymentRepository(session)
                existing = await payments.find(payer_id, post_id, payment_type)
                if existing is not None:
                    logger.info(
                        "Payment %s already recorded for %s on post %s",
                        payment_type,
                        payer_id,
                        post_id,
                    )
                    return PaymentOutcome(already_paid=True, record=existing)

                found = await PostRepository(session).get_with_creator(post_id)
                if found is None:
                    raise PostNotFoundError(post_id)
                post, creator = found

                if payment_type == PAYMENT_TYPE_COMMENT and not post.comments_locked:
                    # Open comments need no payment; nothing is written.
                    return PaymentOutcome(already_paid=True)

                record = await payments.add(
                    PaymentRecord(
                        payer_id=payer_id,
                        post_id=post_id,
                        payment_type=payment_type,
                        amount=amount,
                        currency=currency,
                        network=network,
                        is_buyout=is_buyout and payment_type == PAYMENT_TYPE_CONTENT,
                        transaction_proof=transaction_proof,
                    )
                )
                logger.info(
                    "Recorded %s payment %s: %s %s on %s from %s for post %s",
                    payment_type,
                    record.id,
                    format_money(amount),
                    currency,
                    network,
                    payer_id,
                    post_id,
                )

                chargeable = self._is_chargeable(post, payment_type, amount)
                fee: PlatformFeeRecord | None = None
                if chargeable:
                    fee = await self._record_fee(payments, record, post, currency)

                investor_outcome: InvestorOutcome | None = None
                if payment_type == PAYMENT_TYPE_CONTENT and not post.is_free:
                    investor_outcome = await self.allocator.allocate(
                        session,
                        post,
                        payer_id=payer_id,
                        amount=amount,
                        is_buyout=record.is_buyout,
                    )

                settlement: SettlementResult | None = None
                if chargeable:
                    settlement = await self._settle(
                        session, record, post, creator, investor_outcome
                    )
                    if fee is not None:
                        fee.status = FEE_STATUS_COMPLETED
                        await session.flush()

                comment_access = payment_type == PAYMENT_TYPE_COMMENT
                if payment_type == PAYMENT_TYPE_CONTENT and post.comments_locked:
                    comment_access = await self._grant_comment_access(
                        payments, payer_id, post_id, currency, network, transaction_proof
                    )
        except StorageIntegrityError as err:
            raise DuplicatePaymentConflict(str(err.orig)) from err
        except MonetizationError:
            raise
        except Exception as err:
            logger.exception("Payment unit of work for post %s failed", post_id)
            raise SettlementError("Payment could not be recorded, please retry") from err

        return PaymentOutcome(
            already_paid=False,
            record=record,
            investor_outcome=investor_outcome,
            settlement=settlement,
            comment_access_granted=comment_access,
        )

    @staticmethod
    def _is_chargeable(post: Post, payment_type: str, amount: Decimal) -> bool:
        if payment_type == PAYMENT_TYPE_CONTENT:
            return not post.is_free
        return amount > ZERO

    async def _record_fee(
        self,
        payments: PaymentRepository,
        record: PaymentRecord,
        post: Post,
        currency: str,
    ) -> PlatformFeeRecord:
        route = settlement_route(currency)
        fee = await payments.add_fee(
            PlatformFeeRecord(
                payment_id=record.id,
                post_id=post.id,
                amount=self.simulator.platform_fee,
                currency=self.platform_fee_currency,
                transaction_proof=record.transaction_proof,
                destination_wallet=self.simulator.platform_wallet_for(route),
            )
        )
        logger.info(
            "Reserved platform fee %s %s for payment %s",
            format_money(fee.amount),
            fee.currency,
            record.id,
        )
        return fee

    async def _settle(
        self,
        session: AsyncSession,
        record: PaymentRecord,
        post: Post,
        creator: User,
        investor_outcome: InvestorOutcome | None,
    ) -> SettlementResult:
        payees = investor_outcome.payees if investor_outcome is not None else ()
        return await self.simulator.simulate(
            session,
            payment_id=record.id,
            total_amount=record.amount,
            currency=record.currency,
            network=record.network,
            creator_wallet=creator.wallet_address,
            transaction_proof=record.transaction_proof,
            revenue_share_percent=post.investor_revenue_share_percent if payees else None,
            investors=payees,
        )

    async def _grant_comment_access(
        self,
        payments: PaymentRepository,
        payer_id: str,
        post_id: str,
        currency: str,
        network: str,
        transaction_proof: str,
    ) -> bool:
        """Bundle comment access with a content unlock on a comment-locked post."""
        if await payments.find(payer_id, post_id, PAYMENT_TYPE_COMMENT) is not None:
            return True
        await payments.add(
            PaymentRecord(
                payer_id=payer_id,
                post_id=post_id,
                payment_type=PAYMENT_TYPE_COMMENT,
                amount=ZERO,
                currency=currency,
                network=network,
                is_buyout=False,
                transaction_proof=transaction_proof,
            )
        )
        logger.info("Granted comment access on post %s to %s", post_id, payer_id)
        return True

    def _broadcast(self, outcome: PaymentOutcome, payer_id: str, post_id: str) -> None:
        if outcome.already_paid:
            return
        if outcome.comment_access_granted:
            self.broadcaster.publish(
                Event(EVENT_COMMENT_UNLOCK, {"postId": post_id, "userId": payer_id})
            )
        investor_outcome = outcome.investor_outcome
        if investor_outcome is None:
            return
        self.broadcaster.publish(
            Event(
                EVENT_BUYOUT_UPDATE,
                {
                    "postId": post_id,
                    "investorCount": investor_outcome.investor_count,
                    "investorEarnings": [
                        {
                            "userId": investor.investor_id,
                            "totalEarnings": format_money(investor.total_earnings),
                        }
                        for investor in investor_outcome.investors
                    ],
                },
            )
        )
        for investor in investor_outcome.investors:
            self.broadcaster.publish(
                Event(
                    EVENT_INVESTOR_EARNINGS_UPDATE,
                    {
                        "userId": investor.investor_id,
                        "postId": post_id,
                        "totalEarnings": format_money(investor.total_earnings),
                    },
                )
            )
