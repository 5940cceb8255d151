import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from teasr_stage.models import InvestorPosition, PaymentRecord, PlatformFeeRecord, SettlementRecord
from teasr_stage.models.payment import FEE_STATUS_COMPLETED
from teasr_stage.repositories.payment_repo import PaymentRepository
from teasr_stage.services.broadcast import (
    EVENT_BUYOUT_UPDATE,
    EVENT_COMMENT_UNLOCK,
    EVENT_INVESTOR_EARNINGS_UPDATE,
)
from teasr_stage.services.errors import (
    PaymentValidationError,
    PostNotFoundError,
    SettlementError,
    SlotsFullError,
)


async def _count(session_factory, model) -> int:
    async with session_factory() as session:
        return int((await session.execute(select(func.count()).select_from(model))).scalar_one())


async def _pay(services, payer, post, amount="5.00", *, is_buyout=False, payment_type="content"):
    return await services.ledger.record_payment(
        payer.id,
        post.id,
        payment_type,
        Decimal(amount),
        "USDC",
        "base-sepolia",
        f"0xproof-{payer.id}",
        is_buyout=is_buyout,
    )


async def test_has_paid_is_false_before_payment(services, make_user, make_post):
    creator, viewer = await make_user(), await make_user()
    post = await make_post(creator)

    assert await services.ledger.has_paid(viewer.id, post.id) is False
    assert await services.ledger.has_paid(None, post.id) is False


async def test_free_content_counts_as_paid_for_everyone(services, make_user, make_post):
    creator = await make_user()
    post = await make_post(creator, is_free=True)

    assert await services.ledger.has_paid(None, post.id) is True
    assert await services.ledger.has_paid(None, post.id, "comment") is False


async def test_has_paid_unknown_post(services):
    with pytest.raises(PostNotFoundError):
        await services.ledger.has_paid("someone", "missing-post")


async def test_record_payment_writes_payment_fee_and_settlement(
    services, session_factory, make_user, make_post
):
    creator, payer = await make_user(), await make_user()
    post = await make_post(creator)

    outcome = await _pay(services, payer, post)

    assert outcome.already_paid is False
    assert outcome.record.amount == Decimal("5.000000")
    assert outcome.investor_outcome.kind == "unlock"
    assert outcome.settlement.platform == Decimal("0.050000")
    assert outcome.settlement.creator == Decimal("4.950000")
    assert await services.ledger.has_paid(payer.id, post.id) is True

    async with session_factory() as session:
        fee = (await session.execute(select(PlatformFeeRecord))).scalar_one()
        settlement = (await session.execute(select(SettlementRecord))).scalar_one()
    assert fee.payment_id == outcome.record.id
    assert fee.amount == Decimal("0.05")
    assert fee.status == FEE_STATUS_COMPLETED
    assert settlement.route == "evm"
    assert settlement.network == "base-sepolia"
    assert settlement.creator_wallet == creator.wallet_address


async def test_second_payment_is_idempotent(services, session_factory, make_user, make_post):
    creator, payer = await make_user(), await make_user()
    post = await make_post(creator)

    first = await _pay(services, payer, post)
    second = await _pay(services, payer, post)

    assert second.already_paid is True
    assert second.record.id == first.record.id
    assert second.settlement is None
    assert await _count(session_factory, PaymentRecord) == 1
    assert await _count(session_factory, PlatformFeeRecord) == 1
    assert await _count(session_factory, SettlementRecord) == 1


async def test_concurrent_retries_record_one_payment(
    services, session_factory, make_user, make_post
):
    creator, payer = await make_user(), await make_user()
    post = await make_post(creator)

    outcomes = await asyncio.gather(*(_pay(services, payer, post) for _ in range(5)))

    assert sum(1 for outcome in outcomes if not outcome.already_paid) == 1
    assert await _count(session_factory, PaymentRecord) == 1
    assert await _count(session_factory, SettlementRecord) == 1


async def test_constraint_race_resolves_to_already_paid(
    services, session_factory, make_user, make_post, monkeypatch
):
    creator, payer = await make_user(), await make_user()
    post = await make_post(creator)
    await _pay(services, payer, post)

    # Make the in-transaction lookup miss, as if another process committed
    # between our check and our insert.
    original_find = PaymentRepository.find
    calls = {"n": 0}

    async def racing_find(self, payer_id, post_id, payment_type):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return await original_find(self, payer_id, post_id, payment_type)

    monkeypatch.setattr(PaymentRepository, "find", racing_find)

    outcome = await _pay(services, payer, post)

    assert outcome.already_paid is True
    assert await _count(session_factory, PaymentRecord) == 1
    assert await _count(session_factory, PlatformFeeRecord) == 1


async def test_unknown_post_is_rejected(services, make_user):
    payer = await make_user()
    with pytest.raises(PostNotFoundError):
        await services.ledger.record_payment(
            payer.id, "missing", "content", Decimal("1"), "USDC", "base-sepolia", "0x1"
        )


async def test_unknown_payment_type_is_rejected(services, make_user, make_post):
    creator, payer = await make_user(), await make_user()
    post = await make_post(creator)
    with pytest.raises(PaymentValidationError):
        await _pay(services, payer, post, payment_type="tip")


async def test_free_post_payment_has_no_fee_or_settlement(
    services, session_factory, make_user, make_post
):
    creator, payer = await make_user(), await make_user()
    post = await make_post(creator, is_free=True)

    outcome = await _pay(services, payer, post, amount="0")

    assert outcome.already_paid is False
    assert outcome.settlement is None
    assert outcome.investor_outcome is None
    assert await _count(session_factory, PlatformFeeRecord) == 0
    assert await _count(session_factory, SettlementRecord) == 0


async def test_slots_are_dense_and_bounded(services, session_factory, make_user, make_post):
    creator = await make_user()
    post = await make_post(creator, buyout_price=Decimal("10"), max_investor_slots=3)
    investors = [await make_user() for _ in range(4)]

    for expected, investor in enumerate(investors[:3], start=1):
        outcome = await _pay(services, investor, post, "10", is_buyout=True)
        assert outcome.investor_outcome.position == expected

    with pytest.raises(SlotsFullError) as excinfo:
        await _pay(services, investors[3], post, "10", is_buyout=True)
    assert "All 3 investor spots are filled" in str(excinfo.value)

    async with session_factory() as session:
        positions = (await session.execute(select(InvestorPosition.position))).scalars().all()
    assert sorted(positions) == [1, 2, 3]
    # The rejected buyout left nothing behind.
    assert await services.ledger.has_paid(investors[3].id, post.id) is False
    assert await _count(session_factory, PaymentRecord) == 3


async def test_concurrent_buyouts_for_last_slot(services, session_factory, make_user, make_post):
    creator = await make_user()
    post = await make_post(creator, buyout_price=Decimal("10"), max_investor_slots=2)
    first, second, third = await make_user(), await make_user(), await make_user()
    await _pay(services, first, post, "10", is_buyout=True)

    results = await asyncio.gather(
        _pay(services, second, post, "10", is_buyout=True),
        _pay(services, third, post, "10", is_buyout=True),
        return_exceptions=True,
    )

    successes = [result for result in results if not isinstance(result, BaseException)]
    failures = [result for result in results if isinstance(result, SlotsFullError)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert successes[0].investor_outcome.position == 2
    assert await _count(session_factory, InvestorPosition) == 2


async def test_revenue_share_worked_example(services, session_factory, make_user, make_post):
    creator = await make_user()
    post = await make_post(
        creator,
        price=Decimal("5.00"),
        buyout_price=Decimal("10.00"),
        max_investor_slots=2,
        investor_revenue_share_percent=Decimal("20"),
    )
    first, second, buyer = await make_user(), await make_user(), await make_user()

    one = await _pay(services, first, post, "10.00", is_buyout=True)
    two = await _pay(services, second, post, "10.00", is_buyout=True)
    three = await _pay(services, buyer, post, "5.00")

    assert one.investor_outcome.position == 1
    assert two.investor_outcome.position == 2
    assert three.investor_outcome.kind == "distribution"
    assert three.investor_outcome.per_investor_share == Decimal("0.495")

    async with session_factory() as session:
        rows = (
            await session.execute(select(InvestorPosition).order_by(InvestorPosition.position))
        ).scalars().all()
    assert [row.total_earnings for row in rows] == [Decimal("0.495"), Decimal("0.495")]
    assert [row.investment_amount for row in rows] == [Decimal("10"), Decimal("10")]

    settlement = three.settlement
    assert [leg.amount for leg in settlement.investors] == [Decimal("0.495")] * 2
    assert settlement.creator == Decimal("3.96")
    assert settlement.platform + settlement.creator + settlement.investor_total == Decimal("5")


async def test_no_distribution_while_pool_is_open(services, session_factory, make_user, make_post):
    creator = await make_user()
    post = await make_post(
        creator,
        buyout_price=Decimal("10"),
        max_investor_slots=2,
        investor_revenue_share_percent=Decimal("50"),
    )
    investor, buyer = await make_user(), await make_user()
    await _pay(services, investor, post, "10", is_buyout=True)

    outcome = await _pay(services, buyer, post, "5")

    assert outcome.investor_outcome.kind == "unlock"
    assert outcome.settlement.investors == ()
    async with session_factory() as session:
        earnings = (await session.execute(select(InvestorPosition.total_earnings))).scalar_one()
    assert earnings == Decimal("0")


async def test_concurrent_distributions_credit_every_investor(
    services, session_factory, make_user, make_post
):
    creator = await make_user()
    post = await make_post(
        creator,
        buyout_price=Decimal("10"),
        max_investor_slots=2,
        investor_revenue_share_percent=Decimal("20"),
    )
    for _ in range(2):
        await _pay(services, await make_user(), post, "10", is_buyout=True)
    buyers = [await make_user() for _ in range(4)]

    await asyncio.gather(*(_pay(services, buyer, post, "5.00") for buyer in buyers))

    async with session_factory() as session:
        earnings = (await session.execute(select(InvestorPosition.total_earnings))).scalars().all()
    assert earnings == [Decimal("1.98"), Decimal("1.98")]


async def test_payment_events_are_broadcast(services, broadcaster, make_user, make_post):
    creator = await make_user()
    post = await make_post(
        creator,
        buyout_price=Decimal("10"),
        max_investor_slots=1,
        investor_revenue_share_percent=Decimal("10"),
    )
    investor, buyer = await make_user(), await make_user()
    await _pay(services, investor, post, "10", is_buyout=True)
    await _pay(services, buyer, post, "5.05")

    buyout_events = broadcaster.events_of_type(EVENT_BUYOUT_UPDATE)
    assert len(buyout_events) == 2
    assert buyout_events[-1].payload == {
        "postId": post.id,
        "investorCount": 1,
        "investorEarnings": [{"userId": investor.id, "totalEarnings": "0.500000"}],
    }
    earnings_events = broadcaster.events_of_type(EVENT_INVESTOR_EARNINGS_UPDATE)
    assert earnings_events[-1].payload["totalEarnings"] == "0.500000"

    await _pay(services, buyer, post, "5.05")
    assert len(broadcaster.events_of_type(EVENT_BUYOUT_UPDATE)) == 2


async def test_content_payment_bundles_comment_access(
    services, session_factory, broadcaster, make_user, make_post
):
    creator, payer = await make_user(), await make_user()
    post = await make_post(creator, comments_locked=True, comment_fee=Decimal("1"))

    outcome = await _pay(services, payer, post)

    assert outcome.comment_access_granted is True
    assert await services.ledger.has_paid(payer.id, post.id, "comment") is True
    async with session_factory() as session:
        comment = await PaymentRepository(session).find(payer.id, post.id, "comment")
    assert comment.amount == Decimal("0")
    assert broadcaster.events_of_type(EVENT_COMMENT_UNLOCK)[0].payload == {
        "postId": post.id,
        "userId": payer.id,
    }
    # Only the content payment is charged.
    assert await _count(session_factory, PlatformFeeRecord) == 1


async def test_paid_comment_access_is_settled(services, session_factory, make_user, make_post):
    creator, payer = await make_user(), await make_user()
    post = await make_post(creator, comments_locked=True, comment_fee=Decimal("1.50"))

    outcome = await _pay(services, payer, post, "1.50", payment_type="comment")

    assert outcome.investor_outcome is None
    assert outcome.settlement.creator == Decimal("1.45")
    assert await services.ledger.has_paid(payer.id, post.id, "content") is False
    assert await _count(session_factory, PlatformFeeRecord) == 1


async def test_quote_uses_buyout_price_only_while_slots_remain(services, make_user, make_post):
    creator = await make_user()
    post = await make_post(
        creator, price=Decimal("5"), buyout_price=Decimal("12"), max_investor_slots=1
    )
    ledger = services.ledger

    assert await ledger.quote(post.id, "content") == Decimal("5")
    assert await ledger.quote(post.id, "content", is_buyout=True) == Decimal("12")

    await _pay(services, await make_user(), post, "12", is_buyout=True)
    assert await ledger.quote(post.id, "content", is_buyout=True) == Decimal("5")


async def test_quote_for_free_post_and_comments(services, make_user, make_post):
    creator = await make_user()
    free = await make_post(creator, is_free=True)
    locked = await make_post(creator, comments_locked=True, comment_fee=Decimal("0.75"))

    assert await services.ledger.quote(free.id, "content") == Decimal("0")
    assert await services.ledger.quote(locked.id, "comment") == Decimal("0.75")


async def test_failed_settlement_rolls_back_the_whole_payment(
    services, session_factory, make_user, make_post, mocker
):
    creator = await make_user()
    post = await make_post(
        creator,
        buyout_price=Decimal("10"),
        max_investor_slots=2,
        investor_revenue_share_percent=Decimal("20"),
    )
    for _ in range(2):
        await _pay(services, await make_user(), post, "10", is_buyout=True)
    buyer = await make_user()
    patched = mocker.patch.object(
        services.ledger.simulator, "simulate", side_effect=RuntimeError("settlement down")
    )

    with pytest.raises(SettlementError):
        await _pay(services, buyer, post, "5.00")

    patched.assert_awaited_once()
    assert await _count(session_factory, PaymentRecord) == 2
    assert await _count(session_factory, PlatformFeeRecord) == 2
    async with session_factory() as session:
        earnings = (await session.execute(select(InvestorPosition.total_earnings))).scalars().all()
    assert earnings == [Decimal("0"), Decimal("0")]
    assert await services.ledger.has_paid(buyer.id, post.id) is False

    mocker.stopall()
    retried = await _pay(services, buyer, post, "5.00")

    assert retried.already_paid is False
    assert retried.investor_outcome.per_investor_share == Decimal("0.495")
    async with session_factory() as session:
        payments = PaymentRepository(session)
        fee = await payments.get_fee(retried.record.id)
        settlement = await payments.get_settlement(retried.record.id)
    assert fee.status == FEE_STATUS_COMPLETED
    assert settlement.creator_amount == Decimal("3.96")


async def test_validation_errors_pass_through_the_unit_of_work(
    services, make_user, make_post, mocker
):
    creator = await make_user()
    post = await make_post(creator)
    mocker.patch.object(
        services.ledger.allocator, "allocate", side_effect=SlotsFullError(post.max_investor_slots)
    )

    with pytest.raises(SlotsFullError):
        await _pay(services, await make_user(), post, is_buyout=True)


async def test_comment_payment_on_open_comments_writes_nothing(
    services, session_factory, broadcaster, make_user, make_post
):
    creator, payer = await make_user(), await make_user()
    post = await make_post(creator, comments_locked=False)

    outcome = await _pay(services, payer, post, "0", payment_type="comment")

    assert outcome.already_paid is True
    assert outcome.record is None
    assert await _count(session_factory, PaymentRecord) == 0
    assert broadcaster.events_of_type(EVENT_COMMENT_UNLOCK) == []
