from decimal import Decimal

import pytest

from teasr_stage.services.settlement import Payee, SettlementSimulator, compute_investor_share


@pytest.fixture
def simulator() -> SettlementSimulator:
    return SettlementSimulator(
        platform_fee=Decimal("0.05"),
        platform_wallet="0xplatform",
        solana_platform_wallet="SoLPlatform",
    )


def _payees(n: int) -> list[Payee]:
    return [Payee(investor_id=f"inv{i}", wallet=f"0xwallet{i}", position=i) for i in range(1, n + 1)]


def test_share_matches_worked_example():
    assert compute_investor_share(Decimal("5"), Decimal("0.05"), Decimal("20"), 2) == Decimal(
        "0.495"
    )


def test_share_rounds_down_to_six_places():
    share = compute_investor_share(Decimal("1"), Decimal("0"), Decimal("100"), 3)
    assert share == Decimal("0.333333")


@pytest.mark.parametrize(
    ("amount", "percent", "count"),
    [
        (Decimal("5"), Decimal("0"), 2),
        (Decimal("5"), Decimal("20"), 0),
        (Decimal("0.05"), Decimal("20"), 2),
        (Decimal("0.01"), Decimal("20"), 2),
    ],
)
def test_share_is_zero_when_nothing_to_split(amount, percent, count):
    assert compute_investor_share(amount, Decimal("0.05"), percent, count) == Decimal("0")


def test_no_investors_leaves_remainder_to_creator(simulator: SettlementSimulator):
    result = simulator.compute(Decimal("5"), "USDC")

    assert result.platform == Decimal("0.05")
    assert result.creator == Decimal("4.95")
    assert result.investors == ()


@pytest.mark.parametrize(
    ("amount", "percent", "count"),
    [
        (Decimal("1.000001"), Decimal("33"), 3),
        (Decimal("7.77"), Decimal("12.5"), 7),
        (Decimal("100"), Decimal("100"), 9),
        (Decimal("0.06"), Decimal("50"), 100),
    ],
)
def test_split_conserves_funds(simulator: SettlementSimulator, amount, percent, count):
    result = simulator.compute(
        amount, "USDC", revenue_share_percent=percent, investors=_payees(count)
    )

    assert result.platform + result.creator + result.investor_total == amount
    pool = (amount - Decimal("0.05")) * percent / 100
    assert result.investor_total <= pool
    assert pool - result.investor_total < Decimal("0.000001") * count


def test_all_legs_are_equal(simulator: SettlementSimulator):
    result = simulator.compute(
        Decimal("10"), "ETH", revenue_share_percent=Decimal("30"), investors=_payees(4)
    )
    assert {leg.amount for leg in result.investors} == {Decimal("0.74625")}
    assert [leg.position for leg in result.investors] == [1, 2, 3, 4]


def test_route_depends_on_currency(simulator: SettlementSimulator):
    assert simulator.compute(Decimal("1"), "sol").route == "solana"
    assert simulator.compute(Decimal("1"), "USDC").route == "evm"
    assert simulator.platform_wallet_for("solana") == "SoLPlatform"
    assert simulator.platform_wallet_for("evm") == "0xplatform"


def test_as_dict_renders_fixed_point_strings(simulator: SettlementSimulator):
    result = simulator.compute(
        Decimal("5"), "USDC", revenue_share_percent=Decimal("20"), investors=_payees(2)
    )
    data = result.as_dict()

    assert data["platform"] == "0.050000"
    assert data["creator"] == "3.960000"
    assert data["investors"][0] == {
        "investorId": "inv1",
        "wallet": "0xwallet1",
        "position": 1,
        "amount": "0.495000",
    }


def test_floats_are_rejected(simulator: SettlementSimulator):
    with pytest.raises(TypeError):
        simulator.compute(5.0, "USDC")  # type: ignore[arg-type]
