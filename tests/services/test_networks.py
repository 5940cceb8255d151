import pytest

from teasr_stage.models.post import Post
from teasr_stage.services.errors import CurrencyNotAcceptedError, InvalidNetworkError
from teasr_stage.services.networks import (
    default_network,
    settlement_route,
    valid_networks,
    validate_payment_request,
)


def _post(currencies="USDC,SOL,ETH"):
    return Post(accepted_currencies=currencies)


def test_default_network_follows_environment():
    assert default_network(production=True) == "base-mainnet"
    assert default_network(production=False) == "base-sepolia"


@pytest.mark.parametrize(
    ("currency", "network", "production"),
    [
        ("USDC", "base-mainnet", True),
        ("USDC", "polygon-mumbai", False),
        ("SOL", "solana-devnet", False),
        ("eth", "ethereum-mainnet", True),
    ],
)
def test_accepts_valid_pairs(currency, network, production):
    code, selected = validate_payment_request(_post(), currency, network, production=production)

    assert code == currency.upper()
    assert selected == network


def test_missing_network_uses_the_default():
    assert validate_payment_request(_post(), "USDC", None, production=False) == (
        "USDC",
        "base-sepolia",
    )


def test_missing_network_for_sol_is_rejected():
    with pytest.raises(InvalidNetworkError):
        validate_payment_request(_post(), "SOL", None, production=True)


def test_testnet_rejected_in_production():
    with pytest.raises(InvalidNetworkError) as excinfo:
        validate_payment_request(_post(), "USDC", "base-sepolia", production=True)

    assert str(excinfo.value) == "Invalid network base-sepolia for USDC"


def test_currency_must_be_accepted_by_the_post():
    with pytest.raises(CurrencyNotAcceptedError):
        validate_payment_request(_post("USDC"), "SOL", "solana-devnet", production=False)


def test_unlisted_currency_has_no_network_restriction():
    assert valid_networks("DOGE", production=True) is None
    assert validate_payment_request(_post("DOGE"), "DOGE", "dogechain", production=True) == (
        "DOGE",
        "dogechain",
    )


def test_settlement_route():
    assert settlement_route("sol") == "solana"
    assert settlement_route("USDC") == "evm"
