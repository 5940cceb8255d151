# src/teasr_stage/services/networks.py
"""Currency and network validation for incoming payments."""

from __future__ import annotations

from collections.abc import Mapping

from teasr_stage.models.post import Post
from teasr_stage.services.errors import CurrencyNotAcceptedError, InvalidNetworkError

PRODUCTION_NETWORKS: Mapping[str, frozenset[str]] = {
    "USDC": frozenset({"base-mainnet"}),
    "SOL": frozenset({"solana-mainnet"}),
    "ETH": frozenset({"ethereum-mainnet"}),
    "MATIC": frozenset({"polygon-mainnet"}),
    "BNB": frozenset({"bsc-mainnet"}),
}

TEST_NETWORKS: Mapping[str, frozenset[str]] = {
    "USDC": frozenset({"base-sepolia", "ethereum-sepolia", "polygon-mumbai"}),
    "SOL": frozenset({"solana-devnet"}),
    "ETH": frozenset({"ethereum-sepolia"}),
    "MATIC": frozenset({"polygon-mumbai"}),
    "BNB": frozenset({"bsc-testnet"}),
}

DEFAULT_PRODUCTION_NETWORK = "base-mainnet"
DEFAULT_TEST_NETWORK = "base-sepolia"

# Currencies settled on an account-addressed chain rather than an EVM chain.
ACCOUNT_ADDRESSED_CURRENCIES = frozenset({"SOL"})


def valid_networks(currency: str, *, production: bool) -> frozenset[str] | None:
    """Return the networks allowed for ``currency``, or None when unrestricted."""
    table = PRODUCTION_NETWORKS if production else TEST_NETWORKS
    return table.get(currency.upper())


def default_network(*, production: bool) -> str:
    """Return the network assumed when a request omits one."""
    return DEFAULT_PRODUCTION_NETWORK if production else DEFAULT_TEST_NETWORK


def validate_payment_request(
    post: Post,
    currency: str,
    network: str | None,
    *,
    production: bool,
) -> tuple[str, str]:
    """Check a payment request against the post and the network table.

    Args:
        post: Post being paid for.
        currency: Currency code chosen by the payer.
        network: Network identifier, or None to use the environment default.
        production: Whether the production network table applies.

    Returns:
        The normalized ``(currency, network)`` pair.

    Raises:
        CurrencyNotAcceptedError: If the post does not accept ``currency``.
        InvalidNetworkError: If ``network`` is not valid for ``currency``.
    """
    code = currency.strip().upper()
    if code not in post.accepted_currency_set:
        raise CurrencyNotAcceptedError(code)

    selected = network or default_network(production=production)
    allowed = valid_networks(code, production=production)
    if allowed is not None and selected not in allowed:
        raise InvalidNetworkError(selected, code)
    return code, selected


def settlement_route(currency: str) -> str:
    """Return the settlement route label used for logging and audit rows."""
    return "solana" if currency.upper() in ACCOUNT_ADDRESSED_CURRENCIES else "evm"
