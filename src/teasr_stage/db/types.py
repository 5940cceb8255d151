# src/teasr_stage/db/types.py
"""Custom column types shared by the ORM models."""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Numeric, String
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator, TypeEngine

MONEY_PRECISION = 18
MONEY_SCALE = 6
MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_SCALE)


def to_money(value: Any) -> Decimal:
    """Coerce ``value`` into a Decimal quantized to six decimal places.

    Floats are rejected so that binary rounding never reaches the ledger.
    """
    if isinstance(value, float):
        raise TypeError("Monetary amounts must not be floats; pass a str or Decimal")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as err:
        raise ValueError(f"Invalid monetary amount: {value!r}") from err
    if not amount.is_finite():
        raise ValueError(f"Invalid monetary amount: {value!r}")
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_EVEN)


def format_money(value: Decimal) -> str:
    """Render a monetary amount as a fixed-point string with six decimals."""
    return f"{to_money(value):.{MONEY_SCALE}f}"


class Money(TypeDecorator[Decimal]):
    """Fixed-point amount stored as NUMERIC(18, 6).

    SQLite has no native decimal storage and would round-trip values through
    REAL, so on that dialect amounts are kept as fixed-point strings instead.
    """

    impl = Numeric(MONEY_PRECISION, MONEY_SCALE, asdecimal=True)
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(MONEY_PRECISION + 2))
        return dialect.type_descriptor(Numeric(MONEY_PRECISION, MONEY_SCALE, asdecimal=True))

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        amount = to_money(value)
        if dialect.name == "sqlite":
            return format_money(amount)
        return amount

    def process_result_value(self, value: Any, dialect: Dialect) -> Decimal | None:
        if value is None:
            return None
        return to_money(value)
