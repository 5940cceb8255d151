# src/teasr_stage/models/payment.py
"""Ledger models: payments, platform fees and simulated settlements."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from teasr_stage.db.session import Base
from teasr_stage.db.time import utcnow
from teasr_stage.db.types import Money

from .ids import new_id

PAYMENT_TYPE_CONTENT = "content"
PAYMENT_TYPE_COMMENT = "comment"
PAYMENT_TYPES = (PAYMENT_TYPE_CONTENT, PAYMENT_TYPE_COMMENT)

FEE_STATUS_PENDING = "pending"
FEE_STATUS_COMPLETED = "completed"
FEE_STATUS_FAILED = "failed"


class PaymentRecord(Base):
    """Immutable record of a payment unlocking content or comments.

    The unique constraint on (payer, post, payment type) is the idempotency
    boundary: a retried request can never produce a second row.
    """

    __tablename__ = "payment"
    __table_args__ = (
        UniqueConstraint("payer_id", "post_id", "payment_type", name="uq_payment_payer_post_type"),
        CheckConstraint("payment_type IN ('content', 'comment')", name="ck_payment_type"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    payer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("post.id", ondelete="CASCADE"), nullable=False, index=True
    )
    payment_type: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    currency: Mapped[str] = mapped_column(String(16), nullable=False, default="USDC")
    network: Mapped[str] = mapped_column(String(32), nullable=False)
    is_buyout: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Opaque client-supplied proof; stored as received and never verified on-chain.
    transaction_proof: Mapped[str] = mapped_column(Text, nullable=False)
    paid_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class PlatformFeeRecord(Base):
    """Flat platform fee reserved for a chargeable payment."""

    __tablename__ = "platform_fee"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    payment_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("payment.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("post.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    transaction_proof: Mapped[str | None] = mapped_column(Text, nullable=True)
    destination_wallet: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=FEE_STATUS_PENDING)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class SettlementRecord(Base):
    """Audit row describing how a payment would be split.

    No funds move; this is the recorded intent only.
    """

    __tablename__ = "settlement"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    payment_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("payment.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    route: Mapped[str] = mapped_column(String(16), nullable=False)
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    network: Mapped[str] = mapped_column(String(32), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    platform_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    creator_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    creator_wallet: Mapped[str] = mapped_column(Text, nullable=False)
    # List of {"investor_id", "wallet", "position", "amount"} with amounts as strings.
    investor_legs: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    transaction_proof: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
