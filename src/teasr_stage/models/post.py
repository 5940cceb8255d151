# src/teasr_stage/models/post.py
"""SQLAlchemy model for pay-to-reveal posts."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from teasr_stage.db.session import Base
from teasr_stage.db.time import utcnow
from teasr_stage.db.types import Money

from .ids import new_id

DEFAULT_MAX_INVESTOR_SLOTS = 10
MAX_INVESTOR_SLOTS_LIMIT = 100


class Post(Base):
    """Encrypted media item gated behind a payment.

    The media blob holds ``[IV][ciphertext][tag]`` sealed under a per-post key;
    that key is itself sealed under the master key and stored here as three
    base64 fields.
    """

    __tablename__ = "post"
    __table_args__ = (
        CheckConstraint(
            f"max_investor_slots BETWEEN 1 AND {MAX_INVESTOR_SLOTS_LIMIT}",
            name="ck_post_max_investor_slots",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    creator_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user_account.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    media_type: Mapped[str] = mapped_column(Text, nullable=False, default="image")

    # Blob keys for the sealed media and its blurred preview.
    encrypted_media_key: Mapped[str] = mapped_column(Text, nullable=False)
    blurred_thumbnail_key: Mapped[str] = mapped_column(Text, nullable=False)

    # Content-key envelope, base64 encoded.
    encrypted_key: Mapped[str] = mapped_column(Text, nullable=False)
    key_iv: Mapped[str] = mapped_column(Text, nullable=False)
    key_auth_tag: Mapped[str] = mapped_column(Text, nullable=False)

    # Pricing.
    base_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    buyout_price: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    is_free: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Comma-separated currency codes, e.g. "USDC,SOL".
    accepted_currencies: Mapped[str] = mapped_column(Text, nullable=False, default="USDC")

    # Investor pool.
    max_investor_slots: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_MAX_INVESTOR_SLOTS
    )
    investor_revenue_share_percent: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=Decimal("0")
    )

    # Comment gating.
    comments_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    comment_fee: Mapped[Decimal | None] = mapped_column(Money, nullable=True)

    # Engagement counters, only ever mutated with atomic UPDATE statements.
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    upvote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downvote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Viral state is one-way: once set it is never cleared.
    is_viral: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    viral_detected_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    @property
    def accepted_currency_set(self) -> frozenset[str]:
        """Return the accepted currency codes as a set."""
        return frozenset(
            code.strip().upper() for code in self.accepted_currencies.split(",") if code.strip()
        )
