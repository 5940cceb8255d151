# src/teasr_stage/models/investor.py
"""Investor slot model."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from teasr_stage.db.session import Base
from teasr_stage.db.time import utcnow
from teasr_stage.db.types import Money

from .ids import new_id


class InvestorPosition(Base):
    """One claimed slot in a post's investor pool.

    Positions are dense (1..max_investor_slots) and never deleted; earnings only grow.
    """

    __tablename__ = "investor_position"
    __table_args__ = (
        UniqueConstraint("post_id", "investor_id", name="uq_investor_post_investor"),
        UniqueConstraint("post_id", "position", name="uq_investor_post_position"),
        CheckConstraint("position >= 1", name="ck_investor_position_positive"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("post.id", ondelete="CASCADE"), nullable=False, index=True
    )
    investor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    investment_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    total_earnings: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
