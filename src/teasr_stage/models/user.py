# src/teasr_stage/models/user.py
"""Minimal user account model.

Profiles are managed elsewhere; the monetization core only needs the wallet
address that receives creator and investor legs of a settlement.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from teasr_stage.db.session import Base
from teasr_stage.db.time import utcnow

from .ids import new_id


class User(Base):
    """Wallet-backed account."""

    __tablename__ = "user_account"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    wallet_address: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    username: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
