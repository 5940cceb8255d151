# src/teasr_stage/models/viral.py
"""Audit trail of viral promotions."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from teasr_stage.db.session import Base
from teasr_stage.db.time import utcnow

from .ids import new_id


class ViralNotification(Base):
    """Snapshot of engagement at the moment a post was promoted to viral."""

    __tablename__ = "viral_notification"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    post_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("post.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    notified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    views_at_notification: Mapped[int] = mapped_column(Integer, nullable=False)
    upvotes_at_notification: Mapped[int] = mapped_column(Integer, nullable=False)
