# src/teasr_stage/models/__init__.py
"""SQLAlchemy models for the TEASR Stage application."""

from .investor import InvestorPosition
from .payment import PaymentRecord, PlatformFeeRecord, SettlementRecord
from .post import Post
from .user import User
from .viral import ViralNotification
from .vote import PostVote

__all__ = [
    "InvestorPosition",
    "PaymentRecord", "PlatformFeeRecord", "SettlementRecord",
    "Post",
    "User",
    "ViralNotification",
    "PostVote",
]
