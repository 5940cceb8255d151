"""Async data access helpers."""

from .investor_repo import InvestorRepository
from .payment_repo import PaymentRepository
from .post_repo import PostRepository

__all__ = ["InvestorRepository", "PaymentRepository", "PostRepository"]
