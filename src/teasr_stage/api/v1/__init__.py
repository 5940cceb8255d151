# src/teasr_stage/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import investors_router, posts_router, users_router

__all__ = [
    "investors_router",
    "posts_router",
    "users_router",
]
