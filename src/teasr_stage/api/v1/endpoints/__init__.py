"""API endpoint modules for version 1."""

from .investors import router as investors_router
from .posts import router as posts_router
from .users import router as users_router

__all__ = [
    "investors_router",
    "posts_router",
    "users_router",
]
