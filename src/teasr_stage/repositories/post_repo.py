"""Data access helpers for working with posts."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from teasr_stage.models.post import Post
from teasr_stage.models.user import User

__all__ = ["PostRepository"]


class PostRepository:
    """Thin wrapper around database access for post entities."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository with an async SQLAlchemy session."""
        self.session = session

    async def get_by_id(self, post_id: str) -> Post | None:
        """Return a post by identifier."""
        result = await self.session.execute(select(Post).where(Post.id == post_id))
        return result.scalars().first()

    async def get_with_creator(self, post_id: str) -> tuple[Post, User] | None:
        """Return a post together with its creator account."""
        result = await self.session.execute(
            select(Post, User).join(User, User.id == Post.creator_id).where(Post.id == post_id)
        )
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def add(self, post: Post) -> Post:
        """Insert a new post and return the persisted ORM instance."""
        self.session.add(post)
        await self.session.flush()
        return post

    async def list_non_viral_ids(self) -> list[str]:
        """Return identifiers of every post not yet promoted to viral."""
        result = await self.session.execute(
            select(Post.id).where(Post.is_viral.is_(False)).order_by(Post.created_at)
        )
        return list(result.scalars())

    async def increment_views(self, post_id: str, delta: int = 1) -> int | None:
        """Atomically bump the view counter and return the new value."""
        result = await self.session.execute(
            update(Post)
            .where(Post.id == post_id)
            .values(view_count=Post.view_count + delta)
            .returning(Post.view_count)
        )
        return result.scalar_one_or_none()

    async def adjust_votes(
        self, post_id: str, *, upvotes: int = 0, downvotes: int = 0
    ) -> tuple[int, int] | None:
        """Atomically shift the vote counters and return ``(upvotes, downvotes)``."""
        result = await self.session.execute(
            update(Post)
            .where(Post.id == post_id)
            .values(
                upvote_count=Post.upvote_count + upvotes,
                downvote_count=Post.downvote_count + downvotes,
            )
            .returning(Post.upvote_count, Post.downvote_count)
        )
        row = result.first()
        if row is None:
            return None
        return int(row[0]), int(row[1])

    async def mark_viral(self, post_id: str, threshold: int, detected_at: datetime) -> bool:
        """Flip a post to viral if it still qualifies.

        The guard on ``is_viral`` makes the transition one-way and safe to race:
        only one caller ever observes a changed row.
        """
        result = await self.session.execute(
            update(Post)
            .where(
                Post.id == post_id,
                Post.is_viral.is_(False),
                Post.upvote_count >= threshold,
            )
            .values(is_viral=True, viral_detected_at=detected_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
