"""Up/down votes on posts."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError as StorageIntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teasr_stage.models.vote import PostVote
from teasr_stage.repositories.post_repo import PostRepository
from teasr_stage.services.broadcast import EVENT_VOTE_UPDATE, Broadcaster, Event
from teasr_stage.services.errors import PostNotFoundError

logger = logging.getLogger(__name__)

VOTE_DIRECTIONS = {"up": 1, "down": -1}


@dataclass(frozen=True)
class VoteCounts:
    post_id: str
    upvote_count: int
    downvote_count: int


class VoteService:
    """Keeps one vote per (user, post) and the post's counters in step with it."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession], broadcaster: Broadcaster
    ) -> None:
        self._session_factory = session_factory
        self.broadcaster = broadcaster

    async def cast_vote(self, voter_id: str, post_id: str, vote_type: str) -> VoteCounts:
        """Record an ``"up"`` or ``"down"`` vote and return the new counts.

        Repeating a vote leaves the counters alone; switching direction moves a
        single count from one side to the other.

        Raises:
            ValueError: If ``vote_type`` is not ``"up"`` or ``"down"``.
            PostNotFoundError: If the post does not exist.
        """
        direction = VOTE_DIRECTIONS.get(vote_type)
        if direction is None:
            raise ValueError(f"Invalid vote type {vote_type!r}")

        try:
            counts = await self._apply(voter_id, post_id, direction)
        except StorageIntegrityError:
            # A concurrent first vote from the same user won the insert.
            logger.info("Vote race for %s on post %s, re-applying", voter_id, post_id)
            counts = await self._apply(voter_id, post_id, direction)

        self.broadcaster.publish(
            Event(
                EVENT_VOTE_UPDATE,
                {
                    "postId": post_id,
                    "upvoteCount": counts.upvote_count,
                    "downvoteCount": counts.downvote_count,
                },
            )
        )
        return counts

    async def _apply(self, voter_id: str, post_id: str, direction: int) -> VoteCounts:
        async with self._session_factory() as session, session.begin():
            posts = PostRepository(session)
            post = await posts.get_by_id(post_id)
            if post is None:
                raise PostNotFoundError(post_id)

            result = await session.execute(
                select(PostVote).where(PostVote.post_id == post_id, PostVote.voter_id == voter_id)
            )
            existing = result.scalars().first()

            up = down = 0
            if existing is None:
                session.add(PostVote(post_id=post_id, voter_id=voter_id, direction=direction))
                await session.flush()
                up, down = (1, 0) if direction == 1 else (0, 1)
            elif existing.direction != direction:
                existing.direction = direction
                up, down = (1, -1) if direction == 1 else (-1, 1)

            if up or down:
                adjusted = await posts.adjust_votes(post_id, upvotes=up, downvotes=down)
                if adjusted is None:
                    raise PostNotFoundError(post_id)
                upvotes, downvotes = adjusted
            else:
                upvotes, downvotes = post.upvote_count, post.downvote_count

        return VoteCounts(post_id=post_id, upvote_count=upvotes, downvote_count=downvotes)
