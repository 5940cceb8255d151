"""Periodic promotion of highly upvoted posts to viral status."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teasr_stage.db.time import utcnow
from teasr_stage.models.viral import ViralNotification
from teasr_stage.repositories.post_repo import PostRepository
from teasr_stage.services.broadcast import EVENT_VIRAL_NOTIFICATION, Broadcaster, Event

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    evaluated: int = 0
    promoted: int = 0
    failed: int = 0


class ViralSweep:
    """Flips posts past the upvote threshold from not-viral to viral.

    The transition is a conditional update on ``is_viral``, so a post is promoted
    and announced at most once no matter how many sweeps overlap.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        broadcaster: Broadcaster,
        *,
        upvote_threshold: int,
    ) -> None:
        self._session_factory = session_factory
        self.broadcaster = broadcaster
        self.upvote_threshold = upvote_threshold

    async def run_once(self) -> SweepReport:
        """Evaluate every non-viral post once.

        A failure on one post is logged and the sweep moves on to the next.
        """
        async with self._session_factory() as session:
            post_ids = await PostRepository(session).list_non_viral_ids()

        report = SweepReport()
        logger.debug("Viral sweep evaluating %d posts", len(post_ids))
        for post_id in post_ids:
            report.evaluated += 1
            try:
                if await self.evaluate(post_id):
                    report.promoted += 1
            except Exception:
                report.failed += 1
                logger.exception("Viral sweep failed for post %s", post_id)

        if report.promoted or report.failed:
            logger.info(
                "Viral sweep finished: %d evaluated, %d promoted, %d failed",
                report.evaluated,
                report.promoted,
                report.failed,
            )
        return report

    async def evaluate(self, post_id: str) -> bool:
        """Promote one post if it qualifies; return True if this call promoted it."""
        async with self._session_factory() as session, session.begin():
            posts = PostRepository(session)
            promoted = await posts.mark_viral(post_id, self.upvote_threshold, utcnow())
            if not promoted:
                return False
            found = await posts.get_with_creator(post_id)
            if found is None:
                return False
            post, creator = found
            await session.refresh(post)
            session.add(
                ViralNotification(
                    post_id=post.id,
                    views_at_notification=post.view_count,
                    upvotes_at_notification=post.upvote_count,
                )
            )
            message = f'"{post.title}" by {creator.username} just went viral!'

        logger.info("Post %s went viral with %d upvotes", post_id, post.upvote_count)
        self.broadcaster.publish(
            Event(EVENT_VIRAL_NOTIFICATION, {"postId": post_id, "message": message})
        )
        return True


class ViralSweepWorker:
    """Runs :class:`ViralSweep` on a fixed interval in the background."""

    def __init__(self, sweep: ViralSweep, interval_seconds: float) -> None:
        self.sweep = sweep
        self.interval = max(0.1, float(interval_seconds))
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the loop and wait for the current sweep to finish."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.sweep.run_once()
            except Exception:
                logger.exception("Viral sweep run failed")
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue
