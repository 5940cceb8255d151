"""Decides whether a viewer gets decrypted media or the blurred preview."""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teasr_stage.models.payment import PAYMENT_TYPE_CONTENT
from teasr_stage.models.post import Post
from teasr_stage.repositories.post_repo import PostRepository
from teasr_stage.services.blob_store import BlobStore
from teasr_stage.services.envelope import CryptoEnvelope, EnvelopeData
from teasr_stage.services.errors import BlobStoreError, IntegrityError, PostNotFoundError
from teasr_stage.services.ledger import PaymentLedger

logger = logging.getLogger(__name__)


def media_content_type(blob_key: str) -> str:
    """Guess the original MIME type from a sealed blob key such as ``<uuid>.png.enc``."""
    guessed, _ = mimetypes.guess_type(blob_key.removesuffix(".enc"))
    return guessed or "application/octet-stream"


@dataclass(frozen=True)
class DecryptedMedia:
    post_id: str
    media_type: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class BlurredThumbnailRef:
    """Pointer to the locked representation of a post."""

    post_id: str
    thumbnail_key: str


class AccessGate:
    """Serves media to entitled viewers and the blurred preview to everyone else."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ledger: PaymentLedger,
        envelope: CryptoEnvelope,
        blob_store: BlobStore,
    ) -> None:
        self._session_factory = session_factory
        self.ledger = ledger
        self.envelope = envelope
        self.blob_store = blob_store

    async def _load(self, post_id: str) -> Post:
        async with self._session_factory() as session:
            post = await PostRepository(session).get_by_id(post_id)
        if post is None:
            raise PostNotFoundError(post_id)
        return post

    async def resolve(
        self, viewer_id: str | None, post_id: str
    ) -> DecryptedMedia | BlurredThumbnailRef:
        """Return decrypted media if the viewer is entitled, else the thumbnail.

        Free posts and the creator always get the media. A ciphertext that fails
        to authenticate or a blob that cannot be read is treated like a missing
        entitlement.

        Raises:
            PostNotFoundError: If the post does not exist.
        """
        post = await self._load(post_id)
        locked = BlurredThumbnailRef(post_id=post.id, thumbnail_key=post.blurred_thumbnail_key)

        if post.is_free:
            entitled = True
        elif viewer_id is not None and viewer_id == post.creator_id:
            entitled = True
        else:
            entitled = await self.ledger.has_paid(viewer_id, post_id, PAYMENT_TYPE_CONTENT)

        if not entitled:
            return locked

        try:
            content = await self._decrypt(post)
        except IntegrityError as err:
            logger.warning("Media for post %s failed authentication: %s", post.id, err)
            return locked
        except BlobStoreError as err:
            logger.warning("Media blob for post %s unavailable: %s", post.id, err)
            return locked
        return DecryptedMedia(
            post_id=post.id,
            media_type=post.media_type,
            content=content,
            content_type=media_content_type(post.encrypted_media_key),
        )

    async def _decrypt(self, post: Post) -> bytes:
        key = self.envelope.open_content_key(
            EnvelopeData(
                encrypted_key=post.encrypted_key,
                iv=post.key_iv,
                auth_tag=post.key_auth_tag,
            )
        )
        blob = await self.blob_store.get(post.encrypted_media_key)
        return self.envelope.open_media(blob, key)

    async def thumbnail(self, post_id: str) -> bytes:
        """Return the blurred preview bytes for a post."""
        post = await self._load(post_id)
        return await self.blob_store.get(post.blurred_thumbnail_key)

    async def record_view(self, post_id: str) -> int:
        """Atomically increment the view counter and return the new count."""
        async with self._session_factory() as session, session.begin():
            count = await PostRepository(session).increment_views(post_id)
        if count is None:
            raise PostNotFoundError(post_id)
        return count
