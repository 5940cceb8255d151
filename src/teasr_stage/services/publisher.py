"""Upload pipeline: seal media, render the blurred preview, create the post."""

from __future__ import annotations

import asyncio
import io
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from PIL import Image, ImageFilter, UnidentifiedImageError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teasr_stage.db.types import to_money
from teasr_stage.models.post import DEFAULT_MAX_INVESTOR_SLOTS, MAX_INVESTOR_SLOTS_LIMIT, Post
from teasr_stage.repositories.post_repo import PostRepository
from teasr_stage.services.blob_store import BlobStore
from teasr_stage.services.envelope import CryptoEnvelope
from teasr_stage.services.errors import PaymentValidationError

logger = logging.getLogger(__name__)

THUMBNAIL_WIDTH = 500
THUMBNAIL_BLUR_RADIUS = 20
THUMBNAIL_JPEG_QUALITY = 70
PLACEHOLDER_COLOR = (64, 64, 64)

MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "video/mp4": "mp4",
    "video/webm": "webm",
}


def file_extension(mime_type: str) -> str:
    return MIME_EXTENSIONS.get(mime_type, "bin")


def render_blurred_thumbnail(data: bytes) -> bytes:
    """Return a blurred JPEG preview 500px wide.

    Media Pillow cannot decode (video, corrupt uploads) get a flat placeholder.
    """
    try:
        with Image.open(io.BytesIO(data)) as source:
            image = source.convert("RGB")
    except (UnidentifiedImageError, OSError):
        image = Image.new("RGB", (THUMBNAIL_WIDTH, THUMBNAIL_WIDTH), PLACEHOLDER_COLOR)
    else:
        height = max(1, round(image.height * THUMBNAIL_WIDTH / image.width))
        image = image.resize((THUMBNAIL_WIDTH, height))
        image = image.filter(ImageFilter.GaussianBlur(THUMBNAIL_BLUR_RADIUS))

    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=THUMBNAIL_JPEG_QUALITY)
    return buffer.getvalue()


@dataclass(frozen=True)
class PublishRequest:
    """Everything a creator supplies with an upload."""

    creator_id: str
    title: str
    content: bytes
    mime_type: str
    description: str = ""
    price: Decimal | str = Decimal("0")
    is_free: bool = False
    buyout_price: Decimal | str | None = None
    max_investor_slots: int = DEFAULT_MAX_INVESTOR_SLOTS
    investor_revenue_share_percent: Decimal | str = Decimal("0")
    accepted_currencies: Iterable[str] = ("USDC",)
    comments_locked: bool = False
    comment_fee: Decimal | str | None = None


class ContentPublisher:
    """Turns an upload into a sealed blob, a blurred preview and a post row."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        envelope: CryptoEnvelope,
        blob_store: BlobStore,
    ) -> None:
        self._session_factory = session_factory
        self.envelope = envelope
        self.blob_store = blob_store

    async def publish(self, request: PublishRequest) -> Post:
        """Store the media encrypted and create the post.

        Raises:
            PaymentValidationError: If pricing or pool settings are out of range.
        """
        pricing = self._validate(request)

        content_key = self.envelope.generate_content_key()
        blob = self.envelope.seal_media(request.content, content_key)
        sealed_key = self.envelope.seal_content_key(content_key)

        media_key = f"{uuid.uuid4()}.{file_extension(request.mime_type)}.enc"
        thumbnail_key = f"thumbnails/thumb_{uuid.uuid4()}.jpg"
        thumbnail = await asyncio.to_thread(render_blurred_thumbnail, request.content)

        await self.blob_store.put(media_key, blob)
        await self.blob_store.put(thumbnail_key, thumbnail)

        post = Post(
            creator_id=request.creator_id,
            title=request.title,
            description=request.description,
            media_type="image" if request.mime_type.startswith("image/") else "video",
            encrypted_media_key=media_key,
            blurred_thumbnail_key=thumbnail_key,
            encrypted_key=sealed_key.encrypted_key,
            key_iv=sealed_key.iv,
            key_auth_tag=sealed_key.auth_tag,
            is_free=request.is_free,
            comments_locked=request.comments_locked,
            max_investor_slots=request.max_investor_slots,
            **pricing,
        )
        async with self._session_factory() as session, session.begin():
            await PostRepository(session).add(post)

        logger.info(
            "Published post %s by %s (%d bytes, free=%s)",
            post.id,
            request.creator_id,
            len(request.content),
            request.is_free,
        )
        return post

    @staticmethod
    def _validate(request: PublishRequest) -> dict[str, object]:
        if not request.title.strip():
            raise PaymentValidationError("A title is required")
        if not 1 <= request.max_investor_slots <= MAX_INVESTOR_SLOTS_LIMIT:
            raise PaymentValidationError(
                f"Investor slots must be between 1 and {MAX_INVESTOR_SLOTS_LIMIT}"
            )
        try:
            price = Decimal("0") if request.is_free else to_money(request.price)
            buyout = to_money(request.buyout_price) if request.buyout_price else None
            share = to_money(request.investor_revenue_share_percent)
            comment_fee = (
                to_money(request.comment_fee)
                if request.comments_locked and request.comment_fee
                else None
            )
        except (TypeError, ValueError) as err:
            raise PaymentValidationError(str(err)) from err

        if price < 0 or (buyout is not None and buyout < 0):
            raise PaymentValidationError("Prices must not be negative")
        if comment_fee is not None and comment_fee < 0:
            raise PaymentValidationError("Comment fee must not be negative")
        if not 0 <= share <= 100:
            raise PaymentValidationError("Investor revenue share must be between 0 and 100")

        currencies = sorted(
            {code.strip().upper() for code in request.accepted_currencies if code.strip()}
        )
        if not currencies:
            raise PaymentValidationError("At least one accepted currency is required")

        return {
            "base_price": price,
            "buyout_price": buyout,
            "investor_revenue_share_percent": share,
            "comment_fee": comment_fee,
            "accepted_currencies": ",".join(currencies),
        }
