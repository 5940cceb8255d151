# src/teasr_stage/api/v1/endpoints/posts.py
"""Post, media and payment endpoints for the TEASR API."""

from typing import Annotated

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import RedirectResponse, Response

from teasr_stage.core.settings import settings
from teasr_stage.models.payment import PAYMENT_TYPE_COMMENT, PAYMENT_TYPE_CONTENT
from teasr_stage.repositories.post_repo import PostRepository
from teasr_stage.schemas.payment import PaymentRequest, PaymentResponse
from teasr_stage.schemas.post import (
    BuyoutCountResponse,
    PostResponse,
    RevenueResponse,
    ViewCountResponse,
    VoteCountsResponse,
    VoteRequest,
)
from teasr_stage.services.access_gate import DecryptedMedia
from teasr_stage.services.broadcast import EVENT_VIEW_UPDATE, Event
from teasr_stage.services.errors import BlobStoreError, MonetizationError, PostNotFoundError
from teasr_stage.services.publisher import PublishRequest
from teasr_stage.services.registry import ServiceRegistry

from ..dependencies import (
    CurrentUserDep,
    OptionalUserDep,
    ServicesDep,
    SessionDep,
    http_error,
)

router = APIRouter(prefix="/posts", tags=["posts"])


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() == "true"


@router.post(
    "",
    response_model=PostResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload and encrypt new content",
)
async def upload_post(
    current_user: CurrentUserDep,
    services: ServicesDep,
    file: Annotated[UploadFile, File()],
    title: Annotated[str, Form()],
    description: Annotated[str, Form()] = "",
    price: Annotated[str, Form()] = "0",
    is_free: Annotated[str | None, Form(alias="isFree")] = None,
    buyout_price: Annotated[str | None, Form(alias="buyoutPrice")] = None,
    max_investors: Annotated[int | None, Form(alias="maxInvestors")] = None,
    investor_revenue_share: Annotated[str | None, Form(alias="investorRevenueShare")] = None,
    accepted_cryptos: Annotated[str | None, Form(alias="acceptedCryptos")] = None,
    comments_locked: Annotated[str | None, Form(alias="commentsLocked")] = None,
    comment_fee: Annotated[str | None, Form(alias="commentFee")] = None,
) -> PostResponse:
    """Seal the uploaded media, store a blurred preview and create the post."""
    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")

    request = PublishRequest(
        creator_id=current_user.id,
        title=title,
        content=content,
        mime_type=file.content_type or "application/octet-stream",
        description=description,
        price=price,
        is_free=_flag(is_free),
        buyout_price=buyout_price or None,
        max_investor_slots=max_investors or settings.default_max_investor_slots,
        investor_revenue_share_percent=investor_revenue_share or "0",
        accepted_currencies=(accepted_cryptos or "USDC").split(","),
        comments_locked=_flag(comments_locked),
        comment_fee=comment_fee or None,
    )
    try:
        post = await services.publisher.publish(request)
    except MonetizationError as err:
        raise http_error(err) from err
    return PostResponse.model_validate(post)


@router.get("/{post_id}", response_model=PostResponse, summary="Get a post")
async def get_post(post_id: str, db: SessionDep) -> PostResponse:
    post = await PostRepository(db).get_by_id(post_id)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return PostResponse.model_validate(post)


@router.get("/{post_id}/media", summary="Get decrypted media or the locked preview")
async def get_media(
    post_id: str,
    request: Request,
    current_user: OptionalUserDep,
    services: ServicesDep,
) -> Response:
    """Return decrypted bytes to entitled viewers; redirect everyone else."""
    viewer_id = current_user.id if current_user is not None else None
    try:
        resolved = await services.access_gate.resolve(viewer_id, post_id)
    except PostNotFoundError as err:
        raise http_error(err) from err

    if isinstance(resolved, DecryptedMedia):
        return Response(
            content=resolved.content,
            media_type=resolved.content_type,
            headers={"Cache-Control": "private, no-store"},
        )
    return RedirectResponse(
        url=str(request.url_for("get_thumbnail", post_id=post_id)),
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )


@router.get("/{post_id}/thumbnail", summary="Get the blurred preview")
async def get_thumbnail(post_id: str, services: ServicesDep) -> Response:
    try:
        data = await services.access_gate.thumbnail(post_id)
    except PostNotFoundError as err:
        raise http_error(err) from err
    except BlobStoreError as err:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Thumbnail not found"
        ) from err
    return Response(content=data, media_type="image/jpeg")


@router.post("/{post_id}/view", response_model=ViewCountResponse, summary="Count a view")
async def record_view(post_id: str, services: ServicesDep) -> ViewCountResponse:
    try:
        count = await services.access_gate.record_view(post_id)
    except PostNotFoundError as err:
        raise http_error(err) from err
    services.broadcaster.publish(
        Event(EVENT_VIEW_UPDATE, {"postId": post_id, "viewCount": count})
    )
    return ViewCountResponse(view_count=count)


@router.post("/{post_id}/vote", response_model=VoteCountsResponse, summary="Vote on a post")
async def vote_on_post(
    post_id: str,
    vote: VoteRequest,
    current_user: CurrentUserDep,
    services: ServicesDep,
) -> VoteCountsResponse:
    try:
        counts = await services.votes.cast_vote(current_user.id, post_id, vote.vote_type)
    except PostNotFoundError as err:
        raise http_error(err) from err
    return VoteCountsResponse(
        post_id=counts.post_id,
        upvote_count=counts.upvote_count,
        downvote_count=counts.downvote_count,
    )


@router.get(
    "/{post_id}/buyout-count",
    response_model=BuyoutCountResponse,
    summary="Get investor slot usage",
)
async def get_buyout_count(
    post_id: str,
    db: SessionDep,
    current_user: OptionalUserDep,
    services: ServicesDep,
) -> BuyoutCountResponse:
    post = await PostRepository(db).get_by_id(post_id)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    allocator = services.allocator
    position = None
    if current_user is not None:
        position = await allocator.investor_position(db, current_user.id, post_id)
    return BuyoutCountResponse(
        investor_count=await allocator.investor_count(db, post_id),
        max_investor_slots=post.max_investor_slots,
        user_position=position,
    )


@router.get("/{post_id}/revenue", response_model=RevenueResponse, summary="Post revenue in USD")
async def get_post_revenue(post_id: str, services: ServicesDep) -> RevenueResponse:
    try:
        revenue = await services.revenue.post_revenue_usd(post_id)
    except PostNotFoundError as err:
        raise http_error(err) from err
    return RevenueResponse(revenue=revenue)


async def _pay(
    services: ServiceRegistry,
    payer_id: str,
    post_id: str,
    payment_type: str,
    payment: PaymentRequest,
) -> PaymentResponse:
    ledger = services.ledger
    is_buyout = payment.is_buyout and payment_type == PAYMENT_TYPE_CONTENT
    try:
        currency, network = await ledger.validate_request(
            post_id, payment.currency, payment.network
        )
        amount = await ledger.quote(post_id, payment_type, is_buyout=is_buyout)
        outcome = await ledger.record_payment(
            payer_id,
            post_id,
            payment_type,
            amount,
            currency,
            network,
            payment.transaction_proof,
            is_buyout=is_buyout,
        )
    except MonetizationError as err:
        raise http_error(err) from err
    return PaymentResponse.from_outcome(outcome)


@router.post("/{post_id}/pay", response_model=PaymentResponse, summary="Unlock content")
async def pay_for_post(
    post_id: str,
    payment: PaymentRequest,
    current_user: CurrentUserDep,
    services: ServicesDep,
) -> PaymentResponse:
    """Record a content payment, optionally claiming an investor slot."""
    return await _pay(services, current_user.id, post_id, PAYMENT_TYPE_CONTENT, payment)


@router.post(
    "/{post_id}/pay-comment",
    response_model=PaymentResponse,
    summary="Unlock comments",
)
async def pay_for_comments(
    post_id: str,
    payment: PaymentRequest,
    current_user: CurrentUserDep,
    services: ServicesDep,
) -> PaymentResponse:
    return await _pay(services, current_user.id, post_id, PAYMENT_TYPE_COMMENT, payment)
