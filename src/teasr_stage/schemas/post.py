# src/teasr_stage/schemas/post.py
"""Post-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from teasr_stage.db.time import as_utc
from teasr_stage.db.types import format_money


class PostResponse(BaseModel):
    """Public view of a post; key material never leaves the server."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    creator_id: str
    title: str
    description: str
    media_type: str
    base_price: Decimal
    buyout_price: Decimal | None
    is_free: bool
    accepted_currencies: str
    max_investor_slots: int
    investor_revenue_share_percent: Decimal
    comments_locked: bool
    comment_fee: Decimal | None
    view_count: int
    upvote_count: int
    downvote_count: int
    is_viral: bool
    viral_detected_at: datetime | None
    created_at: datetime

    @field_serializer(
        "base_price", "buyout_price", "investor_revenue_share_percent", "comment_fee"
    )
    def _money(self, value: Decimal | None) -> str | None:
        return format_money(value) if value is not None else None

    @field_validator("viral_detected_at", "created_at")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)


class VoteRequest(BaseModel):
    """Schema for casting a vote."""

    vote_type: Literal["up", "down"] = Field(..., alias="voteType")

    model_config = ConfigDict(populate_by_name=True)


class VoteCountsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    post_id: str = Field(alias="postId")
    upvote_count: int = Field(alias="upvoteCount")
    downvote_count: int = Field(alias="downvoteCount")


class ViewCountResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    view_count: int = Field(alias="viewCount")


class BuyoutCountResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    investor_count: int = Field(alias="investorCount")
    max_investor_slots: int = Field(alias="maxInvestorSlots")
    user_position: int | None = Field(default=None, alias="userPosition")


class RevenueResponse(BaseModel):
    revenue: str
