# src/teasr_stage/api/v1/endpoints/users.py
"""User revenue endpoints."""

from fastapi import APIRouter

from teasr_stage.schemas.post import RevenueResponse

from ..dependencies import ServicesDep

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}/revenue", response_model=RevenueResponse, summary="Creator revenue in USD")
async def get_user_revenue(user_id: str, services: ServicesDep) -> RevenueResponse:
    """Return the USD value of every payment made for the user's posts."""
    return RevenueResponse(revenue=await services.revenue.creator_revenue_usd(user_id))
