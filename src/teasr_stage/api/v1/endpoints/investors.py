# src/teasr_stage/api/v1/endpoints/investors.py
"""Investor dashboard endpoints."""

from fastapi import APIRouter

from teasr_stage.schemas.investor import InvestorDashboardResponse

from ..dependencies import CurrentUserDep, ServicesDep, SessionDep

router = APIRouter(prefix="/investors", tags=["investors"])


@router.get(
    "/dashboard",
    response_model=InvestorDashboardResponse,
    summary="Get the current user's investor dashboard",
)
async def get_dashboard(
    current_user: CurrentUserDep,
    db: SessionDep,
    services: ServicesDep,
) -> InvestorDashboardResponse:
    dashboard = await services.allocator.investor_dashboard(db, current_user.id)
    return InvestorDashboardResponse.from_dashboard(dashboard)
