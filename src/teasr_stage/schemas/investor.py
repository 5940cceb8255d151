# src/teasr_stage/schemas/investor.py
"""Investor dashboard schemas."""

from pydantic import BaseModel, ConfigDict, Field

from teasr_stage.db.types import format_money
from teasr_stage.services.allocator import InvestorDashboard


class InvestmentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    post_id: str = Field(alias="postId")
    post_title: str = Field(alias="postTitle")
    position: int
    earnings_generated: str = Field(alias="earningsGenerated")
    total_unlocks: int = Field(alias="totalUnlocks")
    investment_amount: str = Field(alias="investmentAmount")


class InvestorDashboardResponse(BaseModel):
    """Summary of a user's investor positions, highest earners first."""

    model_config = ConfigDict(populate_by_name=True)

    total_earnings: str = Field(alias="totalEarnings")
    investments: list[InvestmentResponse]

    @classmethod
    def from_dashboard(cls, dashboard: InvestorDashboard) -> "InvestorDashboardResponse":
        return cls(
            total_earnings=format_money(dashboard.total_earnings),
            investments=[
                InvestmentResponse(
                    post_id=item.post_id,
                    post_title=item.post_title,
                    position=item.position,
                    earnings_generated=format_money(item.earnings_generated),
                    total_unlocks=item.total_unlocks,
                    investment_amount=format_money(item.investment_amount),
                )
                for item in dashboard.investments
            ],
        )
