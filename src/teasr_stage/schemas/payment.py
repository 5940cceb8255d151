# src/teasr_stage/schemas/payment.py
"""Payment request and outcome schemas."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from teasr_stage.db.types import format_money
from teasr_stage.services.ledger import PaymentOutcome
from teasr_stage.services.settlement import SettlementResult


class PaymentRequest(BaseModel):
    """Body of a pay or pay-comment request.

    ``transactionProof`` is the client-supplied transaction hash; it is stored
    as received.
    """

    model_config = ConfigDict(populate_by_name=True)

    transaction_proof: str = Field(..., min_length=1, alias="transactionProof")
    currency: str = Field("USDC", min_length=1, max_length=16)
    network: str | None = Field(None, max_length=32)
    is_buyout: bool = Field(False, alias="isBuyout")


class SettlementLeg(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    investor_id: str = Field(alias="investorId")
    wallet: str
    position: int
    amount: str


class SettlementResponse(BaseModel):
    route: str
    currency: str
    total: str
    platform: str
    creator: str
    investors: list[SettlementLeg]

    @classmethod
    def from_result(cls, result: SettlementResult) -> "SettlementResponse":
        return cls(
            route=result.route,
            currency=result.currency,
            total=format_money(result.total),
            platform=format_money(result.platform),
            creator=format_money(result.creator),
            investors=[
                SettlementLeg(
                    investor_id=leg.investor_id,
                    wallet=leg.wallet,
                    position=leg.position,
                    amount=format_money(leg.amount),
                )
                for leg in result.investors
            ],
        )


class PaymentResponse(BaseModel):
    """Outcome of a payment request."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    already_paid: bool = Field(alias="alreadyPaid")
    payment_id: str | None = Field(default=None, alias="paymentId")
    amount: str | None = None
    currency: str | None = None
    network: str | None = None
    is_buyout: bool = Field(default=False, alias="isBuyout")
    investor_position: int | None = Field(default=None, alias="investorPosition")
    investor_count: int | None = Field(default=None, alias="investorCount")
    per_investor_share: str | None = Field(default=None, alias="perInvestorShare")
    comment_access_granted: bool = Field(
        default=False, alias="commentAccessGranted"
    )
    settlement: SettlementResponse | None = None

    @classmethod
    def from_outcome(cls, outcome: PaymentOutcome) -> "PaymentResponse":
        record = outcome.record
        investor = outcome.investor_outcome
        settlement = outcome.settlement
        return cls(
            already_paid=outcome.already_paid,
            payment_id=record.id if record is not None else None,
            amount=format_money(record.amount) if record is not None else None,
            currency=record.currency if record is not None else None,
            network=record.network if record is not None else None,
            is_buyout=record.is_buyout if record is not None else False,
            investor_position=investor.position if investor is not None else None,
            investor_count=investor.investor_count if investor is not None else None,
            per_investor_share=(
                format_money(investor.per_investor_share)
                if investor is not None and investor.per_investor_share > Decimal("0")
                else None
            ),
            comment_access_granted=outcome.comment_access_granted,
            settlement=(
                SettlementResponse.from_result(settlement) if settlement is not None else None
            ),
        )
