from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class StartRoundRequest(BaseModel):
    end_time: int = Field(..., description="Absolute unix timestamp the round stops selling.")
    ticket_price: int = Field(..., gt=0)
    discount_divisor: int = Field(..., gt=0)
    rewards_breakdown: List[int] = Field(..., description="Six basis-point shares, jackpot last.")
    treasury_fee: int = Field(..., ge=0)

    @field_validator("rewards_breakdown")
    @classmethod
    def validate_breakdown(cls, value: List[int]) -> List[int]:
        if len(value) != 6:
            raise ValueError("Rewards breakdown must have 6 brackets")
        for share in value:
            if not 0 <= share <= 10000:
                raise ValueError("Bracket shares must be between 0 and 10000.")
        return value


class DrawRequest(BaseModel):
    auto_injection: bool = True


class InjectFundsRequest(BaseModel):
    amount: int = Field(..., gt=0)


class BuyTicketsRequest(BaseModel):
    combinations: List[int]


class ClaimTicketsRequest(BaseModel):
    ticket_ids: List[int]
    brackets: List[int]


class FulfillRandomnessRequest(BaseModel):
    random_number: int = Field(..., ge=0)
    round_id: Optional[int] = None


class MaxTicketsRequest(BaseModel):
    max_tickets: int


class RoleAddressesRequest(BaseModel):
    operator: str
    treasury: str
    injector: str


class RecoverFundsRequest(BaseModel):
    token_id: str
    amount: int = Field(..., gt=0)


class RoundResponse(BaseModel):
    round_id: int
    status: str
    start_time: int
    end_time: int
    ticket_price: str
    discount_divisor: int
    rewards_breakdown: List[int]
    treasury_fee: int
    first_ticket_id: int
    first_ticket_id_next_round: int
    amount_collected: str
    final_number: Optional[int] = None
    prize_per_bracket: Optional[List[str]] = None
    count_winners_per_bracket: Optional[List[int]] = None

    @classmethod
    def from_record(cls, record: dict) -> "RoundResponse":
        prizes = record.get("prize_per_bracket")
        return cls(
            **{
                **record,
                "ticket_price": str(record["ticket_price"]),
                "amount_collected": str(record["amount_collected"]),
                "prize_per_bracket": [str(p) for p in prizes] if prizes is not None else None,
            }
        )


class PurchaseResponse(BaseModel):
    round_id: int
    ticket_ids: List[int]


class ClaimResponse(BaseModel):
    round_id: int
    amount: str
    ticket_count: int


class TicketsForOwnerResponse(BaseModel):
    owner: str
    round_id: int
    ticket_ids: List[int]
    combinations: List[int]
    claimed: List[bool]
    next_offset: int


class TicketStatusesResponse(BaseModel):
    ticket_ids: List[int]
    combinations: List[int]
    claimed: List[bool]


class FaucetRequest(BaseModel):
    identity: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)
