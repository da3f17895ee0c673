from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RoundStatus(str, Enum):
    PENDING = "Pending"
    OPEN = "Open"
    CLOSED = "Closed"
    CLAIMABLE = "Claimable"


@dataclass(frozen=True)
class RoundSnapshot:
    round_id: int
    status: RoundStatus
    end_time: int
    final_number: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "RoundSnapshot":
        return cls(
            round_id=int(payload["round_id"]),
            status=RoundStatus(payload["status"]),
            end_time=int(payload["end_time"]),
            final_number=payload.get("final_number"),
        )


@dataclass(frozen=True)
class RandomnessStatus:
    source: str
    latest_fulfilled_round_id: Optional[int]
    pending_round_id: Optional[int]
