from __future__ import annotations

import datetime as dt
import enum
import json
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


class TokenAmount(TypeDecorator):
    """Arbitrary precision token amount stored as decimal text."""

    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class RoundStatus(str, enum.Enum):
    PENDING = "Pending"
    OPEN = "Open"
    CLOSED = "Closed"
    CLAIMABLE = "Claimable"


class Round(Base):
    __tablename__ = "rounds"

    id = Column(Integer, primary_key=True, autoincrement=False)
    status = Column(Enum(RoundStatus), nullable=False, default=RoundStatus.PENDING)
    start_time = Column(Integer, nullable=False)
    end_time = Column(Integer, nullable=False)
    ticket_price = Column(TokenAmount, nullable=False)
    discount_divisor = Column(Integer, nullable=False)
    rewards_breakdown = Column(Text, nullable=False)
    treasury_fee = Column(Integer, nullable=False)
    prize_per_bracket = Column(Text, nullable=False, default="[0, 0, 0, 0, 0, 0]")
    count_winners_per_bracket = Column(Text, nullable=False, default="[0, 0, 0, 0, 0, 0]")
    first_ticket_id = Column(Integer, nullable=False)
    first_ticket_id_next_round = Column(Integer, nullable=False)
    amount_collected = Column(TokenAmount, nullable=False, default=0)
    final_number = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow, nullable=False)

    def set_rewards_breakdown(self, breakdown: List[int]) -> None:
        self.rewards_breakdown = json.dumps([int(x) for x in breakdown])

    def get_rewards_breakdown(self) -> List[int]:
        return json.loads(self.rewards_breakdown)

    def set_prize_per_bracket(self, prizes: List[int]) -> None:
        self.prize_per_bracket = json.dumps([int(x) for x in prizes])

    def get_prize_per_bracket(self) -> List[int]:
        return json.loads(self.prize_per_bracket)

    def set_count_winners_per_bracket(self, counts: List[int]) -> None:
        self.count_winners_per_bracket = json.dumps([int(x) for x in counts])

    def get_count_winners_per_bracket(self) -> List[int]:
        return json.loads(self.count_winners_per_bracket)

    def to_dict(self) -> dict:
        # prize pools are only meaningful once the draw has run
        drawn = self.status == RoundStatus.CLAIMABLE
        return {
            "round_id": self.id,
            "status": self.status.value,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "ticket_price": self.ticket_price,
            "discount_divisor": self.discount_divisor,
            "rewards_breakdown": self.get_rewards_breakdown(),
            "treasury_fee": self.treasury_fee,
            "prize_per_bracket": self.get_prize_per_bracket() if drawn else None,
            "count_winners_per_bracket": self.get_count_winners_per_bracket() if drawn else None,
            "first_ticket_id": self.first_ticket_id,
            "first_ticket_id_next_round": self.first_ticket_id_next_round,
            "amount_collected": self.amount_collected,
            "final_number": self.final_number,
        }


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (Index("ix_tickets_buyer_round", "buyer", "round_id", "id"),)

    id = Column(Integer, primary_key=True, autoincrement=False)
    round_id = Column(Integer, ForeignKey("rounds.id"), nullable=False)
    combination = Column(Integer, nullable=False)
    buyer = Column(String(64), nullable=False)
    owner = Column(String(64), nullable=True)
    claimed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "ticket_id": self.id,
            "round_id": self.round_id,
            "combination": self.combination,
            "buyer": self.buyer,
            "claimed": self.claimed,
        }


class BracketCount(Base):
    """One cell of the bridge index: tickets of a round sharing a bracket suffix."""

    __tablename__ = "bracket_counts"

    round_id = Column(Integer, ForeignKey("rounds.id"), primary_key=True)
    bridge_key = Column(Integer, primary_key=True)
    count = Column(Integer, nullable=False, default=0)


class RoleAssignment(Base):
    __tablename__ = "roles"

    role = Column(String(32), primary_key=True)
    identity = Column(String(64), nullable=False)


class SystemState(Base):
    __tablename__ = "system_state"

    id = Column(Integer, primary_key=True, default=1)
    current_round_id = Column(Integer, nullable=False, default=0)
    current_ticket_id = Column(Integer, nullable=False, default=0)
    pending_injection_next_round = Column(TokenAmount, nullable=False, default=0)
    max_tickets_per_call = Column(Integer, nullable=False, default=100)
    randomness_source = Column(String(128), nullable=True)
    # mirror of the local randomness source so a restart can resume a Closed round
    randomness_pending_round_id = Column(Integer, nullable=True)
    randomness_fulfilled_round_id = Column(Integer, nullable=True)
    randomness_value = Column(TokenAmount, nullable=True)


def role_identity(session, role: str) -> Optional[str]:
    assignment = session.get(RoleAssignment, role)
    return assignment.identity if assignment else None
