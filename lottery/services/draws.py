from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from ..models import Round
from .brackets import BASIS_POINTS, BRACKET_COUNT, normalise_final_number
from .rounds import RoundRepository
from .tickets import TicketLedger


@dataclass(frozen=True)
class DrawOutcome:
    final_number: int
    amount_to_share: int
    prize_per_bracket: List[int]
    count_winners_per_bracket: List[int]
    treasury_carry: int
    total_winners: int


def split_prize_pool(
    amount_collected: int,
    treasury_fee: int,
    rewards_breakdown: Sequence[int],
    bridge_counts: Sequence[int],
) -> tuple:
    """Split a round's pool across brackets from the raw bridge counts.

    ``bridge_counts[j]`` is the number of tickets sharing the final number's
    last ``j + 1`` digits. Walking from the jackpot down, a bracket only pays
    the tickets not already paid by a funded bracket above it. Funded brackets
    without winners hand their share to the treasury carry.

    Returns ``(amount_to_share, prize_per_bracket, count_winners_per_bracket,
    treasury_carry)``.
    """
    amount_to_share = amount_collected * (BASIS_POINTS - treasury_fee) // BASIS_POINTS
    treasury_carry = amount_collected - amount_to_share

    prizes = [0] * BRACKET_COUNT
    winners = [0] * BRACKET_COUNT
    paid_above = 0
    for bracket in reversed(range(BRACKET_COUNT)):
        count = bridge_counts[bracket] - paid_above
        share = rewards_breakdown[bracket] * amount_to_share // BASIS_POINTS
        winners[bracket] = count
        if count == 0:
            treasury_carry += share
        elif rewards_breakdown[bracket] != 0:
            prizes[bracket] = share // count
            paid_above = bridge_counts[bracket]

    return amount_to_share, prizes, winners, treasury_carry


class DrawEngine:
    def __init__(self, rounds: RoundRepository, tickets: TicketLedger) -> None:
        self._rounds = rounds
        self._tickets = tickets

    def draw(self, session, round_: Round, random_number: int) -> DrawOutcome:
        final_number = normalise_final_number(random_number)
        bridge_counts = [
            self._tickets.bridge_count(session, round_.id, bracket, final_number)
            for bracket in range(BRACKET_COUNT)
        ]
        amount_to_share, prizes, winners, carry = split_prize_pool(
            round_.amount_collected,
            round_.treasury_fee,
            round_.get_rewards_breakdown(),
            bridge_counts,
        )
        self._rounds.make_claimable(session, round_, final_number, prizes, winners)
        return DrawOutcome(
            final_number=final_number,
            amount_to_share=amount_to_share,
            prize_per_bracket=prizes,
            count_winners_per_bracket=winners,
            treasury_carry=carry,
            total_winners=bridge_counts[0],
        )
