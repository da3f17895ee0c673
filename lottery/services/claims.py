from __future__ import annotations

from typing import Optional, Sequence

from ..errors import ConsistencyError, LifecycleError, ValidationError
from ..models import Round, RoundStatus, Ticket
from .brackets import BRACKET_COUNT, matches
from .rounds import RoundRepository
from .tickets import TicketLedger


def reward_for(round_: Round, ticket: Ticket, bracket: int) -> int:
    if round_.final_number is None:
        return 0
    if not matches(ticket.combination, round_.final_number, bracket):
        return 0
    return round_.get_prize_per_bracket()[bracket]


class ClaimValidator:
    def __init__(self, tickets: TicketLedger) -> None:
        self._tickets = tickets

    def claim(
        self,
        session,
        round_: Optional[Round],
        identity: str,
        ticket_ids: Sequence[int],
        brackets: Sequence[int],
        max_per_call: int,
    ) -> int:
        """Consume every ticket and return the total payout.

        Any failing pair aborts the whole claim; the caller pays out only
        after this returns. "Bracket must be higher" looks at every higher
        bracket, not only the next one, so an unfunded bracket in between
        cannot hide a larger prize.
        """
        if len(ticket_ids) != len(brackets):
            raise ValidationError("Not same length")
        if len(ticket_ids) == 0:
            raise ValidationError("No tickets")
        if len(ticket_ids) > max_per_call:
            raise ValidationError("Too many tickets")
        if RoundRepository.status_of(round_) != RoundStatus.CLAIMABLE:
            raise LifecycleError("Not claimable")

        total = 0
        for ticket_id, bracket in zip(ticket_ids, brackets):
            ticket_id, bracket = int(ticket_id), int(bracket)
            if bracket < 0 or bracket >= BRACKET_COUNT:
                raise ValidationError("Bracket out of range")
            if ticket_id >= round_.first_ticket_id_next_round:
                raise ConsistencyError("Ticket too high")
            if ticket_id < round_.first_ticket_id:
                raise ConsistencyError("Ticket too low")

            ticket = self._tickets.get(session, ticket_id)
            if ticket is None or ticket.owner is None or ticket.owner != identity:
                raise ConsistencyError("Not owner")

            reward = reward_for(round_, ticket, bracket)
            if reward == 0:
                raise ConsistencyError("No prize for this bracket")
            for higher in range(bracket + 1, BRACKET_COUNT):
                if reward_for(round_, ticket, higher) != 0:
                    raise ConsistencyError("Bracket must be higher")

            self._tickets.consume(session, ticket)
            total += reward

        session.flush()
        return total
