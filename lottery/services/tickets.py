from __future__ import annotations

from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import LifecycleError, NotFound, ValidationError
from ..models import BracketCount, Round, RoundStatus, Ticket
from .brackets import bridge_key, bridge_keys, is_valid_combination
from .pricing import price_for_bulk
from .rounds import RoundRepository


class TicketLedger:
    """Ticket rows plus the per-round bridge index kept in step with them.

    Every purchase bumps one counter per bracket, so the draw can read the
    number of tickets sharing the winning suffix without scanning tickets.
    """

    def __init__(self, rounds: RoundRepository) -> None:
        self._rounds = rounds

    def purchase(
        self,
        session,
        round_: Optional[Round],
        identity: str,
        combinations: Sequence[int],
        now: int,
        max_per_call: int,
    ) -> Tuple[List[int], int]:
        """Record the tickets and return ``(ticket_ids, total_cost)``.

        The caller moves ``total_cost`` from the buyer once the rows are flushed.
        """
        if len(combinations) == 0:
            raise ValidationError("No tickets")
        if len(combinations) > max_per_call:
            raise ValidationError("Too many tickets")
        if RoundRepository.status_of(round_) != RoundStatus.OPEN:
            raise LifecycleError("Lottery not open")
        if now >= round_.end_time:
            raise LifecycleError("Lottery closed")
        for combination in combinations:
            if not is_valid_combination(int(combination)):
                raise ValidationError("Invalid ticket number")

        cost = price_for_bulk(round_.discount_divisor, round_.ticket_price, len(combinations))

        state = self._rounds.ensure_state(session)
        first_id = state.current_ticket_id
        increments: Counter = Counter()
        ticket_ids: List[int] = []
        for offset, combination in enumerate(combinations):
            ticket_id = first_id + offset
            combination = int(combination)
            session.add(
                Ticket(
                    id=ticket_id,
                    round_id=round_.id,
                    combination=combination,
                    buyer=identity,
                    owner=identity,
                    claimed=False,
                )
            )
            increments.update(bridge_keys(combination))
            ticket_ids.append(ticket_id)

        for key, amount in increments.items():
            cell = session.get(BracketCount, (round_.id, key))
            if cell is None:
                session.add(BracketCount(round_id=round_.id, bridge_key=key, count=amount))
            else:
                cell.count += amount

        state.current_ticket_id = first_id + len(ticket_ids)
        round_.amount_collected = round_.amount_collected + cost
        session.flush()
        return ticket_ids, cost

    def bridge_count(self, session, round_id: int, bracket: int, number: int) -> int:
        cell = session.get(BracketCount, (int(round_id), bridge_key(number, bracket)))
        return cell.count if cell is not None else 0

    def get(self, session, ticket_id: int) -> Optional[Ticket]:
        return session.get(Ticket, int(ticket_id))

    def consume(self, session, ticket: Ticket) -> None:
        ticket.owner = None
        ticket.claimed = True

    def tickets_for_owner(
        self, session, owner: str, round_id: int, offset: int, limit: int
    ) -> Dict[str, object]:
        if offset < 0 or limit < 0:
            raise ValidationError("Offset and limit must be >= 0")
        rows = (
            session.query(Ticket)
            .filter(Ticket.buyer == owner, Ticket.round_id == int(round_id))
            .order_by(Ticket.id)
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "ticket_ids": [row.id for row in rows],
            "combinations": [row.combination for row in rows],
            "claimed": [row.claimed for row in rows],
            "next_offset": offset + len(rows),
        }

    def combinations_and_statuses(
        self, session, ticket_ids: Sequence[int]
    ) -> Tuple[List[int], List[bool]]:
        combinations: List[int] = []
        statuses: List[bool] = []
        for ticket_id in ticket_ids:
            ticket = self.get(session, ticket_id)
            if ticket is None:
                raise NotFound(f"Unknown ticket {ticket_id}")
            combinations.append(ticket.combination)
            statuses.append(ticket.claimed)
        return combinations, statuses
