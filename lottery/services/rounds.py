from __future__ import annotations

from typing import Dict, List, Optional

from sqlalchemy import desc

from ..errors import NotFound
from ..models import Round, RoundStatus, SystemState


class RoundRepository:
    """Round records and the global counters they are cut from."""

    def __init__(self, default_max_tickets: int = 100) -> None:
        self._default_max_tickets = default_max_tickets

    def ensure_state(self, session) -> SystemState:
        state = session.get(SystemState, 1)
        if state is None:
            state = SystemState(
                id=1,
                current_round_id=0,
                current_ticket_id=0,
                pending_injection_next_round=0,
                max_tickets_per_call=self._default_max_tickets,
            )
            session.add(state)
            session.flush()
        return state

    def get(self, session, round_id: int) -> Optional[Round]:
        return session.get(Round, int(round_id))

    def require(self, session, round_id: int) -> Round:
        round_ = self.get(session, round_id)
        if round_ is None:
            raise NotFound(f"Unknown round {round_id}")
        return round_

    @staticmethod
    def status_of(round_: Optional[Round]) -> RoundStatus:
        return round_.status if round_ is not None else RoundStatus.PENDING

    def current(self, session) -> Optional[Round]:
        state = self.ensure_state(session)
        if state.current_round_id == 0:
            return None
        return self.get(session, state.current_round_id)

    def open_round(
        self,
        session,
        start_time: int,
        end_time: int,
        ticket_price: int,
        discount_divisor: int,
        rewards_breakdown: List[int],
        treasury_fee: int,
    ) -> Round:
        state = self.ensure_state(session)
        round_id = state.current_round_id + 1

        round_ = Round(
            id=round_id,
            status=RoundStatus.OPEN,
            start_time=start_time,
            end_time=end_time,
            ticket_price=ticket_price,
            discount_divisor=discount_divisor,
            treasury_fee=treasury_fee,
            first_ticket_id=state.current_ticket_id,
            first_ticket_id_next_round=state.current_ticket_id,
            amount_collected=state.pending_injection_next_round,
        )
        round_.set_rewards_breakdown(rewards_breakdown)
        round_.set_prize_per_bracket([0] * 6)
        round_.set_count_winners_per_bracket([0] * 6)
        session.add(round_)

        state.current_round_id = round_id
        state.pending_injection_next_round = 0
        session.flush()
        return round_

    def add_funds(self, session, round_: Round, amount: int) -> int:
        round_.amount_collected = round_.amount_collected + amount
        session.flush()
        return round_.amount_collected

    def close(self, session, round_: Round) -> Round:
        state = self.ensure_state(session)
        round_.first_ticket_id_next_round = state.current_ticket_id
        round_.status = RoundStatus.CLOSED
        session.flush()
        return round_

    def make_claimable(
        self,
        session,
        round_: Round,
        final_number: int,
        prize_per_bracket: List[int],
        count_winners_per_bracket: List[int],
    ) -> Round:
        round_.final_number = final_number
        round_.set_prize_per_bracket(prize_per_bracket)
        round_.set_count_winners_per_bracket(count_winners_per_bracket)
        round_.status = RoundStatus.CLAIMABLE
        session.flush()
        return round_

    def list_rounds(self, session, limit: Optional[int] = None) -> List[Dict[str, object]]:
        query = session.query(Round).order_by(desc(Round.id))
        if limit:
            query = query.limit(limit)
        return [round_.to_dict() for round_ in query.all()]
