from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.orm import Session, sessionmaker

from .. import events as ev
from ..config import AppSettings, LotteryLimits
from ..db import session_scope
from ..errors import AuthorizationError, ConsistencyError, LifecycleError, NotFound, ValidationError
from ..events import EventBus, LotteryEvent
from ..models import RoleAssignment, RoundStatus, role_identity
from .brackets import BASIS_POINTS, BRACKET_COUNT
from .claims import ClaimValidator, reward_for
from .draws import DrawEngine
from .pricing import price_for_bulk
from .randomness import LocalRandomnessSource, RandomnessSource
from .rounds import RoundRepository
from .tickets import TicketLedger
from .token import InMemoryTokenLedger, TokenLedger

OWNER = "owner"
OPERATOR = "operator"
TREASURY = "treasury"
INJECTOR = "injector"

ZERO_ADDRESS = "0x" + "0" * 40


def _valid_identity(identity: Optional[str]) -> bool:
    return bool(identity) and identity != ZERO_ADDRESS


class LotteryService:
    """Entry point for every lottery operation.

    Each call runs under one process-wide lock and one database transaction:
    roles and round state are checked first, state is written and flushed,
    token movements happen last, and events are published only once the
    transaction has committed.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        token: TokenLedger,
        randomness: RandomnessSource,
        limits: Optional[LotteryLimits] = None,
        clock: Optional[Callable[[], int]] = None,
        event_bus: Optional[EventBus] = None,
        foreign_tokens: Optional[Mapping[str, TokenLedger]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._session_factory = session_factory
        self._token = token
        self._randomness = randomness
        self._limits = limits or LotteryLimits()
        self._clock = clock or (lambda: int(time.time()))
        self.events = event_bus or EventBus()
        self._foreign_tokens: Dict[str, TokenLedger] = dict(foreign_tokens or {})
        self._logger = logger or logging.getLogger("lottery.service")
        self._lock = threading.RLock()

        self._rounds = RoundRepository(default_max_tickets=self._limits.max_tickets_per_call)
        self._tickets = TicketLedger(self._rounds)
        self._draws = DrawEngine(self._rounds, self._tickets)
        self._claims = ClaimValidator(self._tickets)

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        session_factory: sessionmaker,
        token: TokenLedger,
        randomness: RandomnessSource,
        **kwargs,
    ) -> "LotteryService":
        service = cls(session_factory, token, randomness, limits=settings.limits, **kwargs)
        service.bootstrap(
            owner=settings.roles.owner,
            operator=settings.roles.operator,
            treasury=settings.roles.treasury,
            injector=settings.roles.injector,
        )
        return service

    @property
    def randomness(self) -> RandomnessSource:
        return self._randomness

    @property
    def payment_token(self) -> TokenLedger:
        return self._token

    def register_foreign_token(self, token: TokenLedger) -> None:
        self._foreign_tokens[token.token_id] = token

    def bootstrap(
        self,
        owner: str,
        operator: Optional[str] = None,
        treasury: Optional[str] = None,
        injector: Optional[str] = None,
    ) -> None:
        """Seed the role table on first start; existing assignments win."""
        with self._operation() as (session, _):
            state = self._rounds.ensure_state(session)
            if state.randomness_source is None:
                state.randomness_source = self._randomness.source_id
            elif state.randomness_source == self._randomness.source_id:
                self._restore_randomness(state)
            for role, identity in (
                (OWNER, owner),
                (OPERATOR, operator),
                (TREASURY, treasury),
                (INJECTOR, injector),
            ):
                if identity and session.get(RoleAssignment, role) is None:
                    session.add(RoleAssignment(role=role, identity=identity))

    # ------------------------------------------------------------------ #
    # Operator
    # ------------------------------------------------------------------ #

    def start_round(
        self,
        caller: str,
        end_time: int,
        ticket_price: int,
        discount_divisor: int,
        rewards_breakdown: Sequence[int],
        treasury_fee: int,
    ) -> int:
        limits = self._limits
        with self._operation() as (session, pending):
            self._require_role(session, caller, OPERATOR, reason="Not operator")

            current = self._rounds.current(session)
            if current is not None and current.status != RoundStatus.CLAIMABLE:
                raise LifecycleError("Not time to start")

            now = self._clock()
            length = end_time - now
            if not limits.min_round_length < length < limits.max_round_length:
                raise ValidationError("Lottery length out of range")
            if discount_divisor < limits.min_discount_divisor:
                raise ValidationError("Discount divisor too low")
            if treasury_fee < 0 or treasury_fee > limits.max_treasury_fee:
                raise ValidationError("Treasury fee too high")
            if not limits.min_ticket_price <= ticket_price <= limits.max_ticket_price:
                raise ValidationError("Price ticket out of range")
            if len(rewards_breakdown) != BRACKET_COUNT:
                raise ValidationError("Rewards breakdown must have 6 brackets")
            if any(share < 0 for share in rewards_breakdown):
                raise ValidationError("Rewards breakdown must sum to 10,000")
            if sum(rewards_breakdown) != BASIS_POINTS:
                raise ValidationError("Rewards breakdown must sum to 10,000")

            round_ = self._rounds.open_round(
                session,
                start_time=now,
                end_time=end_time,
                ticket_price=ticket_price,
                discount_divisor=discount_divisor,
                rewards_breakdown=list(rewards_breakdown),
                treasury_fee=treasury_fee,
            )
            round_id = round_.id
            pending.append(
                LotteryEvent(
                    ev.LOTTERY_OPEN,
                    {
                        "round_id": round_id,
                        "start_time": now,
                        "end_time": end_time,
                        "ticket_price": ticket_price,
                        "first_ticket_id": round_.first_ticket_id,
                        "injected_amount": round_.amount_collected,
                    },
                )
            )
        self._logger.info("Round %s opened until %s", round_id, end_time)
        return round_id

    def close_round(self, caller: str, round_id: int) -> None:
        with self._operation() as (session, pending):
            self._require_role(session, caller, OPERATOR, reason="Not operator")
            round_ = self._rounds.get(session, round_id)
            if RoundRepository.status_of(round_) != RoundStatus.OPEN:
                raise LifecycleError("Not open")
            if self._clock() < round_.end_time:
                raise LifecycleError("Not ended")

            self._rounds.close(session, round_)
            self._randomness.request_random_number(round_.id)
            self._remember_randomness(session)
            pending.append(
                LotteryEvent(
                    ev.LOTTERY_CLOSED,
                    {"round_id": round_.id, "first_ticket_id_next_round": round_.first_ticket_id_next_round},
                )
            )
        self._logger.info("Round %s closed; randomness requested", round_id)

    def draw_and_make_claimable(self, caller: str, round_id: int, auto_injection: bool) -> int:
        """Draw the final number, size every bracket and return the final number."""
        with self._operation() as (session, pending):
            self._require_role(session, caller, OPERATOR, reason="Not operator")
            round_ = self._rounds.get(session, round_id)
            if RoundRepository.status_of(round_) != RoundStatus.CLOSED:
                raise LifecycleError("Not closed")
            if self._randomness.latest_fulfilled_round_id() != round_.id:
                raise ConsistencyError("Numbers not drawn")

            outcome = self._draws.draw(session, round_, self._randomness.latest_random_number())

            treasury = None
            if auto_injection:
                state = self._rounds.ensure_state(session)
                state.pending_injection_next_round = (
                    state.pending_injection_next_round + outcome.treasury_carry
                )
            else:
                treasury = role_identity(session, TREASURY)
                if not _valid_identity(treasury):
                    raise ValidationError("Invalid treasury address")
            session.flush()

            if treasury is not None and outcome.treasury_carry > 0:
                self._token.transfer(treasury, outcome.treasury_carry)

            pending.append(
                LotteryEvent(
                    ev.LOTTERY_NUMBER_DRAWN,
                    {
                        "round_id": round_.id,
                        "final_number": outcome.final_number,
                        "count_winning_tickets": outcome.total_winners,
                    },
                )
            )
        self._logger.info(
            "Round %s claimable: final=%s winners=%s carry=%s auto_injection=%s",
            round_id,
            outcome.final_number,
            outcome.count_winners_per_bracket,
            outcome.treasury_carry,
            auto_injection,
        )
        return outcome.final_number

    def fulfill_randomness(self, random_number: int, round_id: Optional[int] = None) -> int:
        """Deliver the random number for the pending request of the local source.

        Callers are expected to have checked the provider identity.
        """
        with self._operation() as (session, _):
            source = self._randomness
            if not isinstance(source, LocalRandomnessSource):
                raise LifecycleError("Randomness is delivered on-chain")
            fulfilled = source.fulfill(random_number, round_id=round_id)
            self._remember_randomness(session)
        self._logger.info("Randomness fulfilled for round %s", fulfilled)
        return fulfilled

    # ------------------------------------------------------------------ #
    # Participants
    # ------------------------------------------------------------------ #

    def buy_tickets(self, caller: str, round_id: int, combinations: Sequence[int]) -> List[int]:
        if not caller:
            raise AuthorizationError("Identity required")
        with self._operation() as (session, pending):
            state = self._rounds.ensure_state(session)
            round_ = self._rounds.get(session, round_id)
            ticket_ids, cost = self._tickets.purchase(
                session,
                round_,
                caller,
                combinations,
                now=self._clock(),
                max_per_call=state.max_tickets_per_call,
            )
            self._token.transfer_from(caller, self._holder, cost)
            pending.append(
                LotteryEvent(
                    ev.TICKETS_PURCHASE,
                    {"buyer": caller, "round_id": round_.id, "number_tickets": len(ticket_ids)},
                )
            )
        return ticket_ids

    def claim_tickets(
        self, caller: str, round_id: int, ticket_ids: Sequence[int], brackets: Sequence[int]
    ) -> int:
        if not caller:
            raise AuthorizationError("Identity required")
        with self._operation() as (session, pending):
            state = self._rounds.ensure_state(session)
            round_ = self._rounds.get(session, round_id)
            total = self._claims.claim(
                session,
                round_,
                caller,
                ticket_ids,
                brackets,
                max_per_call=state.max_tickets_per_call,
            )
            self._token.transfer(caller, total)
            pending.append(
                LotteryEvent(
                    ev.TICKETS_CLAIM,
                    {
                        "claimer": caller,
                        "amount": total,
                        "round_id": round_.id,
                        "number_tickets": len(ticket_ids),
                    },
                )
            )
        return total

    def inject_funds(self, caller: str, round_id: int, amount: int) -> int:
        with self._operation() as (session, pending):
            self._require_role(session, caller, OWNER, INJECTOR, reason="Not owner or injector")
            round_ = self._rounds.get(session, round_id)
            if RoundRepository.status_of(round_) != RoundStatus.OPEN:
                raise LifecycleError("Not open")
            if amount <= 0:
                raise ValidationError("Amount must be > 0")

            collected = self._rounds.add_funds(session, round_, amount)
            self._token.transfer_from(caller, self._holder, amount)
            pending.append(
                LotteryEvent(ev.LOTTERY_INJECTION, {"round_id": round_.id, "injected_amount": amount})
            )
        return collected

    # ------------------------------------------------------------------ #
    # Owner
    # ------------------------------------------------------------------ #

    def set_max_tickets_per_call(self, caller: str, max_tickets: int) -> None:
        with self._operation() as (session, pending):
            self._require_role(session, caller, OWNER, reason="Not owner")
            if max_tickets < 1:
                raise ValidationError("Invalid max number of tickets")
            self._rounds.ensure_state(session).max_tickets_per_call = max_tickets
            pending.append(LotteryEvent(ev.NEW_MAX_TICKETS, {"max_tickets": max_tickets}))

    def set_role_addresses(self, caller: str, operator: str, treasury: str, injector: str) -> None:
        with self._operation() as (session, pending):
            self._require_role(session, caller, OWNER, reason="Not owner")
            if not _valid_identity(operator):
                raise ValidationError("Invalid operator address")
            if not _valid_identity(treasury):
                raise ValidationError("Invalid treasury address")
            if not _valid_identity(injector):
                raise ValidationError("Invalid injector address")

            for role, identity in ((OPERATOR, operator), (TREASURY, treasury), (INJECTOR, injector)):
                assignment = session.get(RoleAssignment, role)
                if assignment is None:
                    session.add(RoleAssignment(role=role, identity=identity))
                else:
                    assignment.identity = identity
            pending.append(
                LotteryEvent(
                    ev.NEW_ROLE_ADDRESSES,
                    {"operator": operator, "treasury": treasury, "injector": injector},
                )
            )

    def set_randomness_source(self, caller: str, source: RandomnessSource) -> None:
        with self._operation() as (session, pending):
            self._require_role(session, caller, OWNER, reason="Not owner")
            current = self._rounds.current(session)
            if current is not None and current.status != RoundStatus.CLAIMABLE:
                raise LifecycleError("Lottery not claimable")
            self._rounds.ensure_state(session).randomness_source = source.source_id
            self._randomness = source
            self._remember_randomness(session)
            pending.append(LotteryEvent(ev.NEW_RANDOM_GENERATOR, {"source": source.source_id}))

    def recover_foreign_funds(self, caller: str, token_id: str, amount: int) -> None:
        with self._operation() as (session, pending):
            self._require_role(session, caller, OWNER, reason="Not owner")
            if token_id == self._token.token_id:
                raise ValidationError("Cannot be payment token")
            token = self._foreign_tokens.get(token_id)
            if token is None:
                raise NotFound(f"Unknown token {token_id}")
            token.transfer(caller, amount)
            pending.append(
                LotteryEvent(ev.ADMIN_TOKEN_RECOVERY, {"token_id": token_id, "amount": amount})
            )

    def faucet(self, identity: str, amount: int) -> int:
        """Mint and approve payment tokens for an identity; in-memory token only."""
        token = self._token
        if not isinstance(token, InMemoryTokenLedger):
            raise LifecycleError("Faucet needs the in-memory payment token")
        if not identity:
            raise ValidationError("Identity required")
        if amount <= 0:
            raise ValidationError("Amount must be > 0")
        with self._lock:
            token.mint(identity, amount)
            token.approve(identity, self._holder, token.allowance(identity, self._holder) + amount)
            balance = token.balance_of(identity)
        self._logger.info("Faucet minted %s for %s", amount, identity)
        return balance

    # ------------------------------------------------------------------ #
    # Views
    # ------------------------------------------------------------------ #

    def view_round(self, round_id: int) -> Dict[str, object]:
        with self._operation() as (session, _):
            return self._rounds.require(session, round_id).to_dict()

    def view_rounds(self, limit: Optional[int] = None) -> List[Dict[str, object]]:
        with self._operation() as (session, _):
            return self._rounds.list_rounds(session, limit)

    def view_current_round_id(self) -> int:
        with self._operation() as (session, _):
            return self._rounds.ensure_state(session).current_round_id

    def view_max_tickets_per_call(self) -> int:
        with self._operation() as (session, _):
            return self._rounds.ensure_state(session).max_tickets_per_call

    def view_roles(self) -> Dict[str, Optional[str]]:
        with self._operation() as (session, _):
            return {role: role_identity(session, role) for role in (OWNER, OPERATOR, TREASURY, INJECTOR)}

    def view_tickets_for_owner(
        self, owner: str, round_id: int, offset: int = 0, limit: int = 100
    ) -> Dict[str, object]:
        with self._operation() as (session, _):
            return self._tickets.tickets_for_owner(session, owner, round_id, offset, limit)

    def view_combinations_and_statuses(self, ticket_ids: Sequence[int]) -> Tuple[List[int], List[bool]]:
        with self._operation() as (session, _):
            return self._tickets.combinations_and_statuses(session, ticket_ids)

    def view_reward_for_ticket(self, round_id: int, ticket_id: int, bracket: int) -> int:
        with self._operation() as (session, _):
            round_ = self._rounds.get(session, round_id)
            if RoundRepository.status_of(round_) != RoundStatus.CLAIMABLE:
                return 0
            if not round_.first_ticket_id <= ticket_id < round_.first_ticket_id_next_round:
                return 0
            if bracket < 0 or bracket >= BRACKET_COUNT:
                return 0
            ticket = self._tickets.get(session, ticket_id)
            if ticket is None:
                return 0
            return reward_for(round_, ticket, bracket)

    def view_bridge_count(self, round_id: int, bracket: int, number: int) -> int:
        with self._operation() as (session, _):
            return self._tickets.bridge_count(session, round_id, bracket, number)

    def calculate_total_price(self, discount_divisor: int, unit_price: int, count: int) -> int:
        if discount_divisor < self._limits.min_discount_divisor:
            raise ValidationError("Discount divisor too low")
        return price_for_bulk(discount_divisor, unit_price, count)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    @property
    def _holder(self) -> str:
        return getattr(self._token, "holder", "lottery")

    def _remember_randomness(self, session) -> None:
        if not isinstance(self._randomness, LocalRandomnessSource):
            return
        state = self._rounds.ensure_state(session)
        pending, fulfilled, value = self._randomness.snapshot()
        state.randomness_pending_round_id = pending
        state.randomness_fulfilled_round_id = fulfilled
        state.randomness_value = value

    def _restore_randomness(self, state) -> None:
        if not isinstance(self._randomness, LocalRandomnessSource):
            return
        if state.randomness_pending_round_id is None and state.randomness_fulfilled_round_id is None:
            return
        self._randomness.restore(
            state.randomness_pending_round_id,
            state.randomness_fulfilled_round_id,
            state.randomness_value,
        )
        self._logger.info(
            "Restored randomness state: pending=%s fulfilled=%s",
            state.randomness_pending_round_id,
            state.randomness_fulfilled_round_id,
        )

    @contextmanager
    def _operation(self) -> Iterator[Tuple[Session, List[LotteryEvent]]]:
        with self._lock:
            pending: List[LotteryEvent] = []
            with session_scope(self._session_factory) as session:
                yield session, pending
            self.events.publish(pending)

    @staticmethod
    def _require_role(session, caller: Optional[str], *roles: str, reason: str) -> None:
        if caller:
            for role in roles:
                if role_identity(session, role) == caller:
                    return
        raise AuthorizationError(reason)
