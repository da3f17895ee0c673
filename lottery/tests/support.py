from __future__ import annotations

from typing import List, Optional

from lottery.db import create_session_factory
from lottery.services.lifecycle import LotteryService
from lottery.services.randomness import LocalRandomnessSource
from lottery.services.token import InMemoryTokenLedger

OWNER = "alice"
OPERATOR = "operator"
TREASURY = "treasury"
INJECTOR = "injector"

START = 1_700_000_000
LENGTH = 4 * 60 * 60
ETHER = 10**18
PRICE = ETHER // 2
DIVISOR = 2000
BREAKDOWN = [200, 300, 500, 1500, 2500, 5000]
FEE = 2000


class FakeClock:
    def __init__(self, now: int = START) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


class LotteryHarness:
    """A service wired to in-memory collaborators plus helpers for common flows."""

    def __init__(self) -> None:
        self.clock = FakeClock()
        self.token = InMemoryTokenLedger("CAKE")
        self.randomness = LocalRandomnessSource()
        self.service = LotteryService(
            create_session_factory("sqlite:///:memory:"),
            self.token,
            self.randomness,
            clock=self.clock,
        )
        self.service.bootstrap(owner=OWNER, operator=OPERATOR, treasury=TREASURY, injector=INJECTOR)

    def fund(self, identity: str, amount: int = 100000 * ETHER) -> None:
        self.token.mint(identity, amount)
        self.token.approve(identity, self.token.holder, amount)

    def start(self, breakdown: Optional[List[int]] = None, fee: int = FEE) -> int:
        return self.service.start_round(
            OPERATOR, self.clock() + LENGTH, PRICE, DIVISOR, breakdown or BREAKDOWN, fee
        )

    def close(self, round_id: int) -> None:
        self.clock.advance(LENGTH + 1)
        self.service.close_round(OPERATOR, round_id)

    def close_and_draw(self, round_id: int, random_number: int, auto_injection: bool = True) -> int:
        self.close(round_id)
        self.service.fulfill_randomness(random_number)
        return self.service.draw_and_make_claimable(OPERATOR, round_id, auto_injection)


class ContractRandomnessStub:
    """Stands in for a randomness contract whose numbers arrive on-chain."""

    source_id = "0x" + "b" * 40

    def __init__(self) -> None:
        self.requested: List[int] = []

    def request_random_number(self, round_id: int) -> None:
        self.requested.append(round_id)

    def latest_fulfilled_round_id(self) -> Optional[int]:
        return None

    def latest_random_number(self) -> int:
        return 0
