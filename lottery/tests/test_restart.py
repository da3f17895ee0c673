import os
import tempfile
import unittest

from lottery.db import create_session_factory
from lottery.services.lifecycle import LotteryService
from lottery.services.randomness import LocalRandomnessSource
from lottery.services.token import InMemoryTokenLedger
from lottery.tests.support import (
    DIVISOR,
    ETHER,
    FEE,
    INJECTOR,
    LENGTH,
    OPERATOR,
    OWNER,
    PRICE,
    TREASURY,
    FakeClock,
)

COMBINATIONS = [1111118, 1222288, 1333888, 1448888, 1588888, 1888888]
BREAKDOWN = [1000, 0, 1500, 2500, 0, 5000]


class RestartTests(unittest.TestCase):
    """A Closed round survives a process restart against the same database."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.database_url = "sqlite:///" + os.path.join(self._tmp.name, "lottery.db")
        self.clock = FakeClock()
        # token balances live outside the database, so both processes share one ledger
        self.token = InMemoryTokenLedger("CAKE")
        self.token.mint("bob", 1000 * ETHER)
        self.token.approve("bob", self.token.holder, 1000 * ETHER)

    def _boot(self) -> LotteryService:
        service = LotteryService(
            create_session_factory(self.database_url),
            self.token,
            LocalRandomnessSource(),
            clock=self.clock,
        )
        service.bootstrap(owner=OWNER, operator=OPERATOR, treasury=TREASURY, injector=INJECTOR)
        return service

    def _open_and_close(self, service: LotteryService) -> int:
        round_id = service.start_round(
            OPERATOR, self.clock() + LENGTH, PRICE, DIVISOR, BREAKDOWN, FEE
        )
        service.buy_tickets("bob", round_id, COMBINATIONS)
        self.clock.advance(LENGTH + 1)
        service.close_round(OPERATOR, round_id)
        return round_id

    def test_pending_request_survives_restart(self) -> None:
        first = self._boot()
        round_id = self._open_and_close(first)

        second = self._boot()
        self.assertEqual(second.randomness.pending_round_id, round_id)
        self.assertEqual(second.fulfill_randomness(188888888, round_id=round_id), round_id)
        self.assertEqual(second.draw_and_make_claimable(OPERATOR, round_id, True), 1888888)

        before = self.token.balance_of("bob")
        paid = second.claim_tickets("bob", round_id, [5], [5])
        self.assertGreater(paid, 0)
        self.assertEqual(self.token.balance_of("bob"), before + paid)

    def test_fulfilled_number_survives_restart(self) -> None:
        first = self._boot()
        round_id = self._open_and_close(first)
        first.fulfill_randomness(188888888)

        second = self._boot()
        self.assertIsNone(second.randomness.pending_round_id)
        self.assertEqual(second.randomness.latest_fulfilled_round_id(), round_id)
        self.assertEqual(second.randomness.latest_random_number(), 188888888)
        self.assertEqual(second.draw_and_make_claimable(OPERATOR, round_id, True), 1888888)
        self.assertEqual(second.view_round(round_id)["status"], "Claimable")

    def test_restart_before_any_round(self) -> None:
        self._boot()
        second = self._boot()
        self.assertIsNone(second.randomness.pending_round_id)
        self.assertIsNone(second.randomness.latest_fulfilled_round_id())


if __name__ == "__main__":
    unittest.main()
