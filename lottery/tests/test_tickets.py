import unittest

from lottery.errors import InsufficientFunds, LifecycleError, NotFound, ValidationError
from lottery.services.pricing import price_for_bulk
from lottery.tests.support import DIVISOR, LENGTH, OWNER, PRICE, LotteryHarness


class TicketLedgerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.h = LotteryHarness()
        self.service = self.h.service
        self.h.fund("bob")
        self.h.fund("carol")
        self.round_id = self.h.start()

    def test_purchase_assigns_dense_ids_and_collects_cost(self) -> None:
        combinations = [1234561, 1234562, 1334571]
        before = self.h.token.balance_of("bob")

        ticket_ids = self.service.buy_tickets("bob", self.round_id, combinations)

        self.assertEqual(ticket_ids, [0, 1, 2])
        cost = price_for_bulk(DIVISOR, PRICE, 3)
        self.assertEqual(self.h.token.balance_of("bob"), before - cost)
        self.assertEqual(self.h.token.balance_of(self.h.token.holder), cost)
        self.assertEqual(self.service.view_round(self.round_id)["amount_collected"], cost)

        more = self.service.buy_tickets("carol", self.round_id, [1111111])
        self.assertEqual(more, [3])

        numbers, claimed = self.service.view_combinations_and_statuses([2, 0, 3])
        self.assertEqual(numbers, [1334571, 1234561, 1111111])
        self.assertEqual(claimed, [False, False, False])

    def test_purchase_updates_bridge_index_per_bracket(self) -> None:
        self.service.buy_tickets("bob", self.round_id, [1234561, 1234561, 1334561, 1000001])

        count = self.service.view_bridge_count
        self.assertEqual(count(self.round_id, 0, 1999991), 4)
        self.assertEqual(count(self.round_id, 1, 1999961), 3)
        self.assertEqual(count(self.round_id, 2, 1999561), 3)
        self.assertEqual(count(self.round_id, 3, 1994561), 3)
        self.assertEqual(count(self.round_id, 4, 1934561), 3)
        self.assertEqual(count(self.round_id, 5, 1234561), 2)
        self.assertEqual(count(self.round_id, 5, 1334561), 1)
        self.assertEqual(count(self.round_id, 5, 1434561), 0)

        for number in (1234561, 1000001, 1999991, 1000000):
            counts = [count(self.round_id, b, number) for b in range(6)]
            self.assertEqual(counts, sorted(counts, reverse=True))

    def test_rejects_malformed_purchases(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            self.service.buy_tickets("bob", self.round_id, [])
        self.assertEqual(ctx.exception.reason, "No tickets")

        self.service.set_max_tickets_per_call(OWNER, 5)
        with self.assertRaises(ValidationError) as ctx:
            self.service.buy_tickets("bob", self.round_id, [1234567] * 6)
        self.assertEqual(ctx.exception.reason, "Too many tickets")

        for bad in ([12222222], [1], [1234567, 12345610]):
            with self.assertRaises(ValidationError) as ctx:
                self.service.buy_tickets("bob", self.round_id, bad)
            self.assertEqual(ctx.exception.reason, "Invalid ticket number")

    def test_rejects_purchases_outside_an_open_window(self) -> None:
        with self.assertRaises(LifecycleError) as ctx:
            self.service.buy_tickets("bob", self.round_id + 1, [1234567])
        self.assertEqual(ctx.exception.reason, "Lottery not open")

        self.h.clock.advance(LENGTH)
        with self.assertRaises(LifecycleError) as ctx:
            self.service.buy_tickets("bob", self.round_id, [1234567])
        self.assertEqual(ctx.exception.reason, "Lottery closed")

    def test_failed_debit_leaves_no_trace(self) -> None:
        self.h.token.mint("dave", PRICE - 1)
        self.h.token.approve("dave", self.h.token.holder, PRICE)

        with self.assertRaises(InsufficientFunds):
            self.service.buy_tickets("dave", self.round_id, [1234567])

        self.assertEqual(self.service.view_round(self.round_id)["amount_collected"], 0)
        self.assertEqual(self.service.view_bridge_count(self.round_id, 0, 1234567), 0)
        self.assertEqual(self.service.buy_tickets("bob", self.round_id, [1234567]), [0])
        self.assertEqual(self.h.token.balance_of("dave"), PRICE - 1)

    def test_tickets_for_owner_pages_in_purchase_order(self) -> None:
        self.service.buy_tickets("bob", self.round_id, [1000001, 1000002, 1000003])
        self.service.buy_tickets("carol", self.round_id, [1000004])
        self.service.buy_tickets("bob", self.round_id, [1000005])

        first = self.service.view_tickets_for_owner("bob", self.round_id, offset=0, limit=2)
        self.assertEqual(first["ticket_ids"], [0, 1])
        self.assertEqual(first["combinations"], [1000001, 1000002])
        self.assertEqual(first["next_offset"], 2)

        rest = self.service.view_tickets_for_owner("bob", self.round_id, offset=2, limit=10)
        self.assertEqual(rest["ticket_ids"], [2, 4])
        self.assertEqual(rest["claimed"], [False, False])
        self.assertEqual(rest["next_offset"], 4)

        empty = self.service.view_tickets_for_owner("erin", self.round_id)
        self.assertEqual(empty["ticket_ids"], [])

    def test_unknown_ticket_status(self) -> None:
        with self.assertRaises(NotFound):
            self.service.view_combinations_and_statuses([42])


if __name__ == "__main__":
    unittest.main()
