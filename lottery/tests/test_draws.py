import random
import unittest

from lottery.errors import AuthorizationError
from lottery.services.draws import split_prize_pool
from lottery.tests.support import ETHER, INJECTOR, OPERATOR, TREASURY, LotteryHarness

FOUR_BRACKETS = [1000, 0, 1500, 2500, 0, 5000]
COMBINATIONS = [1111118, 1222288, 1333888, 1448888, 1588888, 1888888]


class SplitPrizePoolTests(unittest.TestCase):
    def test_empty_jackpot_rolls_into_carry(self) -> None:
        to_share, prizes, winners, carry = split_prize_pool(
            amount_collected=1000,
            treasury_fee=2000,
            rewards_breakdown=FOUR_BRACKETS,
            bridge_counts=[8, 3, 3, 2, 0, 0],
        )

        self.assertEqual(to_share, 800)
        self.assertEqual(winners, [5, 0, 1, 2, 0, 0])
        self.assertEqual(prizes, [16, 0, 120, 100, 0, 0])
        self.assertEqual(carry, 600)

    def test_brackets_pay_only_tickets_not_paid_above(self) -> None:
        to_share, prizes, winners, carry = split_prize_pool(
            amount_collected=1000,
            treasury_fee=2000,
            rewards_breakdown=[250, 375, 625, 1250, 2500, 5000],
            bridge_counts=[8, 3, 3, 2, 0, 0],
        )

        self.assertEqual(to_share, 800)
        self.assertEqual(winners, [5, 0, 1, 2, 0, 0])
        self.assertEqual(prizes, [4, 0, 50, 50, 0, 0])
        # fee 200, bracket 4 share 200, bracket 5 share 400, bracket 1 share 30
        self.assertEqual(carry, 200 + 200 + 400 + 30)

    def test_no_participants_sends_everything_to_carry(self) -> None:
        to_share, prizes, winners, carry = split_prize_pool(
            5000, 1000, [200, 300, 500, 1500, 2500, 5000], [0] * 6
        )
        self.assertEqual(to_share, 4500)
        self.assertEqual(prizes, [0] * 6)
        self.assertEqual(winners, [0] * 6)
        self.assertEqual(carry, 5000)

    def test_pool_is_conserved_up_to_rounding_dust(self) -> None:
        rng = random.Random(7)
        for _ in range(200):
            counts = sorted((rng.randint(0, 50) for _ in range(6)), reverse=True)
            breakdown = [rng.randint(0, 2000) for _ in range(5)]
            breakdown.append(10000 - sum(breakdown))
            amount = rng.randint(0, 10**22)
            fee = rng.randint(0, 3000)

            _, prizes, winners, carry = split_prize_pool(amount, fee, breakdown, counts)

            paid = sum(prize * count for prize, count in zip(prizes, winners))
            self.assertLessEqual(paid + carry, amount)
            # floor of six shares plus the remainder of each per-winner division
            self.assertLessEqual(amount - paid - carry, 6 + sum(winners))
            self.assertTrue(all(count >= 0 for count in winners))


class DrawEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.h = LotteryHarness()
        self.service = self.h.service
        self.h.fund("bob")
        self.h.fund(INJECTOR)
        self.round_id = self.h.start(breakdown=FOUR_BRACKETS)
        self.service.inject_funds(INJECTOR, self.round_id, 1000 * ETHER)
        self.ticket_ids = self.service.buy_tickets("bob", self.round_id, COMBINATIONS)

    def test_four_winning_brackets(self) -> None:
        self.assertEqual(self.ticket_ids, [0, 1, 2, 3, 4, 5])
        collected = 1000 * ETHER + 2992500000000000000

        final = self.h.close_and_draw(self.round_id, 188888888, auto_injection=False)

        self.assertEqual(final, 1888888)
        record = self.service.view_round(self.round_id)
        self.assertEqual(record["status"], "Claimable")
        self.assertEqual(record["final_number"], 1888888)
        self.assertEqual(record["amount_collected"], collected)
        self.assertEqual(record["count_winners_per_bracket"], [2, 1, 1, 2, 1, 1])
        self.assertEqual(
            record["prize_per_bracket"],
            [
                40119700000000000000,
                0,
                120359100000000000000,
                100299250000000000000,
                0,
                401197000000000000000,
            ],
        )
        self.assertEqual(self.h.token.balance_of(TREASURY), 200598500000000000000)
        self.assertEqual(
            self.h.token.balance_of(self.h.token.holder), collected - 200598500000000000000
        )

        drawn = [e for e in self.service.events.history if e.name == "LotteryNumberDrawn"]
        self.assertEqual(len(drawn), 1)
        self.assertEqual(drawn[0].payload["final_number"], 1888888)
        self.assertEqual(drawn[0].payload["count_winning_tickets"], 6)

    def test_every_unit_is_paid_or_carried(self) -> None:
        self.h.close_and_draw(self.round_id, 188888888, auto_injection=False)

        total = self.service.claim_tickets("bob", self.round_id, [0, 1, 2, 3, 4, 5], [0, 0, 2, 3, 3, 5])

        self.assertEqual(total, 802394000000000000000)
        self.assertEqual(self.h.token.balance_of(self.h.token.holder), 0)

    def test_auto_injection_seeds_next_round(self) -> None:
        self.h.close_and_draw(self.round_id, 188888888, auto_injection=True)

        self.assertEqual(self.h.token.balance_of(TREASURY), 0)
        next_id = self.h.start()
        self.assertEqual(next_id, self.round_id + 1)
        record = self.service.view_round(next_id)
        self.assertEqual(record["amount_collected"], 200598500000000000000)
        self.assertEqual(record["first_ticket_id"], 6)

        opened = [e for e in self.service.events.history if e.name == "LotteryOpen"]
        self.assertEqual(opened[-1].payload["injected_amount"], 200598500000000000000)

    def test_round_without_winners(self) -> None:
        final = self.h.close_and_draw(self.round_id, 777777, auto_injection=False)

        self.assertEqual(final, 1777777)
        record = self.service.view_round(self.round_id)
        self.assertEqual(record["prize_per_bracket"], [0] * 6)
        self.assertEqual(record["count_winners_per_bracket"], [0] * 6)
        collected = 1000 * ETHER + 2992500000000000000
        self.assertEqual(self.h.token.balance_of(TREASURY), collected)

    def test_only_operator_draws(self) -> None:
        self.h.close(self.round_id)
        self.h.randomness.fulfill(188888888)
        with self.assertRaises(AuthorizationError) as ctx:
            self.service.draw_and_make_claimable("bob", self.round_id, True)
        self.assertEqual(ctx.exception.reason, "Not operator")
        self.assertEqual(self.service.draw_and_make_claimable(OPERATOR, self.round_id, True), 1888888)


if __name__ == "__main__":
    unittest.main()
