from __future__ import annotations

import asyncio
import json
import logging
import pathlib
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence

from .config import KeeperSettings
from .datasource import RandomnessFeed
from .types import RandomnessStatus, RoundSnapshot, RoundStatus


class LotteryClientProtocol(Protocol):
    async def get_current_round(self) -> Optional[RoundSnapshot]:
        ...

    async def get_randomness_status(self) -> RandomnessStatus:
        ...

    async def close_round(self, round_id: int) -> RoundSnapshot:
        ...

    async def fulfill_randomness(self, round_id: int, random_number: int) -> int:
        ...

    async def draw_round(self, round_id: int, auto_injection: bool) -> RoundSnapshot:
        ...

    async def start_round(
        self,
        end_time: int,
        ticket_price: int,
        discount_divisor: int,
        rewards_breakdown: Sequence[int],
        treasury_fee: int,
    ) -> int:
        ...


@dataclass
class TickResult:
    round_id: Optional[int]
    actions: List[str] = field(default_factory=list)


class KeeperStateStore:
    """Remembers the last beacon round handed to the lottery so it is never reused."""

    def __init__(self, path: str) -> None:
        self._path = pathlib.Path(path)

    def load_last_beacon_round(self) -> Optional[int]:
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return None
        value = data.get("last_beacon_round")
        return int(value) if value is not None else None

    def save_last_beacon_round(self, beacon_round: int) -> None:
        payload = {"last_beacon_round": beacon_round}
        self._path.write_text(json.dumps(payload), encoding="utf-8")


class KeeperScheduler:
    def __init__(
        self,
        settings: KeeperSettings,
        feed: RandomnessFeed,
        client: LotteryClientProtocol,
        clock: Optional[Callable[[], int]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._settings = settings
        self._feed = feed
        self._client = client
        self._clock = clock or (lambda: int(time.time()))
        self._state = KeeperStateStore(settings.state_file)
        self._last_beacon_round = self._state.load_last_beacon_round()
        self._logger = logger or logging.getLogger("lottery.keeper")

    async def run_forever(self) -> None:
        interval = self._settings.poll_interval_seconds
        self._logger.info("Keeper loop started; poll interval=%s", interval)
        try:
            while True:
                try:
                    await self.tick()
                except Exception as exc:
                    self._logger.exception("Keeper iteration failed: %s", exc)
                await asyncio.sleep(interval)
        finally:
            await self._feed.close()

    async def run_once(self) -> TickResult:
        try:
            return await self.tick()
        finally:
            await self._feed.close()

    async def tick(self) -> TickResult:
        snapshot = await self._client.get_current_round()
        if snapshot is None:
            result = TickResult(round_id=None)
            await self._start_next(result)
            return result

        result = TickResult(round_id=snapshot.round_id)

        if snapshot.status == RoundStatus.OPEN:
            if self._clock() < snapshot.end_time:
                self._logger.debug(
                    "Round %s open until %s; nothing to do.", snapshot.round_id, snapshot.end_time
                )
                return result
            snapshot = await self._client.close_round(snapshot.round_id)
            result.actions.append("closed")
            self._logger.info("Closed round %s", snapshot.round_id)

        if snapshot.status == RoundStatus.CLOSED:
            ready = await self._ensure_randomness(snapshot.round_id, result)
            if not ready:
                return result
            snapshot = await self._client.draw_round(snapshot.round_id, self._settings.auto_injection)
            result.actions.append("drawn")
            self._logger.info(
                "Round %s drawn; final number %s", snapshot.round_id, snapshot.final_number
            )

        if snapshot.status == RoundStatus.CLAIMABLE:
            await self._start_next(result)
        return result

    async def _ensure_randomness(self, round_id: int, result: TickResult) -> bool:
        status = await self._client.get_randomness_status()
        if status.latest_fulfilled_round_id == round_id:
            return True
        if not self._settings.delivers_randomness:
            self._logger.info("Waiting for randomness of round %s from %s", round_id, status.source)
            return False

        reading = await self._feed.fetch_latest()
        if self._last_beacon_round is not None and reading.round <= self._last_beacon_round:
            self._logger.info(
                "Beacon round %s already used; waiting for a fresh one.", reading.round
            )
            return False

        await self._client.fulfill_randomness(round_id, reading.randomness)
        self._last_beacon_round = reading.round
        self._state.save_last_beacon_round(reading.round)
        result.actions.append("fulfilled")
        self._logger.info("Fulfilled round %s with beacon round %s", round_id, reading.round)
        return True

    async def _start_next(self, result: TickResult) -> None:
        template = self._settings.next_round
        if template is None:
            return
        round_id = await self._client.start_round(
            end_time=self._clock() + template.length_seconds,
            ticket_price=template.ticket_price,
            discount_divisor=template.discount_divisor,
            rewards_breakdown=template.rewards_breakdown,
            treasury_fee=template.treasury_fee,
        )
        result.round_id = round_id
        result.actions.append("started")
        self._logger.info("Started round %s", round_id)
