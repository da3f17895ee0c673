from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

LOTTERY_OPEN = "LotteryOpen"
LOTTERY_CLOSED = "LotteryClosed"
LOTTERY_NUMBER_DRAWN = "LotteryNumberDrawn"
TICKETS_PURCHASE = "TicketsPurchase"
TICKETS_CLAIM = "TicketsClaim"
LOTTERY_INJECTION = "LotteryInjection"
NEW_ROLE_ADDRESSES = "NewOperatorAndTreasuryAndInjectorAddresses"
NEW_RANDOM_GENERATOR = "NewRandomGenerator"
NEW_MAX_TICKETS = "NewMaxTicketsPerCall"
ADMIN_TOKEN_RECOVERY = "AdminTokenRecovery"


@dataclass(frozen=True)
class LotteryEvent:
    name: str
    payload: Dict[str, Any]
    emitted_at: dt.datetime = field(default_factory=dt.datetime.utcnow)


Subscriber = Callable[[LotteryEvent], None]


class EventBus:
    """Collects events raised during an operation and publishes them after commit."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._subscribers: List[Subscriber] = []
        self._history: List[LotteryEvent] = []
        self._logger = logger or logging.getLogger("lottery.events")

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    @property
    def history(self) -> List[LotteryEvent]:
        return list(self._history)

    def publish(self, events: List[LotteryEvent]) -> None:
        for event in events:
            self._history.append(event)
            self._logger.info("%s %s", event.name, event.payload)
            for subscriber in self._subscribers:
                try:
                    subscriber(event)
                except Exception as exc:
                    self._logger.exception("Event subscriber failed on %s: %s", event.name, exc)
