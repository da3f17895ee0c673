from __future__ import annotations

from typing import Optional, Protocol, Tuple

from ..errors import ConsistencyError


class RandomnessSource(Protocol):
    """Two-phase randomness: request for a round, later read once fulfilled."""

    source_id: str

    def request_random_number(self, round_id: int) -> None:
        ...

    def latest_fulfilled_round_id(self) -> Optional[int]:
        ...

    def latest_random_number(self) -> int:
        ...


class LocalRandomnessSource:
    """Randomness delivered by an external provider calling :meth:`fulfill`.

    Only the most recent request can be fulfilled; fulfilling stamps it as the
    latest fulfilled round so the lottery can tell stale values apart.
    """

    def __init__(self, source_id: str = "local") -> None:
        self.source_id = source_id
        self._pending_round_id: Optional[int] = None
        self._fulfilled_round_id: Optional[int] = None
        self._random_number = 0

    @property
    def pending_round_id(self) -> Optional[int]:
        return self._pending_round_id

    def request_random_number(self, round_id: int) -> None:
        self._pending_round_id = round_id

    def fulfill(self, random_number: int, round_id: Optional[int] = None) -> int:
        if self._pending_round_id is None:
            raise ConsistencyError("No pending randomness request")
        if round_id is not None and round_id != self._pending_round_id:
            raise ConsistencyError("Randomness request is for another round")
        self._random_number = int(random_number)
        self._fulfilled_round_id = self._pending_round_id
        self._pending_round_id = None
        return self._fulfilled_round_id

    def latest_fulfilled_round_id(self) -> Optional[int]:
        return self._fulfilled_round_id

    def latest_random_number(self) -> int:
        return self._random_number

    def snapshot(self) -> Tuple[Optional[int], Optional[int], int]:
        return self._pending_round_id, self._fulfilled_round_id, self._random_number

    def restore(
        self,
        pending_round_id: Optional[int],
        fulfilled_round_id: Optional[int],
        random_number: Optional[int],
    ) -> None:
        self._pending_round_id = pending_round_id
        self._fulfilled_round_id = fulfilled_round_id
        self._random_number = int(random_number or 0)
