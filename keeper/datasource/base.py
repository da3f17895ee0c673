from __future__ import annotations

import abc
import datetime as dt
from dataclasses import dataclass


@dataclass(frozen=True)
class BeaconReading:
    """One published round of a public randomness beacon."""

    round: int
    randomness: int
    fetched_at: dt.datetime


class RandomnessFeed(abc.ABC):
    """Abstract randomness provider."""

    @abc.abstractmethod
    async def fetch_latest(self) -> BeaconReading:
        """Return the newest beacon round.

        Implementations should raise `RuntimeError` or `ValueError` if
        remote data is unavailable or validation fails.
        """

    async def close(self) -> None:
        """Optional hook for connectors that require cleanup."""
        return None
