from __future__ import annotations

import asyncio
import datetime as dt
from dataclasses import dataclass
from typing import Any, Mapping

import requests

from .base import BeaconReading, RandomnessFeed


@dataclass(frozen=True)
class HttpBeaconFeedConfig:
    """Configuration describing how to parse the upstream beacon payload."""

    url: str
    round_key: str = "round"
    randomness_key: str = "randomness"
    timeout_seconds: int = 10


class HttpBeaconFeed(RandomnessFeed):
    """Fetch the latest round from a drand-style JSON beacon endpoint."""

    def __init__(self, config: HttpBeaconFeedConfig) -> None:
        self._config = config

    async def fetch_latest(self) -> BeaconReading:
        response_json = await asyncio.to_thread(
            self._get_json, self._config.url, self._config.timeout_seconds
        )
        return self._parse_payload(response_json)

    @staticmethod
    def _get_json(url: str, timeout_seconds: int) -> Mapping[str, Any]:
        resp = requests.get(url, timeout=timeout_seconds)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, Mapping):
            raise ValueError("Beacon returned non-object payload")
        return data

    def _parse_payload(self, payload: Mapping[str, Any]) -> BeaconReading:
        cfg = self._config
        try:
            round_number = int(payload[cfg.round_key])
        except KeyError as exc:
            raise ValueError(f"Missing round field: {cfg.round_key}") from exc

        try:
            raw = payload[cfg.randomness_key]
        except KeyError as exc:
            raise ValueError(f"Missing randomness field: {cfg.randomness_key}") from exc

        return BeaconReading(
            round=round_number,
            randomness=self._parse_randomness(raw),
            fetched_at=dt.datetime.now(dt.timezone.utc),
        )

    @staticmethod
    def _parse_randomness(raw: Any) -> int:
        if isinstance(raw, bool):
            raise ValueError("randomness must be an integer or hex string")
        if isinstance(raw, int):
            value = raw
        elif isinstance(raw, str):
            try:
                value = int(raw[2:] if raw.startswith("0x") else raw, 16)
            except ValueError as exc:
                raise ValueError("randomness is not valid hex") from exc
        else:
            raise ValueError("randomness must be an integer or hex string")
        if value < 0:
            raise ValueError("randomness must be non-negative")
        return value
