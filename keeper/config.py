from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv


def _bool_from_env(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_from_env(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    return int(value)


def _require_env(key: str) -> str:
    value = os.getenv(key)
    if value is None or value == "":
        raise RuntimeError(f"Missing required environment variable: {key}")
    return value


@dataclass(frozen=True)
class BeaconSettings:
    url: str = ""
    round_key: str = "round"
    randomness_key: str = "randomness"
    timeout_seconds: int = 10


@dataclass(frozen=True)
class NextRoundSettings:
    """Parameters used to reopen the lottery once the previous round is claimable."""

    length_seconds: int
    ticket_price: int
    discount_divisor: int
    rewards_breakdown: Tuple[int, ...]
    treasury_fee: int


@dataclass(frozen=True)
class KeeperSettings:
    api_url: str
    identity: str
    randomness_identity: Optional[str] = None
    poll_interval_seconds: int = 30
    run_once: bool = False
    state_file: str = "keeper_state.json"
    auto_injection: bool = True
    delivers_randomness: bool = True
    timeout_seconds: int = 10
    beacon: BeaconSettings = field(default_factory=BeaconSettings)
    next_round: Optional[NextRoundSettings] = None

    @property
    def fulfil_identity(self) -> str:
        return self.randomness_identity or self.identity

    def copy(self, **updates) -> "KeeperSettings":
        return replace(self, **updates)


def _next_round_from_env() -> Optional[NextRoundSettings]:
    length = os.getenv("NEXT_ROUND__LENGTH_SECONDS")
    if not length:
        return None
    breakdown = os.getenv("NEXT_ROUND__REWARDS_BREAKDOWN", "250,375,625,1250,2500,5000")
    return NextRoundSettings(
        length_seconds=int(length),
        ticket_price=int(_require_env("NEXT_ROUND__TICKET_PRICE")),
        discount_divisor=_int_from_env(os.getenv("NEXT_ROUND__DISCOUNT_DIVISOR"), 2000),
        rewards_breakdown=tuple(int(part) for part in breakdown.split(",") if part.strip()),
        treasury_fee=_int_from_env(os.getenv("NEXT_ROUND__TREASURY_FEE"), 2000),
    )


def load_from_environment() -> KeeperSettings:
    beacon = BeaconSettings(
        url=os.getenv("BEACON__URL", ""),
        round_key=os.getenv("BEACON__ROUND_KEY", "round"),
        randomness_key=os.getenv("BEACON__RANDOMNESS_KEY", "randomness"),
        timeout_seconds=_int_from_env(os.getenv("BEACON__TIMEOUT_SECONDS"), 10),
    )

    return KeeperSettings(
        api_url=_require_env("LOTTERY_API_URL").rstrip("/"),
        identity=_require_env("KEEPER_IDENTITY"),
        randomness_identity=os.getenv("KEEPER_RANDOMNESS_IDENTITY") or None,
        poll_interval_seconds=_int_from_env(os.getenv("POLL_INTERVAL_SECONDS"), 30),
        run_once=_bool_from_env(os.getenv("RUN_ONCE"), False),
        state_file=os.getenv("STATE_FILE", "keeper_state.json"),
        auto_injection=_bool_from_env(os.getenv("AUTO_INJECTION"), True),
        delivers_randomness=_bool_from_env(os.getenv("KEEPER_DELIVERS_RANDOMNESS"), True),
        timeout_seconds=_int_from_env(os.getenv("LOTTERY_API_TIMEOUT_SECONDS"), 10),
        beacon=beacon,
        next_round=_next_round_from_env(),
    )


@lru_cache(maxsize=1)
def load_config(dotenv_path: Optional[str] = None) -> KeeperSettings:
    if dotenv_path:
        load_dotenv(dotenv_path)
    else:
        default_path = pathlib.Path(".env")
        if default_path.exists():
            load_dotenv(default_path)
    return load_from_environment()
