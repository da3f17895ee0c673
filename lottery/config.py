from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class FlaskSettings:
    secret_key: str = "lottery-dev-secret"
    debug: bool = True


@dataclass(frozen=True)
class LotteryLimits:
    max_tickets_per_call: int = 100
    min_discount_divisor: int = 300
    max_treasury_fee: int = 3000
    min_ticket_price: int = 5 * 10**15
    max_ticket_price: int = 50 * 10**18
    # 4 hours - 5 minutes / 4 days + 5 minutes
    min_round_length: int = 4 * 60 * 60 - 5 * 60
    max_round_length: int = 4 * 24 * 60 * 60 + 5 * 60


@dataclass(frozen=True)
class RoleSettings:
    owner: str = "owner"
    operator: Optional[str] = None
    treasury: Optional[str] = None
    injector: Optional[str] = None
    randomness_provider: Optional[str] = None


@dataclass(frozen=True)
class Web3Settings:
    rpc_url: Optional[str] = None
    payment_token_address: Optional[str] = None
    payment_token_abi_path: str = "artifacts/contracts/MockERC20.sol/MockERC20.json"
    randomness_address: Optional[str] = None
    randomness_abi_path: str = (
        "artifacts/contracts/RandomNumberGenerator.sol/RandomNumberGenerator.json"
    )
    signer_key: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self.rpc_url and self.payment_token_address and self.randomness_address)


@dataclass(frozen=True)
class AppSettings:
    flask: FlaskSettings
    database_url: str
    admin_api_key: Optional[str]
    payment_token: str = "CAKE"
    limits: LotteryLimits = field(default_factory=LotteryLimits)
    roles: RoleSettings = field(default_factory=RoleSettings)
    web3: Web3Settings = field(default_factory=Web3Settings)


def _int_from_env(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return int(value)


@lru_cache(maxsize=1)
def load_settings(dotenv_path: Optional[str] = None) -> AppSettings:
    if dotenv_path:
        load_dotenv(dotenv_path)
    else:
        load_dotenv()

    flask_settings = FlaskSettings(
        secret_key=os.getenv("FLASK_SECRET_KEY", "lottery-dev-secret"),
        debug=os.getenv("FLASK_DEBUG", "1") == "1",
    )

    defaults = LotteryLimits()
    limits = LotteryLimits(
        max_tickets_per_call=_int_from_env("MAX_TICKETS_PER_CALL", defaults.max_tickets_per_call),
        min_discount_divisor=_int_from_env("MIN_DISCOUNT_DIVISOR", defaults.min_discount_divisor),
        max_treasury_fee=_int_from_env("MAX_TREASURY_FEE", defaults.max_treasury_fee),
        min_ticket_price=_int_from_env("MIN_TICKET_PRICE", defaults.min_ticket_price),
        max_ticket_price=_int_from_env("MAX_TICKET_PRICE", defaults.max_ticket_price),
        min_round_length=_int_from_env("MIN_ROUND_LENGTH", defaults.min_round_length),
        max_round_length=_int_from_env("MAX_ROUND_LENGTH", defaults.max_round_length),
    )

    roles = RoleSettings(
        owner=os.getenv("LOTTERY_OWNER", "owner"),
        operator=os.getenv("LOTTERY_OPERATOR"),
        treasury=os.getenv("LOTTERY_TREASURY"),
        injector=os.getenv("LOTTERY_INJECTOR"),
        randomness_provider=os.getenv("RANDOMNESS_PROVIDER"),
    )

    web3_settings = Web3Settings(
        rpc_url=os.getenv("RPC_URL"),
        payment_token_address=os.getenv("PAYMENT_TOKEN_ADDRESS"),
        payment_token_abi_path=os.getenv(
            "PAYMENT_TOKEN_ABI_PATH", Web3Settings.payment_token_abi_path
        ),
        randomness_address=os.getenv("RANDOMNESS_CONTRACT_ADDRESS"),
        randomness_abi_path=os.getenv("RANDOMNESS_ABI_PATH", Web3Settings.randomness_abi_path),
        signer_key=os.getenv("LOTTERY_SIGNER"),
    )

    return AppSettings(
        flask=flask_settings,
        database_url=os.getenv("DATABASE_URL", "sqlite:///:memory:"),
        admin_api_key=os.getenv("ADMIN_API_KEY"),
        payment_token=os.getenv("PAYMENT_TOKEN", "CAKE"),
        limits=limits,
        roles=roles,
        web3=web3_settings,
    )
