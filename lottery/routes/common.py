from __future__ import annotations

from typing import Optional, Type, TypeVar

from flask import current_app, request
from pydantic import BaseModel

from ..config import AppSettings
from ..services.lifecycle import LotteryService

IDENTITY_HEADER = "X-Identity"

ModelT = TypeVar("ModelT", bound=BaseModel)


def get_service() -> LotteryService:
    return current_app.extensions["lottery.service"]


def get_settings() -> AppSettings:
    return current_app.extensions["lottery.settings"]


def caller_identity() -> Optional[str]:
    value = request.headers.get(IDENTITY_HEADER, "").strip()
    return value or None


def parse_body(model: Type[ModelT]) -> ModelT:
    payload = request.get_json(force=True, silent=True) or {}
    return model(**payload)
