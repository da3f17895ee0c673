from __future__ import annotations


class LotteryError(Exception):
    """Base class for every rejected lottery operation.

    ``reason`` is a short stable string callers can match on exactly.
    """

    status_code = 400

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ValidationError(LotteryError):
    """Malformed input: list sizes, ranges, combinations, amounts."""


class AuthorizationError(LotteryError):
    status_code = 403


class LifecycleError(LotteryError):
    """Operation attempted while the round is in the wrong state."""

    status_code = 409


class ConsistencyError(LotteryError):
    """Stale randomness, foreign ticket ids, replayed or under-bracketed claims."""

    status_code = 409


class InsufficientFunds(ValidationError):
    pass


class NotFound(LotteryError):
    status_code = 404
