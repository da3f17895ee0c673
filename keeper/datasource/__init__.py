from .base import BeaconReading, RandomnessFeed
from .http_api import HttpBeaconFeed

__all__ = [
    "BeaconReading",
    "RandomnessFeed",
    "HttpBeaconFeed",
]
