"""Session and password-reset store adapters."""

from __future__ import annotations

from .dynamodb import DynamoDBLoginStateStore, DynamoDBPasswordResetStore
from .memory import InMemoryLoginStateStore, InMemoryPasswordResetStore
from .redis import RedisLoginStateStore, RedisPasswordResetStore

__all__ = [
    "InMemoryLoginStateStore",
    "InMemoryPasswordResetStore",
    "RedisLoginStateStore",
    "RedisPasswordResetStore",
    "DynamoDBLoginStateStore",
    "DynamoDBPasswordResetStore",
]
