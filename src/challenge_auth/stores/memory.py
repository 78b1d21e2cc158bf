"""In-memory stores for development and testing.

WARNING: Not suitable for production use. State lives in a local
dictionary and is not shared between workers or invocations.
"""

from __future__ import annotations

import asyncio

from ..exceptions import ConditionFailedError
from ..model import LoginSession, PasswordResetRecord, SessionUpdate
from ..ports import ILoginStateStore, IPasswordResetStore


class InMemoryLoginStateStore(ILoginStateStore):
    """In-memory login session store.

    Updates run under an ``asyncio.Lock`` so concurrent coroutines observe
    the same atomicity the Redis and DynamoDB stores provide.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, LoginSession] = {}
        self._lock = asyncio.Lock()

    async def get(self, user_id: str, *, consistent: bool = True) -> LoginSession | None:
        return self._sessions.get(user_id)

    async def put(self, session: LoginSession) -> None:
        async with self._lock:
            self._sessions[session.user_id] = session

    async def update(self, user_id: str, update: SessionUpdate) -> LoginSession:
        async with self._lock:
            current = self._sessions.get(user_id)
            if current is None:
                raise ConditionFailedError(user_id, "record does not exist")
            violated = update.violated_guard(current)
            if violated:
                raise ConditionFailedError(user_id, violated)
            updated = update.apply(current)
            self._sessions[user_id] = updated
            return updated

    async def delete(self, user_id: str) -> None:
        async with self._lock:
            self._sessions.pop(user_id, None)

    def clear_all(self) -> None:
        """Clear all records. Useful for testing cleanup."""
        self._sessions.clear()


class InMemoryPasswordResetStore(IPasswordResetStore):
    """In-memory password-reset store.

    Expired records are kept until deleted; expiry is judged by the
    reset service against ``expires_at``.
    """

    def __init__(self) -> None:
        self._records: dict[str, PasswordResetRecord] = {}

    async def get(self, user_id: str) -> PasswordResetRecord | None:
        return self._records.get(user_id)

    async def put(self, record: PasswordResetRecord) -> None:
        self._records[record.user_id] = record

    async def delete(self, user_id: str) -> None:
        self._records.pop(user_id, None)


__all__: list[str] = ["InMemoryLoginStateStore", "InMemoryPasswordResetStore"]
