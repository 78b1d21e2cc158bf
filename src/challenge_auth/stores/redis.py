"""Redis-backed login session and password-reset stores.

Session records are Redis hashes keyed ``{prefix}:session:{user}`` whose
field names are the persisted attribute names. Conditional updates run as
one Lua script so the guard check and the mutation are a single atomic
step on the server.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from ..exceptions import ConditionFailedError, StateStoreError
from ..model import SESSION_FIELDS, LoginSession, PasswordResetRecord, SessionUpdate
from ..ports import ILoginStateStore, IPasswordResetStore

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# KEYS: [session_key]
# ARGV: [json {"eq": {...}, "lt": {...}, "set": {...}, "incr": {...}}]
UPDATE_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return {0, 'record does not exist'}
end
local req = cjson.decode(ARGV[1])
for field, expected in pairs(req['eq']) do
    if redis.call('HGET', KEYS[1], field) ~= tostring(expected) then
        return {0, field .. ' changed'}
    end
end
for field, bound in pairs(req['lt']) do
    local current = tonumber(redis.call('HGET', KEYS[1], field) or '0')
    if current >= tonumber(bound) then
        return {0, field .. ' at bound'}
    end
end
for field, value in pairs(req['set']) do
    redis.call('HSET', KEYS[1], field, tostring(value))
end
for field, delta in pairs(req['incr']) do
    redis.call('HINCRBY', KEYS[1], field, tonumber(delta))
end
return {1, redis.call('HGETALL', KEYS[1])}
"""


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _decode_hash(raw: Any) -> dict[str, str]:
    if isinstance(raw, dict):
        return {_decode(k): _decode(v) for k, v in raw.items()}
    # HGETALL inside Lua comes back as a flat [k1, v1, k2, v2, ...] list.
    items = [_decode(v) for v in raw]
    return dict(zip(items[::2], items[1::2], strict=True))


class RedisLoginStateStore(ILoginStateStore):
    """Login session store on a Redis hash per user.

    Redis reads are always consistent, so ``consistent`` is accepted and
    ignored.
    """

    def __init__(
        self,
        redis_client: Redis[bytes],
        *,
        key_prefix: str = "challenge_auth",
        ttl_seconds: int | None = 3600,
    ) -> None:
        self._redis = redis_client
        self._prefix = key_prefix
        self._ttl = ttl_seconds

    def _key(self, user_id: str) -> str:
        return f"{self._prefix}:session:{user_id}"

    async def get(self, user_id: str, *, consistent: bool = True) -> LoginSession | None:
        try:
            raw = await self._redis.hgetall(self._key(user_id))
        except Exception as e:
            raise StateStoreError(f"Redis read failed for {user_id}: {e}") from e
        if not raw:
            return None
        return LoginSession.from_item(_decode_hash(raw))

    async def put(self, session: LoginSession) -> None:
        key = self._key(session.user_id)
        mapping = {name: str(value) for name, value in session.to_item().items()}
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.hset(key, mapping=mapping)
                if self._ttl:
                    pipe.expire(key, self._ttl)
                await pipe.execute()
        except Exception as e:
            raise StateStoreError(f"Redis write failed for {session.user_id}: {e}") from e

    async def update(self, user_id: str, update: SessionUpdate) -> LoginSession:
        payload = json.dumps(
            {
                "eq": {SESSION_FIELDS[k]: str(v) for k, v in update.expect_equal.items()},
                "lt": {SESSION_FIELDS[k]: v for k, v in update.expect_below.items()},
                "set": {k: str(v) for k, v in update.persisted_values().items()},
                "incr": {SESSION_FIELDS[k]: v for k, v in update.increment.items()},
            }
        )
        try:
            result_raw = self._redis.eval(  # type: ignore[no-untyped-call]
                UPDATE_SCRIPT, 1, self._key(user_id), payload
            )
            result = await result_raw if hasattr(result_raw, "__await__") else result_raw
        except Exception as e:
            raise StateStoreError(f"Redis update failed for {user_id}: {e}") from e

        status, body = result[0], result[1]
        if int(status) != 1:
            raise ConditionFailedError(user_id, _decode(body))
        return LoginSession.from_item(_decode_hash(body))

    async def delete(self, user_id: str) -> None:
        try:
            await self._redis.delete(self._key(user_id))
        except Exception as e:
            raise StateStoreError(f"Redis delete failed for {user_id}: {e}") from e


class RedisPasswordResetStore(IPasswordResetStore):
    """Password-reset records as JSON strings.

    Keys expire ``retention_seconds`` after the record's own expiry, so
    an expired record can still be told apart from an absent one.
    """

    def __init__(
        self,
        redis_client: Redis[bytes],
        *,
        key_prefix: str = "challenge_auth",
        retention_seconds: int = 3600,
    ) -> None:
        self._redis = redis_client
        self._prefix = key_prefix
        self._retention = retention_seconds

    def _key(self, user_id: str) -> str:
        return f"{self._prefix}:reset:{user_id}"

    async def get(self, user_id: str) -> PasswordResetRecord | None:
        try:
            raw = await self._redis.get(self._key(user_id))
        except Exception as e:
            raise StateStoreError(f"Redis read failed for {user_id}: {e}") from e
        if not raw:
            return None
        return PasswordResetRecord.from_item(json.loads(raw))

    async def put(self, record: PasswordResetRecord) -> None:
        key = self._key(record.user_id)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.set(key, json.dumps(record.to_item()))
                pipe.expireat(key, record.expires_at + self._retention)
                await pipe.execute()
        except Exception as e:
            raise StateStoreError(f"Redis write failed for {record.user_id}: {e}") from e
        logger.debug(f"Stored reset record at {key}")

    async def delete(self, user_id: str) -> None:
        try:
            await self._redis.delete(self._key(user_id))
        except Exception as e:
            raise StateStoreError(f"Redis delete failed for {user_id}: {e}") from e


__all__: list[str] = ["RedisLoginStateStore", "RedisPasswordResetStore", "UPDATE_SCRIPT"]
