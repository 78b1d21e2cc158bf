"""DynamoDB-backed login session and password-reset stores (aiobotocore).

Items are keyed by ``userName``. Conditional updates are single
``UpdateItem`` calls with a ``ConditionExpression``, so DynamoDB applies
the guard and the mutation atomically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from ..aws import AwsClientManager, error_code
from ..exceptions import ConditionFailedError, StateStoreError
from ..model import (
    SESSION_FIELDS,
    SESSION_KEY,
    TTL_ATTRIBUTE,
    LoginSession,
    PasswordResetRecord,
    SessionUpdate,
)
from ..ports import ILoginStateStore, IPasswordResetStore

logger = logging.getLogger(__name__)

CONDITION_FAILED = "ConditionalCheckFailedException"


# ═══════════════════════════════════════════════════════════════
# ATTRIBUTE MARSHALLING
# ═══════════════════════════════════════════════════════════════


def to_attribute(value: Any) -> dict[str, str]:
    """Typed DynamoDB attribute value for a string or integer."""
    if isinstance(value, bool):
        raise TypeError("Boolean attributes are not stored")
    if isinstance(value, int):
        return {"N": str(value)}
    return {"S": str(value)}


def from_attribute(attribute: Mapping[str, Any]) -> Any:
    if "N" in attribute:
        return int(attribute["N"])
    if "S" in attribute:
        return attribute["S"]
    raise ValueError(f"Unsupported attribute type: {sorted(attribute)}")


def marshal(item: Mapping[str, Any]) -> dict[str, dict[str, str]]:
    return {name: to_attribute(value) for name, value in item.items()}


def unmarshal(item: Mapping[str, Mapping[str, Any]]) -> dict[str, Any]:
    return {name: from_attribute(value) for name, value in item.items()}


def build_update_request(update: SessionUpdate) -> dict[str, Any]:
    """``UpdateItem`` expression arguments for ``update``.

    The record must already exist; every guard becomes part of the
    ``ConditionExpression``.
    """
    names: dict[str, str] = {"#pk": SESSION_KEY}
    values: dict[str, dict[str, str]] = {}

    set_clauses: list[str] = []
    for i, (name, value) in enumerate(update.persisted_values().items()):
        names[f"#s{i}"] = name
        values[f":s{i}"] = to_attribute(value)
        set_clauses.append(f"#s{i} = :s{i}")

    add_clauses: list[str] = []
    for i, (field_name, delta) in enumerate(update.increment.items()):
        names[f"#a{i}"] = SESSION_FIELDS[field_name]
        values[f":a{i}"] = to_attribute(delta)
        add_clauses.append(f"#a{i} :a{i}")

    conditions = ["attribute_exists(#pk)"]
    for i, (field_name, expected) in enumerate(update.expect_equal.items()):
        names[f"#e{i}"] = SESSION_FIELDS[field_name]
        values[f":e{i}"] = to_attribute(expected)
        conditions.append(f"#e{i} = :e{i}")
    for i, (field_name, bound) in enumerate(update.expect_below.items()):
        names[f"#b{i}"] = SESSION_FIELDS[field_name]
        values[f":b{i}"] = to_attribute(bound)
        conditions.append(f"#b{i} < :b{i}")

    expression: list[str] = []
    if set_clauses:
        expression.append("SET " + ", ".join(set_clauses))
    if add_clauses:
        expression.append("ADD " + ", ".join(add_clauses))
    if not expression:
        raise ValueError("Update has nothing to apply")

    request: dict[str, Any] = {
        "UpdateExpression": " ".join(expression),
        "ConditionExpression": " AND ".join(conditions),
        "ExpressionAttributeNames": names,
        "ReturnValues": "ALL_NEW",
    }
    if values:
        request["ExpressionAttributeValues"] = values
    return request


# ═══════════════════════════════════════════════════════════════
# STORES
# ═══════════════════════════════════════════════════════════════


class DynamoDBLoginStateStore(ILoginStateStore):
    """Login session store on a DynamoDB table keyed by ``userName``.

    New records carry a ``ttl`` attribute so abandoned logins are
    reclaimed by the table's time-to-live sweep.
    """

    def __init__(
        self,
        table_name: str = "UserAuthState",
        *,
        client_manager: AwsClientManager | None = None,
        region_name: str = "us-east-1",
        ttl_seconds: int | None = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.table_name = table_name
        self._clients = client_manager or AwsClientManager("dynamodb", region_name)
        self._ttl = ttl_seconds
        self._clock = clock

    def _key(self, user_id: str) -> dict[str, dict[str, str]]:
        return {SESSION_KEY: {"S": user_id}}

    async def get(self, user_id: str, *, consistent: bool = True) -> LoginSession | None:
        client = await self._clients.get_client()
        try:
            response = await client.get_item(
                TableName=self.table_name,
                Key=self._key(user_id),
                ConsistentRead=consistent,
            )
        except Exception as e:
            raise StateStoreError(f"DynamoDB read failed for {user_id}: {e}") from e
        item = response.get("Item")
        if not item:
            return None
        return LoginSession.from_item(unmarshal(item))

    async def put(self, session: LoginSession) -> None:
        item = session.to_item()
        if self._ttl:
            item[TTL_ATTRIBUTE] = int(self._clock()) + self._ttl
        client = await self._clients.get_client()
        try:
            await client.put_item(TableName=self.table_name, Item=marshal(item))
        except Exception as e:
            raise StateStoreError(f"DynamoDB write failed for {session.user_id}: {e}") from e

    async def update(self, user_id: str, update: SessionUpdate) -> LoginSession:
        request = build_update_request(update)
        client = await self._clients.get_client()
        try:
            response = await client.update_item(
                TableName=self.table_name,
                Key=self._key(user_id),
                **request,
            )
        except Exception as e:
            if error_code(e) == CONDITION_FAILED:
                raise ConditionFailedError(user_id, request["ConditionExpression"]) from e
            raise StateStoreError(f"DynamoDB update failed for {user_id}: {e}") from e
        return LoginSession.from_item(unmarshal(response["Attributes"]))

    async def delete(self, user_id: str) -> None:
        client = await self._clients.get_client()
        try:
            await client.delete_item(TableName=self.table_name, Key=self._key(user_id))
        except Exception as e:
            raise StateStoreError(f"DynamoDB delete failed for {user_id}: {e}") from e


class DynamoDBPasswordResetStore(IPasswordResetStore):
    """Password-reset records on a DynamoDB table keyed by ``userName``.

    The ``ttl`` attribute holds the code's own expiry; DynamoDB's sweep
    is lazy, so expiry is still checked by the reset service.
    """

    def __init__(
        self,
        table_name: str = "UserPasswordReset",
        *,
        client_manager: AwsClientManager | None = None,
        region_name: str = "us-east-1",
    ) -> None:
        self.table_name = table_name
        self._clients = client_manager or AwsClientManager("dynamodb", region_name)

    async def get(self, user_id: str) -> PasswordResetRecord | None:
        client = await self._clients.get_client()
        try:
            response = await client.get_item(
                TableName=self.table_name,
                Key={SESSION_KEY: {"S": user_id}},
                ConsistentRead=True,
            )
        except Exception as e:
            raise StateStoreError(f"DynamoDB read failed for {user_id}: {e}") from e
        item = response.get("Item")
        if not item:
            return None
        return PasswordResetRecord.from_item(unmarshal(item))

    async def put(self, record: PasswordResetRecord) -> None:
        client = await self._clients.get_client()
        try:
            await client.put_item(TableName=self.table_name, Item=marshal(record.to_item()))
        except Exception as e:
            raise StateStoreError(f"DynamoDB write failed for {record.user_id}: {e}") from e

    async def delete(self, user_id: str) -> None:
        client = await self._clients.get_client()
        try:
            await client.delete_item(
                TableName=self.table_name, Key={SESSION_KEY: {"S": user_id}}
            )
        except Exception as e:
            raise StateStoreError(f"DynamoDB delete failed for {user_id}: {e}") from e


__all__: list[str] = [
    "DynamoDBLoginStateStore",
    "DynamoDBPasswordResetStore",
    "build_update_request",
    "marshal",
    "unmarshal",
]
