"""DynamoDB-backed thread store.

Table layout: partition key ``id``; a Global Secondary Index on ``owner``
with sort key ``createdAt`` serves ``list_by_owner``. Messages are stored as
a JSON string so tool payloads do not need Decimal conversion.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from stack_toolkit.models.messages import dump_messages, load_messages

from stack_chat_backend.errors import (
    ConflictError,
    OwnershipError,
    StoreUnavailableError,
    ThreadExistsError,
    ThreadNotFoundError,
)
from stack_chat_backend.storage.base import ThreadRecord, timestamp

if TYPE_CHECKING:
    from stack_toolkit.models.messages import Message

logger = logging.getLogger(__name__)

_CONDITION_FAILED = "ConditionalCheckFailedException"
# "owner" is a DynamoDB reserved word; every expression goes through placeholders.
_NAMES = {"#owner": "owner", "#version": "version", "#title": "title", "#cost": "cost"}


def table_definition(table_name: str, owner_index: str = "owner-index") -> dict[str, Any]:
    """Return ``create_table`` arguments for the layout this store expects."""
    return {
        "TableName": table_name,
        "BillingMode": "PAY_PER_REQUEST",
        "AttributeDefinitions": [
            {"AttributeName": "id", "AttributeType": "S"},
            {"AttributeName": "owner", "AttributeType": "S"},
            {"AttributeName": "createdAt", "AttributeType": "S"},
        ],
        "KeySchema": [{"AttributeName": "id", "KeyType": "HASH"}],
        "GlobalSecondaryIndexes": [
            {
                "IndexName": owner_index,
                "KeySchema": [
                    {"AttributeName": "owner", "KeyType": "HASH"},
                    {"AttributeName": "createdAt", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            }
        ],
    }


def _owner_condition(expected_owner: str | None) -> str:
    if expected_owner is None:
        return "attribute_exists(id) AND attribute_not_exists(#owner)"
    return "attribute_exists(id) AND (attribute_not_exists(#owner) OR #owner = :owner)"


class DynamoThreadStore:
    """Thread store on a DynamoDB table using condition expressions."""

    def __init__(
        self,
        table_name: str,
        *,
        owner_index: str = "owner-index",
        region: str | None = None,
        table: Any | None = None,
    ) -> None:
        self._table = table or boto3.resource("dynamodb", region_name=region).Table(table_name)
        self._owner_index = owner_index

    def create(self, record: ThreadRecord) -> ThreadRecord:
        now = timestamp()
        created_at = record.created_at or now
        item: dict[str, Any] = {
            "id": record.id,
            "title": record.title,
            "messages": json.dumps(dump_messages(record.messages), ensure_ascii=True),
            "isPublic": record.is_public,
            "cost": Decimal(str(record.cost)),
            "version": record.version,
            "createdAt": created_at,
            "updatedAt": record.updated_at or created_at,
        }
        # GSI key attributes cannot be null; unowned threads omit the attribute.
        if record.owner is not None:
            item["owner"] = record.owner
        try:
            self._table.put_item(Item=item, ConditionExpression="attribute_not_exists(id)")
        except ClientError as exc:
            if _error_code(exc) == _CONDITION_FAILED:
                raise ThreadExistsError(record.id) from exc
            raise _unavailable(exc) from exc
        except BotoCoreError as exc:
            raise _unavailable(exc) from exc
        return _item_to_record(item)

    def get(self, thread_id: str) -> ThreadRecord | None:
        try:
            response = self._table.get_item(Key={"id": thread_id}, ConsistentRead=True)
        except (BotoCoreError, ClientError) as exc:
            raise _unavailable(exc) from exc
        item = response.get("Item")
        return _item_to_record(item) if item else None

    def update(
        self,
        thread_id: str,
        *,
        messages: list[Message],
        title: str | None = None,
        expected_owner: str | None = None,
        expected_version: int | None = None,
        cost_delta: float = 0.0,
    ) -> ThreadRecord:
        if cost_delta < 0:
            msg = "Cost delta must not be negative"
            raise ValueError(msg)
        assignments = ["messages = :messages", "#version = #version + :one", "updatedAt = :now"]
        values: dict[str, Any] = {
            ":messages": json.dumps(dump_messages(messages), ensure_ascii=True),
            ":one": 1,
            ":now": timestamp(),
        }
        condition = _owner_condition(expected_owner)
        if expected_owner is not None:
            assignments.append("#owner = if_not_exists(#owner, :owner)")
            values[":owner"] = expected_owner
        if title is not None:
            assignments.append("#title = :title")
            values[":title"] = title
        if expected_version is not None:
            condition += " AND #version = :version"
            values[":version"] = expected_version
        update_expression = "SET " + ", ".join(assignments)
        if cost_delta:
            update_expression += " ADD #cost :delta"
            values[":delta"] = Decimal(str(cost_delta))

        response = self._conditional_update(
            thread_id,
            expected_owner,
            expected_version,
            UpdateExpression=update_expression,
            ConditionExpression=condition,
            ExpressionAttributeValues=values,
            ReturnValues="ALL_NEW",
        )
        return _item_to_record(response["Attributes"])

    def add_cost(
        self, thread_id: str, delta: float, *, expected_owner: str | None = None
    ) -> float:
        if delta < 0:
            msg = "Cost delta must not be negative"
            raise ValueError(msg)
        values: dict[str, Any] = {":delta": Decimal(str(delta)), ":now": timestamp()}
        if expected_owner is not None:
            values[":owner"] = expected_owner
        response = self._conditional_update(
            thread_id,
            expected_owner,
            None,
            UpdateExpression="ADD #cost :delta SET updatedAt = :now",
            ConditionExpression=_owner_condition(expected_owner),
            ExpressionAttributeValues=values,
            ReturnValues="UPDATED_NEW",
        )
        return float(response["Attributes"]["cost"])

    def list_by_owner(self, owner: str, limit: int = 50) -> list[ThreadRecord]:
        try:
            response = self._table.query(
                IndexName=self._owner_index,
                KeyConditionExpression=Key("owner").eq(owner),
                ScanIndexForward=False,
                Limit=limit,
            )
        except (BotoCoreError, ClientError) as exc:
            raise _unavailable(exc) from exc
        return [_item_to_record(item) for item in response.get("Items", [])]

    def delete(self, thread_id: str, *, expected_owner: str | None = None) -> None:
        kwargs: dict[str, Any] = {
            "Key": {"id": thread_id},
            "ConditionExpression": _owner_condition(expected_owner),
            "ExpressionAttributeNames": {"#owner": "owner"},
        }
        if expected_owner is not None:
            kwargs["ExpressionAttributeValues"] = {":owner": expected_owner}
        try:
            self._table.delete_item(**kwargs)
        except ClientError as exc:
            if _error_code(exc) == _CONDITION_FAILED:
                self._raise_failed_condition(thread_id, expected_owner, None)
            raise _unavailable(exc) from exc
        except BotoCoreError as exc:
            raise _unavailable(exc) from exc

    def _conditional_update(
        self,
        thread_id: str,
        expected_owner: str | None,
        expected_version: int | None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        expression = f"{kwargs['UpdateExpression']} {kwargs['ConditionExpression']}"
        names = {name: value for name, value in _NAMES.items() if name in expression}
        try:
            return self._table.update_item(
                Key={"id": thread_id}, ExpressionAttributeNames=names, **kwargs
            )
        except ClientError as exc:
            if _error_code(exc) == _CONDITION_FAILED:
                self._raise_failed_condition(thread_id, expected_owner, expected_version)
            raise _unavailable(exc) from exc
        except BotoCoreError as exc:
            raise _unavailable(exc) from exc

    def _raise_failed_condition(
        self, thread_id: str, expected_owner: str | None, expected_version: int | None
    ) -> None:
        current = self.get(thread_id)
        if current is None:
            raise ThreadNotFoundError(thread_id)
        if current.owner is not None and current.owner != expected_owner:
            raise OwnershipError(thread_id)
        msg = (
            f"Thread {thread_id} was modified concurrently "
            f"(expected version {expected_version}, found {current.version})"
        )
        raise ConflictError(msg)


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def _unavailable(exc: Exception) -> StoreUnavailableError:
    logger.error("DynamoDB request failed: %s", exc)
    return StoreUnavailableError(f"Thread store unavailable: {exc}")


def _item_to_record(item: dict[str, Any]) -> ThreadRecord:
    raw_messages = item.get("messages") or "[]"
    return ThreadRecord(
        id=item["id"],
        title=item.get("title") or "",
        messages=load_messages(
            json.loads(raw_messages) if isinstance(raw_messages, str) else raw_messages
        ),
        owner=item.get("owner"),
        is_public=bool(item.get("isPublic", False)),
        cost=float(item.get("cost", 0)),
        version=int(item.get("version", 1)),
        created_at=item.get("createdAt", ""),
        updated_at=item.get("updatedAt", ""),
    )
