"""
DynamoDB Key-Value Store
Durable implementation of the KeyValueStore contract on a single table.

Table layout (partition key "pk", sort key "sk", both strings):
  scalar      pk=<key> sk="#scalar"        value=<str>
  list        pk=<key> sk="#list"          items=[<str>, ...]  (head first)
  set         pk=<key> sk="#set"           members={<str>, ...}
  sorted set  pk=<key> sk="zset#<member>"  member=<str> score=<number>
"""
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from finsight.core.config import settings
from finsight.db.store import KeyValueStore, StorageError, remove_occurrences, slice_inclusive

logger = logging.getLogger(__name__)

SCALAR_SK = "#scalar"
LIST_SK = "#list"
SET_SK = "#set"
ZSET_PREFIX = "zset#"


class DynamoKeyValueStore(KeyValueStore):
    def __init__(
        self,
        table: Any = None,
        table_name: Optional[str] = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ) -> None:
        if table is None:
            dynamodb = boto3.resource(
                "dynamodb",
                region_name=region or settings.DYNAMO_REGION,
                endpoint_url=endpoint_url or settings.DYNAMO_ENDPOINT_URL,
            )
            table = dynamodb.Table(table_name or settings.DYNAMO_TABLE)
        self._table = table

    def _call(self, operation: str, fn: Callable, **kwargs) -> Dict[str, Any]:
        try:
            return fn(**kwargs)
        except ClientError as e:
            message = e.response.get("Error", {}).get("Message", str(e))
            logger.error(f"DynamoDB {operation} failed: {message}")
            raise StorageError(f"{operation} failed: {message}") from e
        except BotoCoreError as e:
            message = str(e)
            logger.error(f"DynamoDB {operation} failed: {message}")
            raise StorageError(f"{operation} failed: {message}") from e

    def _get_item(self, key: str, sk: str) -> Optional[Dict[str, Any]]:
        response = self._call("get_item", self._table.get_item, Key={"pk": key, "sk": sk})
        item = response.get("Item")
        return _from_dynamo(item) if item else None

    def _query_all(self, key: str, sk_prefix: Optional[str] = None) -> List[Dict[str, Any]]:
        condition = Key("pk").eq(key)
        if sk_prefix:
            condition = condition & Key("sk").begins_with(sk_prefix)

        items: List[Dict[str, Any]] = []
        kwargs: Dict[str, Any] = {"KeyConditionExpression": condition}
        while True:
            response = self._call("query", self._table.query, **kwargs)
            items.extend(_from_dynamo(item) for item in response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    def _zset_members(self, key: str) -> List[Dict[str, Any]]:
        return self._query_all(key, ZSET_PREFIX)

    # Scalars

    def get(self, key: str) -> Optional[str]:
        item = self._get_item(key, SCALAR_SK)
        return item.get("value") if item else None

    def set(self, key: str, value: str) -> None:
        self._call(
            "put_item",
            self._table.put_item,
            Item={"pk": key, "sk": SCALAR_SK, "value": value},
        )

    def delete(self, key: str) -> None:
        for item in self._query_all(key):
            self._call(
                "delete_item",
                self._table.delete_item,
                Key={"pk": item["pk"], "sk": item["sk"]},
            )

    # Lists

    def lpush(self, key: str, value: str) -> None:
        self._call(
            "update_item",
            self._table.update_item,
            Key={"pk": key, "sk": LIST_SK},
            UpdateExpression="SET #items = list_append(:new, if_not_exists(#items, :empty))",
            ExpressionAttributeNames={"#items": "items"},
            ExpressionAttributeValues={":new": [value], ":empty": []},
        )

    def _list_items(self, key: str) -> List[str]:
        item = self._get_item(key, LIST_SK)
        return list(item.get("items", [])) if item else []

    def lrange(self, key: str, start: int, end: int) -> List[str]:
        return slice_inclusive(self._list_items(key), start, end)

    def lrem(self, key: str, count: int, value: str) -> int:
        items = self._list_items(key)
        removed = remove_occurrences(items, count, value)
        if not removed:
            return 0
        if items:
            self._call(
                "put_item",
                self._table.put_item,
                Item={"pk": key, "sk": LIST_SK, "items": items},
            )
        else:
            self._call("delete_item", self._table.delete_item, Key={"pk": key, "sk": LIST_SK})
        return removed

    # Sets

    def sadd(self, key: str, member: str) -> None:
        self._call(
            "update_item",
            self._table.update_item,
            Key={"pk": key, "sk": SET_SK},
            UpdateExpression="ADD #members :member",
            ExpressionAttributeNames={"#members": "members"},
            ExpressionAttributeValues={":member": {member}},
        )

    def smembers(self, key: str) -> List[str]:
        item = self._get_item(key, SET_SK)
        return sorted(item.get("members", set())) if item else []

    # Sorted sets

    def zadd(self, key: str, score: float, member: str) -> None:
        self._call(
            "put_item",
            self._table.put_item,
            Item=_convert_for_dynamo(
                {"pk": key, "sk": f"{ZSET_PREFIX}{member}", "member": member, "score": float(score)}
            ),
        )

    def zrevrange(self, key: str, start: int, stop: int) -> List[str]:
        ordered = sorted(self._zset_members(key), key=lambda item: item["score"], reverse=True)
        return [item["member"] for item in slice_inclusive(ordered, start, stop)]

    def zrangebyscore(self, key: str, min_score: float, max_score: float) -> List[str]:
        matching = [
            item for item in self._zset_members(key)
            if min_score <= item["score"] <= max_score
        ]
        return [item["member"] for item in sorted(matching, key=lambda item: item["score"])]

    def zrem(self, key: str, member: str) -> None:
        self._call(
            "delete_item",
            self._table.delete_item,
            Key={"pk": key, "sk": f"{ZSET_PREFIX}{member}"},
        )

    def zcard(self, key: str) -> int:
        return len(self._zset_members(key))


def _convert_for_dynamo(obj: Any):
    """
    Recursively convert floats to Decimal for DynamoDB compatibility.
    """
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: _convert_for_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_for_dynamo(v) for v in obj]
    return obj


def _from_dynamo(obj: Any):
    """
    Recursively convert Decimal instances back to native Python numeric types.
    """
    if isinstance(obj, list):
        return [_from_dynamo(item) for item in obj]
    if isinstance(obj, dict):
        return {k: _from_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    return obj
