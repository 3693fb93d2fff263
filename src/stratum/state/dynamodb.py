"""DynamoDB state store.

Uses boto3 (sync) directly, like the AWS providers. All records of one state
share a partition key; see :mod:`stratum.schema` for the key layout.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from typing import Any

import boto3
from botocore.exceptions import ClientError

from .. import schema
from ..exceptions import LockContentionError, StateCorruptionError
from ..models import StateRecord
from ..naming import DEFAULT_STATE_NAME, validate_state_name
from ..version import STATE_SCHEMA_VERSION
from .base import (
    DEFAULT_LOCK_SCOPE,
    DEFAULT_POLL_INTERVAL,
    LockInfo,
    StateMetadata,
    check_identifier,
    check_schema_version,
    decode_record,
    new_lineage,
    new_lock,
    wait_intervals,
)

logger = logging.getLogger(__name__)


def _serialize_value(value: Any) -> dict[str, Any]:
    """Serialize a Python value to DynamoDB attribute format."""
    if value is None:
        return {"NULL": True}
    elif isinstance(value, bool):
        return {"BOOL": value}
    elif isinstance(value, str):
        return {"S": value}
    elif isinstance(value, int | float):
        return {"N": str(value)}
    elif isinstance(value, list | tuple):
        return {"L": [_serialize_value(v) for v in value]}
    elif isinstance(value, dict):
        return {"M": {str(k): _serialize_value(v) for k, v in value.items()}}
    else:
        return {"S": str(value)}


def _deserialize_value(attr: dict[str, Any]) -> Any:
    """Deserialize a DynamoDB attribute to a Python value."""
    if "S" in attr:
        return attr["S"]
    elif "N" in attr:
        num_str = attr["N"]
        return int(num_str) if "." not in num_str and "e" not in num_str.lower() else float(num_str)
    elif "BOOL" in attr:
        return attr["BOOL"]
    elif "NULL" in attr:
        return None
    elif "L" in attr:
        return [_deserialize_value(v) for v in attr["L"]]
    elif "M" in attr:
        return {k: _deserialize_value(v) for k, v in attr["M"].items()}
    raise ValueError(f"Unsupported DynamoDB attribute: {sorted(attr)}")


def _is_condition_failure(e: ClientError) -> bool:
    return e.response["Error"]["Code"] == "ConditionalCheckFailedException"


class DynamoDBStateStore:
    """
    State store backed by a DynamoDB table.

    Args:
        table_name: DynamoDB table (create it with :meth:`create_table`)
        state_name: Partition within the table, allowing several states per table
        region: AWS region (default: use boto3 defaults)
        endpoint_url: Optional endpoint URL (LocalStack or other AWS-compatible services)
        client: Optional boto3 DynamoDB client (injected for testing)
    """

    def __init__(
        self,
        table_name: str,
        state_name: str = DEFAULT_STATE_NAME,
        region: str | None = None,
        endpoint_url: str | None = None,
        client: Any | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.table_name = table_name
        self.state_name = validate_state_name(state_name)
        self._poll_interval = poll_interval
        if client is None:
            kwargs: dict[str, Any] = {}
            if region:
                kwargs["region_name"] = region
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("dynamodb", **kwargs)
        self._client = client

    @property
    def location(self) -> str:
        return f"dynamodb://{self.table_name}/{self.state_name}"

    def _key(self, sk: str) -> dict[str, Any]:
        return {"PK": {"S": schema.pk_state(self.state_name)}, "SK": {"S": sk}}

    # -------------------------------------------------------------------------
    # Table management
    # -------------------------------------------------------------------------

    def create_table(self) -> None:
        """Create the DynamoDB table if it doesn't exist."""
        try:
            self._client.create_table(**schema.get_table_definition(self.table_name))
            waiter = self._client.get_waiter("table_exists")
            waiter.wait(TableName=self.table_name)
        except ClientError as e:
            if e.response["Error"]["Code"] != "ResourceInUseException":
                raise

    def delete_table(self) -> None:
        """Delete the DynamoDB table."""
        try:
            self._client.delete_table(TableName=self.table_name)
        except ClientError as e:
            if e.response["Error"]["Code"] != "ResourceNotFoundException":
                raise

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def _decode_item(self, item: dict[str, Any]) -> StateRecord:
        sk = item.get("SK", {}).get("S", "")
        location = f"{self.location}#{sk}"
        check_schema_version(location, item.get("schema_version", {}).get("S"))
        if "data" not in item:
            raise StateCorruptionError(location, "missing 'data' attribute")
        try:
            data = _deserialize_value(item["data"])
        except (ValueError, TypeError, AttributeError) as e:
            raise StateCorruptionError(location, f"undecodable data: {e}") from e
        return decode_record(location, data)

    def read(self, address: str) -> StateRecord | None:
        response = self._client.get_item(
            TableName=self.table_name,
            Key=self._key(schema.sk_resource(address)),
            ConsistentRead=True,
        )
        item = response.get("Item")
        if not item:
            return None
        return self._decode_item(item)

    def write(self, record: StateRecord) -> StateRecord:
        existing = self.read(record.address)
        check_identifier(existing, record)
        stored = replace(record, serial=(existing.serial if existing else 0) + 1)

        item = {
            **self._key(schema.sk_resource(record.address)),
            "schema_version": {"S": STATE_SCHEMA_VERSION},
            "address": {"S": record.address},
            "data": _serialize_value(stored.to_dict()),
            "serial": {"N": str(stored.serial)},
        }
        kwargs: dict[str, Any] = {}
        if existing is None:
            kwargs["ConditionExpression"] = "attribute_not_exists(PK)"
        else:
            kwargs["ConditionExpression"] = "#serial = :prev"
            kwargs["ExpressionAttributeNames"] = {"#serial": "serial"}
            kwargs["ExpressionAttributeValues"] = {":prev": {"N": str(existing.serial)}}

        try:
            self._client.put_item(TableName=self.table_name, Item=item, **kwargs)
        except ClientError as e:
            if _is_condition_failure(e):
                raise StateCorruptionError(
                    self.location, f"concurrent write detected for {record.address}"
                ) from e
            raise

        self._bump_serial()
        logger.debug("Wrote state for %s (serial %d)", record.address, stored.serial)
        return stored

    def delete(self, address: str) -> None:
        response = self._client.delete_item(
            TableName=self.table_name,
            Key=self._key(schema.sk_resource(address)),
            ReturnValues="ALL_OLD",
        )
        if response.get("Attributes"):
            self._bump_serial()
            logger.debug("Deleted state for %s", address)

    def list(self) -> list[StateRecord]:
        records: list[StateRecord] = []
        kwargs: dict[str, Any] = {
            "TableName": self.table_name,
            "KeyConditionExpression": "PK = :pk AND begins_with(SK, :sk_prefix)",
            "ExpressionAttributeValues": {
                ":pk": {"S": schema.pk_state(self.state_name)},
                ":sk_prefix": {"S": schema.sk_resource_prefix()},
            },
            "ConsistentRead": True,
        }
        while True:
            response = self._client.query(**kwargs)
            records.extend(self._decode_item(item) for item in response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return records
            kwargs["ExclusiveStartKey"] = last_key

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def _bump_serial(self) -> None:
        self._client.update_item(
            TableName=self.table_name,
            Key=self._key(schema.sk_meta()),
            UpdateExpression=(
                "SET #lineage = if_not_exists(#lineage, :lineage), #version = :version "
                "ADD #serial :one"
            ),
            ExpressionAttributeNames={
                "#lineage": "lineage",
                "#version": "schema_version",
                "#serial": "serial",
            },
            ExpressionAttributeValues={
                ":lineage": {"S": new_lineage()},
                ":version": {"S": STATE_SCHEMA_VERSION},
                ":one": {"N": "1"},
            },
        )

    def metadata(self) -> StateMetadata:
        response = self._client.get_item(
            TableName=self.table_name,
            Key=self._key(schema.sk_meta()),
            ConsistentRead=True,
        )
        item = response.get("Item")
        if not item:
            return StateMetadata()
        location = f"{self.location}#{schema.sk_meta()}"
        version = item.get("schema_version", {}).get("S")
        check_schema_version(location, version)
        try:
            serial = int(item["serial"]["N"])
        except (KeyError, ValueError) as e:
            raise StateCorruptionError(location, "invalid serial") from e
        return StateMetadata(
            lineage=item.get("lineage", {}).get("S"),
            serial=serial,
            schema_version=version,
        )

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------

    def _try_lock(self, info: LockInfo) -> bool:
        try:
            self._client.put_item(
                TableName=self.table_name,
                Item={
                    **self._key(schema.sk_lock(info.scope)),
                    "owner": {"S": info.owner},
                    "acquired_at": {"N": str(info.acquired_at)},
                    "expires_at": {"N": str(info.expires_at)},
                },
                ConditionExpression="attribute_not_exists(PK) OR expires_at < :now",
                ExpressionAttributeValues={":now": {"N": str(time.time())}},
            )
        except ClientError as e:
            if _is_condition_failure(e):
                return False
            raise
        return True

    def _read_lock(self, scope: str) -> LockInfo | None:
        response = self._client.get_item(
            TableName=self.table_name,
            Key=self._key(schema.sk_lock(scope)),
            ConsistentRead=True,
        )
        item = response.get("Item")
        if not item:
            return None
        return LockInfo(
            scope=scope,
            owner=item["owner"]["S"],
            acquired_at=float(item["acquired_at"]["N"]),
            expires_at=float(item["expires_at"]["N"]),
        )

    @contextmanager
    def lock(
        self,
        scope: str = DEFAULT_LOCK_SCOPE,
        timeout: float = 30.0,
        ttl: float = 3600.0,
    ) -> Iterator[LockInfo]:
        start = time.monotonic()
        info = new_lock(scope, ttl)
        holder: LockInfo | None = None
        for _ in wait_intervals(timeout, self._poll_interval):
            if self._try_lock(info):
                break
            holder = self._read_lock(scope)
        else:
            raise LockContentionError(
                scope, holder.owner if holder else None, time.monotonic() - start
            )

        logger.debug("Acquired state lock %s/%s as %s", self.location, scope, info.owner)
        try:
            yield info
        finally:
            try:
                self._client.delete_item(
                    TableName=self.table_name,
                    Key=self._key(schema.sk_lock(scope)),
                    ConditionExpression="#owner = :owner",
                    ExpressionAttributeNames={"#owner": "owner"},
                    ExpressionAttributeValues={":owner": {"S": info.owner}},
                )
                logger.debug("Released state lock %s/%s", self.location, scope)
            except ClientError as e:
                if not _is_condition_failure(e):
                    raise
                logger.warning("State lock %s/%s was taken over before release", self.location, scope)
