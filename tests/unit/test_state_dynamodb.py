"""Tests for the DynamoDB state store using moto."""

import boto3
import pytest

from stratum import schema
from stratum.exceptions import (
    ImmutableIdentifierError,
    LockContentionError,
    StateCorruptionError,
    ValidationError,
)
from stratum.models import StateRecord
from stratum.state import DynamoDBStateStore, StateStore
from stratum.state.dynamodb import _deserialize_value, _serialize_value

TABLE = "stratum-state"


def _record(address: str = "fake_role.exec", provider_id: str = "role-1", **kwargs) -> StateRecord:
    return StateRecord(
        address=address,
        resource_type=address.split(".")[0],
        provider_id=provider_id,
        attributes=kwargs.pop("attributes", {"name": "exec", "memory": 128, "ratio": 0.5}),
        outputs={"arn": f"arn:fake:{provider_id}"},
        **kwargs,
    )


@pytest.fixture
def dynamo_store(mock_dynamodb) -> DynamoDBStateStore:
    store = DynamoDBStateStore(TABLE, "prod", region="us-east-1", poll_interval=0.01)
    store.create_table()
    return store


class TestSerialization:
    """Tests for DynamoDB attribute conversion."""

    def test_nested_values(self):
        value = {"a": [1, 2.5, "x", None, True], "b": {"c": {}}}
        assert _deserialize_value(_serialize_value(value)) == value

    def test_unsupported_attribute(self):
        with pytest.raises(ValueError, match="Unsupported"):
            _deserialize_value({"SS": ["a"]})


class TestDynamoDBStateStore:
    """Record storage."""

    def test_satisfies_protocol(self, dynamo_store):
        assert isinstance(dynamo_store, StateStore)
        assert dynamo_store.location == "dynamodb://stratum-state/prod"

    def test_create_table_is_idempotent(self, dynamo_store):
        dynamo_store.create_table()

    def test_delete_table(self, dynamo_store):
        dynamo_store.delete_table()
        tables = boto3.client("dynamodb", region_name="us-east-1").list_tables()["TableNames"]
        assert TABLE not in tables
        dynamo_store.delete_table()

    def test_empty_state(self, dynamo_store):
        assert dynamo_store.read("fake_role.exec") is None
        assert dynamo_store.list() == []
        assert dynamo_store.metadata().serial == 0
        assert dynamo_store.metadata().lineage is None

    def test_write_read_round_trip(self, dynamo_store):
        stored = dynamo_store.write(_record(dependencies=("fake_role.base",)))
        assert stored.serial == 1
        assert dynamo_store.read("fake_role.exec") == stored

    def test_item_layout(self, dynamo_store):
        dynamo_store.write(_record())
        client = boto3.client("dynamodb", region_name="us-east-1")
        item = client.get_item(
            TableName=TABLE,
            Key={"PK": {"S": "STATE#prod"}, "SK": {"S": schema.sk_resource("fake_role.exec")}},
        )["Item"]
        assert item["serial"] == {"N": "1"}
        assert item["schema_version"] == {"S": "1.0.0"}

    def test_metadata_serial_and_lineage(self, dynamo_store):
        dynamo_store.write(_record())
        first = dynamo_store.metadata()
        dynamo_store.write(_record(attributes={"name": "renamed"}))
        dynamo_store.delete("fake_role.exec")
        second = dynamo_store.metadata()
        assert first.serial == 1
        assert second.serial == 3
        assert second.lineage == first.lineage is not None

    def test_delete_missing_does_not_bump(self, dynamo_store):
        dynamo_store.delete("fake_role.nope")
        assert dynamo_store.metadata().serial == 0

    def test_provider_id_is_immutable(self, dynamo_store):
        dynamo_store.write(_record())
        with pytest.raises(ImmutableIdentifierError):
            dynamo_store.write(_record(provider_id="role-2"))

    def test_states_are_isolated(self, dynamo_store):
        other = DynamoDBStateStore(TABLE, "staging", region="us-east-1")
        dynamo_store.write(_record())
        assert other.list() == []
        assert other.read("fake_role.exec") is None

    def test_list_paginates(self, dynamo_store):
        for i in range(30):
            dynamo_store.write(_record(f"fake_role.r{i}", f"role-{i}"))
        assert len(dynamo_store.list()) == 30

    def test_corrupt_record(self, dynamo_store):
        client = boto3.client("dynamodb", region_name="us-east-1")
        client.put_item(
            TableName=TABLE,
            Item={
                "PK": {"S": "STATE#prod"},
                "SK": {"S": schema.sk_resource("fake_role.bad")},
                "schema_version": {"S": "1.0.0"},
                "data": {"M": {"address": {"S": "fake_role.bad"}}},
            },
        )
        with pytest.raises(StateCorruptionError):
            dynamo_store.read("fake_role.bad")

    def test_incompatible_schema(self, dynamo_store):
        client = boto3.client("dynamodb", region_name="us-east-1")
        client.put_item(
            TableName=TABLE,
            Item={
                "PK": {"S": "STATE#prod"},
                "SK": {"S": schema.sk_meta()},
                "schema_version": {"S": "9.0.0"},
                "serial": {"N": "4"},
            },
        )
        with pytest.raises(StateCorruptionError, match="major"):
            dynamo_store.metadata()

    def test_invalid_state_name(self, mock_dynamodb):
        with pytest.raises(ValidationError):
            DynamoDBStateStore(TABLE, "1-bad", region="us-east-1")


class TestDynamoDBLocking:
    """Conditional-put session locks."""

    def test_lock_is_exclusive(self, dynamo_store):
        with dynamo_store.lock(timeout=0.05) as info:
            with pytest.raises(LockContentionError) as exc_info:
                with dynamo_store.lock(timeout=0.05):
                    pass
            assert exc_info.value.holder == info.owner

    def test_lock_released(self, dynamo_store):
        with dynamo_store.lock(timeout=0.05):
            pass
        with dynamo_store.lock(timeout=0.05):
            pass

    def test_expired_lock_is_taken_over(self, dynamo_store):
        client = boto3.client("dynamodb", region_name="us-east-1")
        client.put_item(
            TableName=TABLE,
            Item={
                "PK": {"S": "STATE#prod"},
                "SK": {"S": schema.sk_lock("session")},
                "owner": {"S": "crashed-host:1"},
                "acquired_at": {"N": "1"},
                "expires_at": {"N": "2"},
            },
        )
        with dynamo_store.lock(timeout=0.05) as info:
            assert info.owner != "crashed-host:1"

    def test_lock_not_listed_as_resource(self, dynamo_store):
        with dynamo_store.lock(timeout=0.05):
            assert dynamo_store.list() == []
