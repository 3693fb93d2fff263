"""DynamoDB state table schema definitions and key builders."""

from typing import Any

# Key prefixes
STATE_PREFIX = "STATE#"

# Sort key prefixes
SK_META = "#META"
SK_LOCK = "#LOCK"
SK_RESOURCE = "#RESOURCE#"


def pk_state(state_name: str) -> str:
    """Build partition key for all records of one state."""
    return f"{STATE_PREFIX}{state_name}"


def sk_meta() -> str:
    """Build sort key for state metadata (schema version, lineage, serial)."""
    return SK_META


def sk_lock(scope: str) -> str:
    """Build sort key for the lock record of a scope."""
    return f"{SK_LOCK}#{scope}"


def sk_resource(address: str) -> str:
    """Build sort key for a resource state record."""
    return f"{SK_RESOURCE}{address}"


def sk_resource_prefix() -> str:
    """Build sort key prefix for querying all resource records."""
    return SK_RESOURCE


def get_table_definition(table_name: str) -> dict[str, Any]:
    """
    Get the DynamoDB table definition for CreateTable.

    Returns a dictionary suitable for boto3 create_table().
    """
    return {
        "TableName": table_name,
        "BillingMode": "PAY_PER_REQUEST",
        "AttributeDefinitions": [
            {"AttributeName": "PK", "AttributeType": "S"},
            {"AttributeName": "SK", "AttributeType": "S"},
        ],
        "KeySchema": [
            {"AttributeName": "PK", "KeyType": "HASH"},
            {"AttributeName": "SK", "KeyType": "RANGE"},
        ],
    }
