"""Resource address and state naming utilities.

Addresses identify a resource within a document as ``<type>.<name>``:
- The type is lowercase letters, digits and underscores, starting with a letter
  (e.g. ``aws_lambda_function``)
- The name is letters, digits, underscores and hyphens, not starting with a digit
  or hyphen
"""

import re

from .exceptions import ValidationError

DEFAULT_STATE_NAME = "default"
"""Default state name used when none is configured."""

DEFAULT_STATE_FILE = "stratum.state.json"
"""Default local state file path."""

STATE_FILE_ENV_VAR = "STRATUM_STATE_FILE"
"""Environment variable for overriding the local state file path."""

STATE_TABLE_ENV_VAR = "STRATUM_STATE_TABLE"
"""Environment variable selecting the DynamoDB state table."""

STATE_NAME_ENV_VAR = "STRATUM_STATE_NAME"
"""Environment variable for overriding the state name within a table."""

TYPE_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")
NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")
STATE_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")


def validate_resource_type(resource_type: str) -> None:
    """
    Validate a resource type identifier.

    Raises:
        ValidationError: If the type is empty or malformed
    """
    if not resource_type:
        raise ValidationError("resource type", resource_type, "Resource type cannot be empty")
    if not TYPE_PATTERN.match(resource_type):
        raise ValidationError(
            "resource type",
            resource_type,
            "Must start with a lowercase letter and contain only lowercase letters, "
            "digits and underscores (e.g., 'aws_iam_role')",
        )


def validate_resource_name(name: str) -> None:
    """
    Validate the logical name part of an address.

    Raises:
        ValidationError: If the name is empty or malformed
    """
    if not name:
        raise ValidationError("resource name", name, "Resource name cannot be empty")
    if "." in name:
        raise ValidationError(
            "resource name",
            name,
            "Contains period. Periods separate type, name and attribute.",
        )
    if not NAME_PATTERN.match(name):
        raise ValidationError(
            "resource name",
            name,
            "Must start with a letter or underscore and contain only letters, digits, "
            "underscores and hyphens",
        )


def split_address(address: str) -> tuple[str, str]:
    """
    Split and validate a ``<type>.<name>`` address.

    Raises:
        ValidationError: If the address is malformed
    """
    parts = address.split(".")
    if len(parts) != 2:
        raise ValidationError(
            "address",
            address,
            "Expected '<type>.<name>' (e.g., 'aws_iam_role.lambda_exec')",
        )
    resource_type, name = parts
    validate_resource_type(resource_type)
    validate_resource_name(name)
    return resource_type, name


def validate_state_name(name: str) -> str:
    """
    Validate a state name (the partition used within a shared state table).

    Returns:
        The validated name
    """
    if not name:
        raise ValidationError("state name", name, "State name cannot be empty")
    if not STATE_NAME_PATTERN.match(name):
        raise ValidationError(
            "state name",
            name,
            "Must start with a letter and contain only letters, digits, "
            "underscores and hyphens",
        )
    return name
