"""Declarative document loading and validation.

A document maps resource addresses to attribute mappings::

    resources:
      aws_iam_role.lambda_exec:
        name: gateway-fn-role
        assume_role_policy: {...}
      aws_lambda_function.handler:
        function_name: gateway-fn
        role: ${aws_iam_role.lambda_exec.arn}
        depends_on: [aws_cloudwatch_log_group.handler]
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import MalformedDocumentError, ValidationError
from .naming import split_address

DEPENDS_ON_KEY = "depends_on"


class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that rejects repeated mapping keys instead of keeping the last one."""


def _construct_unique_mapping(
    loader: _UniqueKeyLoader, node: yaml.MappingNode, deep: bool = False
) -> dict[Any, Any]:
    loader.flatten_mapping(node)
    mapping: dict[Any, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise MalformedDocumentError(
                f"duplicate key '{key}' at line {key_node.start_mark.line + 1}"
            )
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


_UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_unique_mapping
)


def _reject_duplicate_pairs(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key, value in pairs:
        if key in mapping:
            raise MalformedDocumentError(f"duplicate key '{key}'")
        mapping[key] = value
    return mapping


@dataclass(frozen=True)
class Document:
    """
    Parsed declarative document.

    Resources keep their declaration order, which is used to break ties
    between independent resources when ordering the plan.
    """

    resources: dict[str, dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_items(cls, items: Iterable[tuple[str, Any]]) -> Document:
        """
        Build a document from (address, attributes) pairs.

        Raises:
            MalformedDocumentError: On duplicate or invalid addresses, or
                attribute values that are not mappings
        """
        resources: dict[str, dict[str, Any]] = {}
        for address, attributes in items:
            if not isinstance(address, str):
                raise MalformedDocumentError(f"resource address must be a string, got {address!r}")
            try:
                split_address(address)
            except ValidationError as e:
                raise MalformedDocumentError(e.reason, address=address) from e
            if address in resources:
                raise MalformedDocumentError("duplicate resource identity", address=address)
            if attributes is None:
                attributes = {}
            if not isinstance(attributes, dict):
                raise MalformedDocumentError("attributes must be a mapping", address=address)
            _validate_depends_on(address, attributes.get(DEPENDS_ON_KEY))
            resources[address] = attributes
        return cls(resources=resources)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Document:
        if not isinstance(d, dict):
            raise MalformedDocumentError("document must be a mapping")
        unknown = set(d) - {"resources"}
        if unknown:
            raise MalformedDocumentError(f"unknown top-level keys: {', '.join(sorted(unknown))}")
        resources = d.get("resources") or {}
        if not isinstance(resources, dict):
            raise MalformedDocumentError("'resources' must be a mapping")
        return cls.from_items(resources.items())

    @classmethod
    def from_yaml(cls, yaml_str: str) -> Document:
        try:
            data = yaml.load(yaml_str, Loader=_UniqueKeyLoader)  # noqa: S506
        except yaml.YAMLError as e:
            raise MalformedDocumentError(f"invalid YAML: {e}") from e
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, json_str: str) -> Document:
        try:
            data = json.loads(json_str, object_pairs_hook=_reject_duplicate_pairs)
        except json.JSONDecodeError as e:
            raise MalformedDocumentError(f"invalid JSON: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: str | Path) -> Document:
        """Load a document from a ``.json`` file or a YAML file."""
        path = Path(path)
        text = path.read_text(encoding="utf-8")
        if path.suffix == ".json":
            return cls.from_json(text)
        return cls.from_yaml(text)

    def to_dict(self) -> dict[str, Any]:
        return {"resources": self.resources}

    def digest(self) -> str:
        """Content hash of the document, stable across key order."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, default=str)
        return "sha256:" + hashlib.sha256(canonical.encode()).hexdigest()

    def __len__(self) -> int:
        return len(self.resources)


def _validate_depends_on(address: str, value: Any) -> None:
    if value is None:
        return
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise MalformedDocumentError("'depends_on' must be a list of addresses", address=address)
    for dependency in value:
        try:
            split_address(dependency)
        except ValidationError as e:
            raise MalformedDocumentError(
                f"invalid depends_on entry: {e.reason}", address=address
            ) from e
