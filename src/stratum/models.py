"""Core models for stratum."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .exceptions import ValidationError


@dataclass(frozen=True)
class Reference:
    """
    A reference from one resource's attribute to another resource's output.

    Written in documents as ``${<type>.<name>.<attribute>[.<key>...]}``.

    Attributes:
        target: Address of the referenced resource (``type.name``)
        path: Attribute path within the target; ``path[0]`` is the attribute
    """

    target: str
    path: tuple[str, ...]

    @property
    def attribute(self) -> str:
        """Top-level attribute name on the target."""
        return self.path[0]

    @property
    def expression(self) -> str:
        """The reference as it appears in a document."""
        return "${" + ".".join((self.target, *self.path)) + "}"

    def __str__(self) -> str:
        return self.expression


@dataclass(frozen=True)
class ResourceNode:
    """
    A declared resource in the graph.

    Attribute values are kept as written: literals, or strings containing
    reference expressions. Nodes are created when a document is parsed and
    are not modified for the rest of the planning cycle.

    Attributes:
        resource_type: Provider-kind tag (e.g. "aws_lambda_function")
        name: Logical name, unique per type
        attributes: Declared attribute mapping
        references: Every reference found in ``attributes``
        depends_on: Explicit extra dependencies (addresses)
        index: Declaration position, used for deterministic ordering
    """

    resource_type: str
    name: str
    attributes: Mapping[str, Any]
    references: tuple[Reference, ...] = ()
    depends_on: tuple[str, ...] = ()
    index: int = 0

    @property
    def address(self) -> str:
        return f"{self.resource_type}.{self.name}"

    @property
    def dependencies(self) -> tuple[str, ...]:
        """Addresses this node depends on, in first-seen order."""
        seen: dict[str, None] = {}
        for ref in self.references:
            seen.setdefault(ref.target, None)
        for address in self.depends_on:
            seen.setdefault(address, None)
        return tuple(seen)


@dataclass(frozen=True)
class ReferenceEdge:
    """Directed edge: ``source`` depends on ``target``'s output at ``path``."""

    source: str
    target: str
    path: tuple[str, ...] = ()

    @property
    def attribute(self) -> str | None:
        return self.path[0] if self.path else None


@dataclass(frozen=True)
class StateRecord:
    """
    Last-applied state of one resource instance.

    Owned by the state store: only written after a confirmed provider
    operation. ``provider_id`` never changes for the life of an instance.

    Attributes:
        address: Resource address
        resource_type: Provider-kind tag
        provider_id: Identifier assigned by the provider (ARN, name, id)
        attributes: Configured attributes as applied (references resolved)
        outputs: Attributes computed by the provider
        dependencies: Addresses this resource depended on when applied
        serial: Monotonic per-record version, bumped on every write
    """

    address: str
    resource_type: str
    provider_id: str
    attributes: dict[str, Any] = field(default_factory=dict)
    outputs: dict[str, Any] = field(default_factory=dict)
    dependencies: tuple[str, ...] = ()
    serial: int = 0

    def lookup(self, path: tuple[str, ...]) -> Any:
        """
        Look up an attribute path, preferring provider outputs.

        Raises:
            KeyError: If the path does not exist
        """
        head, *rest = path
        if head in self.outputs:
            value = self.outputs[head]
        elif head in self.attributes:
            value = self.attributes[head]
        elif head == "id":
            value = self.provider_id
        else:
            raise KeyError(head)
        for key in rest:
            if isinstance(value, list):
                value = value[int(key)]
            else:
                value = value[key]
        return value

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "resource_type": self.resource_type,
            "provider_id": self.provider_id,
            "attributes": self.attributes,
            "outputs": self.outputs,
            "dependencies": list(self.dependencies),
            "serial": self.serial,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "StateRecord":
        """
        Build a record from its persisted form.

        Raises:
            KeyError, TypeError, ValueError: If the data does not match the layout
        """
        attributes = d.get("attributes", {})
        outputs = d.get("outputs", {})
        if not isinstance(attributes, dict) or not isinstance(outputs, dict):
            raise TypeError("attributes and outputs must be mappings")
        provider_id = d["provider_id"]
        if not isinstance(provider_id, str) or not provider_id:
            raise ValueError("provider_id must be a non-empty string")
        return cls(
            address=str(d["address"]),
            resource_type=str(d["resource_type"]),
            provider_id=provider_id,
            attributes=attributes,
            outputs=outputs,
            dependencies=tuple(d.get("dependencies", ())),
            serial=int(d.get("serial", 0)),
        )


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff for transient provider failures.

    Attributes:
        max_attempts: Total attempts including the first call
        base_delay: Delay in seconds before the first retry
        max_delay: Upper bound for any single delay
        multiplier: Growth factor between consecutive delays
    """

    max_attempts: int = 4
    base_delay: float = 0.5
    max_delay: float = 8.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValidationError("max_attempts", self.max_attempts, "must be at least 1")
        if self.base_delay < 0:
            raise ValidationError("base_delay", self.base_delay, "must not be negative")
        if self.max_delay < self.base_delay:
            raise ValidationError("max_delay", self.max_delay, "must be >= base_delay")
        if self.multiplier < 1:
            raise ValidationError("multiplier", self.multiplier, "must be >= 1")

    def delay(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        return min(self.max_delay, self.base_delay * self.multiplier ** (attempt - 1))


@dataclass(frozen=True)
class EngineOptions:
    """
    Configuration for plan/apply sessions.

    Attributes:
        parallelism: Maximum concurrent provider calls
        lock_timeout: Seconds to wait for the state lock before giving up
        lock_ttl: Seconds after which an abandoned lock may be taken over
        retry: Retry policy for transient provider failures
    """

    parallelism: int = 10
    lock_timeout: float = 30.0
    lock_ttl: float = 3600.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        if self.parallelism < 1:
            raise ValidationError("parallelism", self.parallelism, "must be at least 1")
        if self.lock_timeout < 0:
            raise ValidationError("lock_timeout", self.lock_timeout, "must not be negative")
        if self.lock_ttl <= 0:
            raise ValidationError("lock_ttl", self.lock_ttl, "must be positive")
