"""Plan data structures.

A plan is the reviewable output of the diff engine: an ordered list of
planned changes plus the state fingerprint it was computed against. Plans
serialize to JSON so they can be saved, reviewed and applied later.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .exceptions import ValidationError

PLAN_FORMAT_VERSION = 1


class ChangeAction(str, Enum):
    """What the executor does for one resource."""

    NOOP = "no-op"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    REPLACE = "replace"

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]

    @property
    def actionable(self) -> bool:
        return self is not ChangeAction.NOOP


_SYMBOLS = {
    ChangeAction.NOOP: " ",
    ChangeAction.CREATE: "+",
    ChangeAction.UPDATE: "~",
    ChangeAction.DELETE: "-",
    ChangeAction.REPLACE: "-/+",
}


@dataclass(frozen=True)
class PlannedChange:
    """
    One resource's planned change.

    Attributes:
        address: Resource address
        resource_type: Provider-kind tag
        action: Planned action
        before: Attributes recorded in state (None when there is no record)
        after: Desired attributes (None for deletes). Values listed in
            ``provisional`` still hold their raw ``${...}`` expressions.
        changed: Fields that differ between ``before`` and ``after``
        provisional: Fields whose value is only known once an upstream
            resource has been created
        dependencies: Addresses this resource depends on in the document
        prior_dependencies: Addresses the existing instance depended on
        prior_id: Provider id of the existing instance, if any
    """

    address: str
    resource_type: str
    action: ChangeAction
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    changed: tuple[str, ...] = ()
    provisional: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    prior_dependencies: tuple[str, ...] = ()
    prior_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "resource_type": self.resource_type,
            "action": self.action.value,
            "before": self.before,
            "after": self.after,
            "changed": list(self.changed),
            "provisional": list(self.provisional),
            "dependencies": list(self.dependencies),
            "prior_dependencies": list(self.prior_dependencies),
            "prior_id": self.prior_id,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PlannedChange:
        return cls(
            address=str(d["address"]),
            resource_type=str(d["resource_type"]),
            action=ChangeAction(d["action"]),
            before=d.get("before"),
            after=d.get("after"),
            changed=tuple(d.get("changed", ())),
            provisional=tuple(d.get("provisional", ())),
            dependencies=tuple(d.get("dependencies", ())),
            prior_dependencies=tuple(d.get("prior_dependencies", ())),
            prior_id=d.get("prior_id"),
        )


@dataclass(frozen=True)
class PlanMetadata:
    """State fingerprint and provenance of a plan."""

    lineage: str | None = None
    serial: int = 0
    document_digest: str | None = None
    destroy: bool = False
    created_at: float = field(default_factory=time.time)

    @property
    def fingerprint(self) -> str:
        return f"{self.lineage or '<empty>'}@{self.serial}"


@dataclass(frozen=True)
class Plan:
    """Ordered, immutable list of planned changes in apply order."""

    changes: tuple[PlannedChange, ...] = ()
    metadata: PlanMetadata = field(default_factory=PlanMetadata)

    @property
    def has_changes(self) -> bool:
        return any(change.action.actionable for change in self.changes)

    @property
    def actionable(self) -> list[PlannedChange]:
        return [change for change in self.changes if change.action.actionable]

    def get(self, address: str) -> PlannedChange | None:
        for change in self.changes:
            if change.address == address:
                return change
        return None

    def summary(self) -> dict[str, int]:
        """Count of changes per action, e.g. ``{"create": 2, "no-op": 1, ...}``."""
        counts = {action.value: 0 for action in ChangeAction}
        for change in self.changes:
            counts[change.action.value] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "format_version": PLAN_FORMAT_VERSION,
            "lineage": self.metadata.lineage,
            "serial": self.metadata.serial,
            "document_digest": self.metadata.document_digest,
            "destroy": self.metadata.destroy,
            "created_at": self.metadata.created_at,
            "changes": [change.to_dict() for change in self.changes],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Plan:
        """
        Raises:
            ValidationError: If ``d`` is not a plan in the supported format
        """
        version = d.get("format_version") if isinstance(d, dict) else None
        if version != PLAN_FORMAT_VERSION:
            raise ValidationError("plan format_version", version, f"expected {PLAN_FORMAT_VERSION}")
        try:
            changes = tuple(PlannedChange.from_dict(c) for c in d.get("changes", []))
            metadata = PlanMetadata(
                lineage=d.get("lineage"),
                serial=int(d.get("serial", 0)),
                document_digest=d.get("document_digest"),
                destroy=bool(d.get("destroy", False)),
                created_at=float(d.get("created_at", 0.0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError("plan", "<data>", f"malformed plan: {e!r}") from e
        return cls(changes=changes, metadata=metadata)

    def save(self, path: str | Path) -> None:
        Path(path).write_text(json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n")

    @classmethod
    def load(cls, path: str | Path) -> Plan:
        try:
            data = json.loads(Path(path).read_text())
        except json.JSONDecodeError as e:
            raise ValidationError("plan", str(path), f"not valid JSON: {e}") from e
        return cls.from_dict(data)
