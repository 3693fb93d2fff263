"""Provider interface.

A provider manages one resource type. The engine only talks to providers
through this capability set, so adding a resource type never touches the
planner or the orchestrator.

Idempotency contract: repeating ``create``, ``update`` or ``delete`` with the
same inputs after a partial failure must be safe. ``create`` adopts an
existing identical resource, ``delete`` of a missing resource succeeds.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(frozen=True)
class DiffPolicy:
    """
    How attribute changes are applied.

    Attributes:
        force_new: Fields whose change requires destroy-then-create
        updatable: Fields that can change in place. None means every field
            not in ``force_new``; an explicit set makes every other field
            force replacement.
    """

    force_new: frozenset[str] = frozenset()
    updatable: frozenset[str] | None = None

    def requires_replacement(self, field: str) -> bool:
        if field in self.force_new:
            return True
        return self.updatable is not None and field not in self.updatable


class Provider(ABC):
    """
    Base class for resource providers.

    Subclasses set ``resource_type``, ``outputs`` (attributes computed by the
    provider, available to references) and ``diff_policy``.
    """

    resource_type: ClassVar[str]
    outputs: ClassVar[frozenset[str]] = frozenset()
    diff_policy: ClassVar[DiffPolicy] = DiffPolicy()

    @abstractmethod
    def create(self, attrs: dict[str, Any]) -> tuple[dict[str, Any], str]:
        """Create the resource; return (outputs, provider_id)."""

    @abstractmethod
    def read(self, provider_id: str) -> dict[str, Any]:
        """
        Return current outputs.

        Raises:
            ResourceNotFoundError: If the resource no longer exists
        """

    @abstractmethod
    def update(self, provider_id: str, attrs: dict[str, Any]) -> dict[str, Any]:
        """Update the resource in place; return outputs."""

    @abstractmethod
    def delete(self, provider_id: str) -> None:
        """Delete the resource. Deleting a missing resource succeeds."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.resource_type!r})"
