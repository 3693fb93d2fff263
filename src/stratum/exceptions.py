"""Exceptions for stratum."""

from collections.abc import Iterable
from typing import Any

# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------


class StratumError(Exception):
    """
    Base exception for all stratum errors.

    All exceptions raised by this library inherit from this class,
    allowing callers to catch all library-specific errors with a single
    except clause.
    """

    pass


# ---------------------------------------------------------------------------
# Category Exceptions
# ---------------------------------------------------------------------------


class DocumentError(StratumError):
    """
    Base exception for declarative document errors.

    Raised at plan time, before any provider mutation occurs.
    """

    pass


class GraphError(StratumError):
    """Base exception for resource graph ordering errors."""

    pass


class StateError(StratumError):
    """
    Base exception for state store errors.

    This includes lock contention, corrupted state and stale plans.
    """

    pass


class ProviderError(StratumError):
    """
    Base exception for provider operation errors.

    Attributes:
        resource_type: Resource type the provider manages (if known)
        operation: Provider operation that failed (if known)
    """

    def __init__(
        self,
        message: str,
        *,
        resource_type: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.operation = operation
        super().__init__(message)


class ApplyError(StratumError):
    """Base exception for plan/apply orchestration errors."""

    pass


class ValidationError(StratumError):
    """
    Raised when an option or identifier fails validation.

    Attributes:
        field: Name of the field that failed validation
        value: The invalid value
        reason: Human-readable reason
    """

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


# ---------------------------------------------------------------------------
# Document Exceptions
# ---------------------------------------------------------------------------


class MalformedDocumentError(DocumentError):
    """
    Raised when a document cannot be parsed.

    Covers duplicate resource identities, invalid addresses and
    unparseable reference expressions.
    """

    def __init__(self, message: str, address: str | None = None) -> None:
        self.address = address
        if address:
            message = f"{address}: {message}"
        super().__init__(message)


class UnresolvedReferenceError(DocumentError):
    """
    Raised when a reference points at a node or attribute that does not exist.

    Attributes:
        source: Address of the referencing node
        target: Address of the referenced node
        attribute: Referenced attribute path (dotted), if any
    """

    def __init__(self, source: str, target: str, attribute: str | None = None) -> None:
        self.source = source
        self.target = target
        self.attribute = attribute
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ref = f"{self.target}.{self.attribute}" if self.attribute else self.target
        return f"{self.source} references undeclared {ref}"


class ReferenceFaultError(UnresolvedReferenceError, ApplyError):
    """
    Raised at apply time when an upstream output is missing.

    Ordering guarantees this never happens for a consistent plan, so it
    is treated as an internal-consistency fault rather than a user error.
    """

    def _format_message(self) -> str:
        ref = f"{self.target}.{self.attribute}" if self.attribute else self.target
        return f"{self.source}: no applied output for {ref} (internal consistency fault)"


class UnknownResourceTypeError(DocumentError):
    """Raised when no provider is registered for a resource type."""

    def __init__(self, resource_type: str, address: str | None = None) -> None:
        self.resource_type = resource_type
        self.address = address
        msg = f"No provider registered for resource type '{resource_type}'"
        if address:
            msg += f" (used by {address})"
        super().__init__(msg)


# ---------------------------------------------------------------------------
# Graph Exceptions
# ---------------------------------------------------------------------------


class CyclicDependencyError(GraphError):
    """
    Raised when the resource graph contains a cycle.

    Attributes:
        members: Addresses of every node participating in a cycle
    """

    def __init__(self, members: Iterable[str]) -> None:
        self.members = list(members)
        super().__init__(f"Dependency cycle between: {', '.join(self.members)}")


# ---------------------------------------------------------------------------
# State Exceptions
# ---------------------------------------------------------------------------


class LockContentionError(StateError):
    """
    Raised when the state lock cannot be acquired within the bounded wait.

    Attributes:
        scope: Lock scope that was requested
        holder: Description of the current holder (if known)
        waited_seconds: How long acquisition was attempted
    """

    def __init__(self, scope: str, holder: str | None, waited_seconds: float) -> None:
        self.scope = scope
        self.holder = holder
        self.waited_seconds = waited_seconds
        msg = f"State lock '{scope}' not acquired after {waited_seconds:.1f}s"
        if holder:
            msg += f" (held by {holder})"
        super().__init__(msg)


class StateCorruptionError(StateError):
    """Raised when persisted state does not match its expected schema or version."""

    def __init__(self, location: str, reason: str) -> None:
        self.location = location
        self.reason = reason
        super().__init__(f"Corrupt state at {location}: {reason}")


class ImmutableIdentifierError(StateError):
    """Raised when a write would change the provider id of a live resource."""

    def __init__(self, address: str, current: str, attempted: str) -> None:
        self.address = address
        self.current = current
        self.attempted = attempted
        super().__init__(
            f"Provider id of {address} is immutable: {current!r} cannot become {attempted!r}"
        )


class StalePlanError(StateError):
    """Raised when state changed between planning and applying."""

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Plan is stale: planned against state {expected}, current state is {actual}. "
            "Re-run plan."
        )


# ---------------------------------------------------------------------------
# Provider Exceptions
# ---------------------------------------------------------------------------


class TransientProviderError(ProviderError):
    """Raised for retryable provider failures (throttling, network, 5xx)."""

    pass


class PermanentProviderError(ProviderError):
    """Raised for provider failures that will not succeed on retry (validation)."""

    pass


class ResourceNotFoundError(ProviderError):
    """Raised by ``Provider.read`` when the remote resource no longer exists."""

    def __init__(self, resource_type: str, provider_id: str) -> None:
        self.provider_id = provider_id
        super().__init__(
            f"{resource_type} '{provider_id}' not found",
            resource_type=resource_type,
            operation="read",
        )


# ---------------------------------------------------------------------------
# Apply Exceptions
# ---------------------------------------------------------------------------


class InvalidTransitionError(ApplyError):
    """Raised when the orchestrator is driven through an illegal state transition."""

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move orchestrator from '{current}' to '{requested}'")
