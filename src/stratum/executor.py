"""Provider executor.

Runs one planned change against its provider: resolves references from
the outputs applied so far, dispatches create/update/delete/replace and
retries transient failures with bounded exponential backoff.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from typing import Any, TypeVar

from .exceptions import ReferenceFaultError, TransientProviderError
from .graph import interpolate
from .models import Reference, RetryPolicy, StateRecord
from .plan import ChangeAction, PlannedChange
from .providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ExecutionResult:
    """
    Outcome of a successful execution.

    Attributes:
        address: Resource address
        action: Action that was executed
        record: New state record (None after a delete)
        attempts: Provider calls made, including retries
    """

    address: str
    action: ChangeAction
    record: StateRecord | None
    attempts: int = 1


def phases(change: PlannedChange) -> tuple[PlannedChange, ...]:
    """
    Split a change into the provider steps it runs as.

    A replace becomes a delete of the existing instance followed by a
    create of the new one, so the two can be scheduled separately. Every
    other change is a single step.
    """
    if change.action is not ChangeAction.REPLACE:
        return (change,)
    return (
        replace(change, action=ChangeAction.DELETE),
        replace(change, action=ChangeAction.CREATE, prior_id=None),
    )


class ProviderExecutor:
    """
    Executes planned changes through the provider registry.

    Args:
        registry: Providers by resource type
        retry: Backoff policy for transient failures
        sleep: Sleep function (injected for testing)
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.registry = registry
        self.retry = retry or RetryPolicy()
        self._sleep = sleep

    def resolve(self, change: PlannedChange, records: Mapping[str, StateRecord]) -> dict[str, Any]:
        """
        Fill in provisional values from the records applied so far.

        Raises:
            ReferenceFaultError: If an upstream record or attribute is missing
        """
        after = dict(change.after or {})

        def lookup(ref: Reference) -> Any:
            record = records.get(ref.target)
            if record is None:
                raise ReferenceFaultError(change.address, ref.target, ".".join(ref.path))
            try:
                return record.lookup(ref.path)
            except (KeyError, IndexError, ValueError, TypeError):
                raise ReferenceFaultError(
                    change.address, ref.target, ".".join(ref.path)
                ) from None

        for key in change.provisional:
            after[key] = interpolate(after[key], lookup)
        return after

    def _call(self, change: PlannedChange, operation: str, fn: Callable[..., T], *args: Any) -> tuple[T, int]:
        attempt = 1
        while True:
            try:
                return fn(*args), attempt
            except TransientProviderError as e:
                if attempt >= self.retry.max_attempts:
                    logger.error(
                        "%s %s failed after %d attempts: %s",
                        change.address,
                        operation,
                        attempt,
                        e,
                    )
                    raise
                delay = self.retry.delay(attempt)
                logger.warning(
                    "%s %s failed (attempt %d/%d), retrying in %.2fs: %s",
                    change.address,
                    operation,
                    attempt,
                    self.retry.max_attempts,
                    delay,
                    e,
                )
                self._sleep(delay)
                attempt += 1

    def read(self, record: StateRecord) -> dict[str, Any]:
        """Read live outputs for a recorded resource, retrying transient failures."""
        provider = self.registry.get(record.resource_type)
        change = PlannedChange(record.address, record.resource_type, ChangeAction.NOOP)
        outputs, _ = self._call(change, "read", provider.read, record.provider_id)
        return outputs

    def execute(
        self,
        change: PlannedChange,
        records: Mapping[str, StateRecord],
        on_destroyed: Callable[[PlannedChange], None] | None = None,
    ) -> ExecutionResult:
        """
        Execute ``change``.

        ``records`` holds the state of every resource applied so far. For a
        replace, ``on_destroyed`` is called between the delete and the
        create so the caller can drop the old record.

        Raises:
            ReferenceFaultError: If a provisional reference cannot be resolved
            ProviderError: If the provider call fails
        """
        provider = self.registry.get(change.resource_type)
        action = change.action

        if action is ChangeAction.NOOP:
            return ExecutionResult(change.address, action, records.get(change.address), attempts=0)

        if action is ChangeAction.DELETE:
            _, attempts = self._call(change, "delete", provider.delete, change.prior_id)
            logger.info("Deleted %s (%s)", change.address, change.prior_id)
            return ExecutionResult(change.address, action, None, attempts)

        if action is ChangeAction.UPDATE and not change.changed and not change.provisional:
            # Only the recorded dependencies moved; nothing to send to the provider
            record = records[change.address]
            logger.info("Recorded new dependencies of %s", change.address)
            return ExecutionResult(
                change.address,
                action,
                replace(record, dependencies=change.dependencies),
                attempts=0,
            )

        attrs = self.resolve(change, records)

        if action is ChangeAction.UPDATE:
            outputs, attempts = self._call(change, "update", provider.update, change.prior_id, attrs)
            logger.info("Updated %s (%s)", change.address, change.prior_id)
            return ExecutionResult(
                change.address, action, self._record(change, change.prior_id, attrs, outputs), attempts
            )

        attempts = 0
        if action is ChangeAction.REPLACE:
            _, attempts = self._call(change, "delete", provider.delete, change.prior_id)
            logger.info("Destroyed %s (%s) for replacement", change.address, change.prior_id)
            if on_destroyed is not None:
                on_destroyed(change)

        (outputs, provider_id), create_attempts = self._call(change, "create", provider.create, attrs)
        logger.info("Created %s (%s)", change.address, provider_id)
        return ExecutionResult(
            change.address,
            action,
            self._record(change, provider_id, attrs, outputs),
            attempts + create_attempts,
        )

    @staticmethod
    def _record(
        change: PlannedChange,
        provider_id: str,
        attrs: dict[str, Any],
        outputs: dict[str, Any],
    ) -> StateRecord:
        return StateRecord(
            address=change.address,
            resource_type=change.resource_type,
            provider_id=provider_id,
            attributes=attrs,
            outputs=dict(outputs or {}),
            dependencies=change.dependencies,
        )
