"""Plan/apply orchestration.

The orchestrator drives one session: parse and validate the document,
compute a plan, then apply it with bounded parallelism. Each resource
starts only after everything it depends on has been applied in the same
run; a failure skips its dependents while independent branches carry on.
A replace is split into a destroy and a create: destroys run dependents
first, creates run dependencies first.
State is written after every confirmed provider operation, so an
interrupted apply leaves state matching what actually exists.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import networkx as nx

from .differ import compute_diff, plan_destroy
from .document import Document
from .exceptions import InvalidTransitionError, StalePlanError
from .executor import ProviderExecutor, phases
from .graph import build_graph, validate_references
from .models import EngineOptions, StateRecord
from .plan import ChangeAction, Plan, PlanMetadata, PlannedChange
from .providers.registry import ProviderRegistry
from .resolver import apply_order
from .state.base import DEFAULT_LOCK_SCOPE, LockInfo, StateStore

logger = logging.getLogger(__name__)


class OrchestratorState(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    PLANNED = "planned"
    APPLYING = "applying"
    APPLIED = "applied"
    PARTIALLY_APPLIED = "partially_applied"
    FAILED = "failed"


_FINISHED = frozenset(
    {OrchestratorState.APPLIED, OrchestratorState.PARTIALLY_APPLIED, OrchestratorState.FAILED}
)

_TRANSITIONS: dict[OrchestratorState, frozenset[OrchestratorState]] = {
    OrchestratorState.IDLE: frozenset({OrchestratorState.PLANNING, OrchestratorState.PLANNED}),
    OrchestratorState.PLANNING: frozenset({OrchestratorState.PLANNED, OrchestratorState.IDLE}),
    OrchestratorState.PLANNED: frozenset(
        {OrchestratorState.APPLYING, OrchestratorState.PLANNING, OrchestratorState.IDLE}
    ),
    OrchestratorState.APPLYING: _FINISHED,
    **{
        finished: frozenset(
            {OrchestratorState.PLANNING, OrchestratorState.PLANNED, OrchestratorState.IDLE}
        )
        for finished in _FINISHED
    },
}


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


class ApplyStatus(str, Enum):
    APPLIED = "applied"
    PARTIALLY_APPLIED = "partially_applied"
    FAILED = "failed"


@dataclass(frozen=True)
class NodeOutcome:
    """Result of one planned change during apply."""

    address: str
    action: ChangeAction
    status: OutcomeStatus
    error: str | None = None
    attempts: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "action": self.action.value,
            "status": self.status.value,
            "error": self.error,
            "attempts": self.attempts,
        }


@dataclass
class ApplyResult:
    """Result of applying a plan. No rollback is attempted on failure."""

    status: ApplyStatus
    outcomes: list[NodeOutcome] = field(default_factory=list)

    def _with(self, status: OutcomeStatus) -> list[NodeOutcome]:
        return [o for o in self.outcomes if o.status is status]

    @property
    def succeeded(self) -> list[NodeOutcome]:
        return self._with(OutcomeStatus.SUCCEEDED)

    @property
    def failed(self) -> list[NodeOutcome]:
        return self._with(OutcomeStatus.FAILED)

    @property
    def skipped(self) -> list[NodeOutcome]:
        return self._with(OutcomeStatus.SKIPPED)

    @property
    def cancelled(self) -> list[NodeOutcome]:
        return self._with(OutcomeStatus.CANCELLED)

    def summary(self) -> str:
        counts = {action: 0 for action in ChangeAction if action.actionable}
        for outcome in self.succeeded:
            counts[outcome.action] += 1
        parts = [
            f"{counts[ChangeAction.CREATE]} created",
            f"{counts[ChangeAction.UPDATE]} updated",
            f"{counts[ChangeAction.REPLACE]} replaced",
            f"{counts[ChangeAction.DELETE]} deleted",
        ]
        if self.failed:
            parts.append(f"{len(self.failed)} failed")
        if self.skipped:
            parts.append(f"{len(self.skipped)} skipped")
        if self.cancelled:
            parts.append(f"{len(self.cancelled)} cancelled")
        return f"Apply {self.status.value}: " + ", ".join(parts) + "."

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }


def _apply_status(outcomes: list[NodeOutcome]) -> ApplyStatus:
    succeeded = sum(1 for o in outcomes if o.status is OutcomeStatus.SUCCEEDED)
    if succeeded == len(outcomes):
        return ApplyStatus.APPLIED
    if succeeded == 0:
        return ApplyStatus.FAILED
    return ApplyStatus.PARTIALLY_APPLIED


_DESTROY = "destroy"
_CREATE = "create"

Step = tuple[str, str]


def _schedule(changes: list[PlannedChange]) -> nx.DiGraph:
    """
    Order the destroy and create steps of a set of changes.

    Nodes are ``(address, "destroy" | "create")`` steps; an edge runs from a
    step to a step that waits for it. Creates follow the document
    dependencies and a replace destroys its old instance before creating the
    new one. Destroys run in reverse: a resource goes only after every
    existing instance that depended on it has been destroyed or repointed.
    An ordering edge that would close a cycle is dropped, so earlier rules
    win.
    """
    schedule = nx.DiGraph()
    for change in changes:
        for step in phases(change):
            kind = _DESTROY if step.action is ChangeAction.DELETE else _CREATE
            schedule.add_node((change.address, kind), change=step)

    for change in changes:
        if change.action is ChangeAction.REPLACE:
            schedule.add_edge((change.address, _DESTROY), (change.address, _CREATE))
        if (change.address, _CREATE) in schedule:
            for dependency in change.dependencies:
                if (dependency, _CREATE) in schedule:
                    schedule.add_edge((dependency, _CREATE), (change.address, _CREATE))

    destroy_after: list[tuple[Step, Step]] = []
    repoint_before: list[tuple[Step, Step]] = []
    for change in changes:
        for previous in change.prior_dependencies:
            if (previous, _DESTROY) not in schedule or previous == change.address:
                continue
            if (change.address, _DESTROY) in schedule:
                destroy_after.append(((change.address, _DESTROY), (previous, _DESTROY)))
            else:
                repoint_before.append(((change.address, _CREATE), (previous, _DESTROY)))

    for before, after in destroy_after + repoint_before:
        if nx.has_path(schedule, after, before):
            logger.debug("Not ordering %s before %s: would deadlock", before, after)
            continue
        schedule.add_edge(before, after)
    return schedule


def _combine(change: PlannedChange, steps: list[NodeOutcome]) -> NodeOutcome:
    attempts = sum(step.attempts for step in steps)
    for step in steps:
        if step.status is not OutcomeStatus.SUCCEEDED:
            return NodeOutcome(change.address, change.action, step.status, step.error, attempts)
    return NodeOutcome(change.address, change.action, OutcomeStatus.SUCCEEDED, attempts=attempts)


class Orchestrator:
    """
    Plan/apply orchestrator.

    Args:
        state: State store backend
        registry: Providers by resource type
        options: Parallelism, lock and retry settings
        executor: Optional executor (injected for testing)
    """

    def __init__(
        self,
        state: StateStore,
        registry: ProviderRegistry,
        options: EngineOptions | None = None,
        executor: ProviderExecutor | None = None,
    ) -> None:
        self.state = state
        self.registry = registry
        self.options = options or EngineOptions()
        self.executor = executor or ProviderExecutor(registry, self.options.retry)
        self._status = OrchestratorState.IDLE
        self._plan: Plan | None = None
        self._lock: LockInfo | None = None
        self._result: ApplyResult | None = None
        self._cancel = threading.Event()
        self._records_mutex = threading.Lock()

    @property
    def status(self) -> OrchestratorState:
        return self._status

    @property
    def current_plan(self) -> Plan | None:
        return self._plan

    def _transition(self, target: OrchestratorState) -> None:
        if target not in _TRANSITIONS[self._status]:
            raise InvalidTransitionError(self._status.value, target.value)
        logger.debug("Orchestrator %s -> %s", self._status.value, target.value)
        self._status = target

    @contextmanager
    def session(self) -> Iterator[LockInfo]:
        """
        Hold the state lock across plan and apply.

        Raises:
            LockContentionError: If another session holds the lock
        """
        with self.state.lock(
            DEFAULT_LOCK_SCOPE,
            timeout=self.options.lock_timeout,
            ttl=self.options.lock_ttl,
        ) as info:
            logger.info("Acquired state lock on %s", self.state.location)
            self._lock = info
            try:
                yield info
            finally:
                self._lock = None
                logger.info("Released state lock on %s", self.state.location)

    def _locked(self) -> Any:
        if self._lock is not None:
            return nullcontext(self._lock)
        return self.session()

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------

    def plan(
        self,
        document: Document | None,
        *,
        destroy: bool = False,
        refresh: bool = False,
    ) -> Plan:
        """
        Compute a plan for ``document`` against current state.

        With ``destroy=True`` every recorded resource is planned for deletion
        and ``document`` may be None.

        Raises:
            DocumentError: Malformed document, unresolved reference or
                unknown resource type
            CyclicDependencyError: If the graph has a cycle
            LockContentionError: If the state lock cannot be acquired
        """
        self._transition(OrchestratorState.PLANNING)
        try:
            with self._locked():
                metadata = self.state.metadata()
                records = {record.address: record for record in self.state.list()}
                if destroy:
                    changes = plan_destroy(records)
                else:
                    if document is None:
                        raise ValueError("document is required unless destroy=True")
                    graph = build_graph(document)
                    order = apply_order(graph)
                    validate_references(graph, self.registry)
                    changes = compute_diff(
                        graph,
                        order,
                        records,
                        self.registry,
                        refresh=refresh,
                        reader=self.executor.read,
                    )
        except Exception:
            self._transition(OrchestratorState.IDLE)
            raise

        plan = Plan(
            changes=tuple(changes),
            metadata=PlanMetadata(
                lineage=metadata.lineage,
                serial=metadata.serial,
                document_digest=document.digest() if document is not None else None,
                destroy=destroy,
                created_at=time.time(),
            ),
        )
        self._plan = plan
        self._transition(OrchestratorState.PLANNED)
        logger.info(
            "Planned %d changes (%s)",
            len(plan.actionable),
            ", ".join(f"{k}={v}" for k, v in plan.summary().items() if v),
        )
        return plan

    def plan_destroy(self) -> Plan:
        return self.plan(None, destroy=True)

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Stop starting new changes; changes already in flight finish."""
        logger.warning("Apply cancelled, waiting for in-flight changes")
        self._cancel.set()

    @property
    def last_result(self) -> ApplyResult | None:
        """Result of the most recent apply, including an interrupted one."""
        return self._result

    def apply(self, plan: Plan | None = None) -> ApplyResult:
        """Apply ``plan`` (default: the last computed plan). See :meth:`apply_async`."""
        return asyncio.run(self.apply_async(plan))

    async def apply_async(self, plan: Plan | None = None) -> ApplyResult:
        """
        Apply a plan.

        Cancelling the coroutine behaves like :meth:`cancel`: no new change
        starts, provider calls already running finish and are recorded, and
        the orchestrator settles in a finished state before the lock is
        released and ``CancelledError`` propagates. The partial result is
        available as :attr:`last_result`.

        Raises:
            StalePlanError: If state changed since the plan was computed
            InvalidTransitionError: If no plan is available to apply
        """
        plan = plan if plan is not None else self._plan
        if plan is None:
            raise InvalidTransitionError(self._status.value, OrchestratorState.APPLYING.value)
        if self._status is not OrchestratorState.PLANNED:
            self._transition(OrchestratorState.PLANNED)
        self._plan = plan

        with self._locked():
            current = self.state.metadata()
            if current.lineage != plan.metadata.lineage or current.serial != plan.metadata.serial:
                self._transition(OrchestratorState.IDLE)
                raise StalePlanError(plan.metadata.fingerprint, current.fingerprint)

            self._transition(OrchestratorState.APPLYING)
            self._cancel.clear()
            outcomes, interrupted = await self._run(plan)

            result = ApplyResult(status=_apply_status(outcomes), outcomes=outcomes)
            self._result = result
            self._transition(OrchestratorState(result.status.value))

        logger.info(result.summary())
        if interrupted:
            raise asyncio.CancelledError()
        return result

    async def _run(self, plan: Plan) -> tuple[list[NodeOutcome], bool]:
        changes = plan.actionable
        schedule = _schedule(changes)
        records = {record.address: record for record in self.state.list()}
        done = {step: asyncio.Event() for step in schedule}
        outcomes: dict[Step, NodeOutcome] = {}
        workers: dict[Step, asyncio.Future[int]] = {}
        semaphore = asyncio.Semaphore(self.options.parallelism)

        def finish(step: Step, worker: asyncio.Future[int]) -> None:
            change: PlannedChange = schedule.nodes[step]["change"]
            error = worker.exception()
            if error is not None:
                logger.warning("Failed to %s %s: %s", change.action.value, change.address, error)
                outcomes[step] = NodeOutcome(
                    change.address, change.action, OutcomeStatus.FAILED, error=str(error)
                )
            else:
                outcomes[step] = NodeOutcome(
                    change.address, change.action, OutcomeStatus.SUCCEEDED, attempts=worker.result()
                )

        async def run(step: Step) -> None:
            change: PlannedChange = schedule.nodes[step]["change"]
            try:
                prerequisites = list(schedule.predecessors(step))
                for prerequisite in prerequisites:
                    await done[prerequisite].wait()
                blocked = [
                    p[0] for p in prerequisites if outcomes[p].status is not OutcomeStatus.SUCCEEDED
                ]
                if blocked:
                    logger.warning(
                        "Skipping %s of %s: %s did not succeed",
                        change.action.value,
                        change.address,
                        blocked[0],
                    )
                    outcomes[step] = NodeOutcome(
                        change.address,
                        change.action,
                        OutcomeStatus.SKIPPED,
                        error=f"dependency {blocked[0]} did not succeed",
                    )
                    return
                async with semaphore:
                    if self._cancel.is_set():
                        outcomes[step] = NodeOutcome(
                            change.address, change.action, OutcomeStatus.CANCELLED
                        )
                        return
                    worker = asyncio.ensure_future(
                        asyncio.to_thread(self._execute, change, records)
                    )
                    workers[step] = worker
                    # asyncio.wait leaves the worker running if this task is cancelled
                    await asyncio.wait([worker])
                    finish(step, worker)
            finally:
                done[step].set()

        interrupted = False
        try:
            await asyncio.gather(*(run(step) for step in schedule))
        except asyncio.CancelledError:
            interrupted = True
            self._cancel.set()
            running = [worker for worker in workers.values() if not worker.done()]
            logger.warning("Apply interrupted, waiting for %d in-flight changes", len(running))
            if running:
                await asyncio.wait(running)
            for step, worker in workers.items():
                if step not in outcomes:
                    finish(step, worker)

        results = []
        for change in changes:
            not_started = NodeOutcome(change.address, change.action, OutcomeStatus.CANCELLED)
            steps = [
                outcomes.get(step, not_started)
                for step in ((change.address, _DESTROY), (change.address, _CREATE))
                if step in schedule
            ]
            results.append(_combine(change, steps))
        return results, interrupted

    def _execute(self, change: PlannedChange, records: dict[str, StateRecord]) -> int:
        """Run one step in a worker thread and persist its result."""
        with self._records_mutex:
            snapshot = dict(records)
        result = self.executor.execute(change, snapshot)

        if result.record is None:
            self.state.delete(change.address)
            with self._records_mutex:
                records.pop(change.address, None)
            return result.attempts

        if change.action is ChangeAction.CREATE and change.prior_id is not None:
            # The recorded instance vanished; forget it before recording the new one
            self.state.delete(change.address)
        stored = self.state.write(result.record)
        logger.debug("Recorded %s (serial %d)", stored.address, stored.serial)
        with self._records_mutex:
            records[change.address] = stored
        return result.attempts
