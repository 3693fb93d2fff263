"""Diff engine.

Compares the resource graph against recorded state and produces one
planned change per resource: declared resources in apply order, then
deletes for resources that only exist in state, dependents first.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import Any

from .exceptions import ResourceNotFoundError, UnresolvedReferenceError
from .graph import ResourceGraph, interpolate
from .models import Reference, StateRecord
from .plan import ChangeAction, PlannedChange
from .providers.registry import ProviderRegistry
from .resolver import order_addresses

logger = logging.getLogger(__name__)

_MISSING = object()

Reader = Callable[[StateRecord], dict[str, Any]]


class _Provisional(Exception):
    """An upstream value is not known until apply."""


def _refresh(
    records: Mapping[str, StateRecord],
    registry: ProviderRegistry,
    reader: Reader | None,
) -> tuple[dict[str, StateRecord], set[str]]:
    refreshed: dict[str, StateRecord] = {}
    missing: set[str] = set()
    for address, record in records.items():
        try:
            if reader is not None:
                outputs = reader(record)
            else:
                outputs = registry.get(record.resource_type).read(record.provider_id)
        except ResourceNotFoundError:
            logger.info("%s (%s) no longer exists", address, record.provider_id)
            missing.add(address)
            refreshed[address] = record
            continue
        refreshed[address] = replace(record, outputs=outputs)
    return refreshed, missing


def compute_diff(
    graph: ResourceGraph,
    order: list[str],
    records: Mapping[str, StateRecord],
    registry: ProviderRegistry,
    *,
    refresh: bool = False,
    reader: Reader | None = None,
) -> list[PlannedChange]:
    """
    Compute the changes needed to move ``records`` to the graph's desired state.

    Args:
        graph: Desired resources
        order: Apply order of ``graph`` (from the resolver)
        records: Current state, keyed by address
        registry: Providers, for diff policies and refresh reads
        refresh: Read live outputs through the providers first. Resources
            that no longer exist are planned as creates.
        reader: Override for refresh reads (the executor passes its
            retrying reader)

    Returns:
        Changes for every declared resource in ``order``, followed by
        deletes for resources that are only in state.

    Raises:
        UnresolvedReferenceError: If a reference names an attribute the
            upstream record does not have
    """
    missing: set[str] = set()
    if refresh:
        records, missing = _refresh(records, registry, reader)

    planned: dict[str, PlannedChange] = {}
    changes: list[PlannedChange] = []

    for address in order:
        node = graph.node(address)
        policy = registry.get(node.resource_type).diff_policy
        record = records.get(address)
        live = record if address not in missing else None

        def resolve(ref: Reference, source: str = address) -> Any:
            upstream = planned[ref.target]
            if upstream.action in (ChangeAction.CREATE, ChangeAction.REPLACE):
                raise _Provisional
            if ref.attribute in upstream.provisional:
                raise _Provisional
            # Same lookup as apply time, over the attributes this run will record
            upstream_record = replace(records[ref.target], attributes=upstream.after or {})
            try:
                return upstream_record.lookup(ref.path)
            except (KeyError, IndexError, ValueError, TypeError):
                raise UnresolvedReferenceError(source, ref.target, ".".join(ref.path)) from None

        after: dict[str, Any] = {}
        provisional: list[str] = []
        for key, value in node.attributes.items():
            try:
                after[key] = interpolate(value, resolve)
            except _Provisional:
                after[key] = value
                provisional.append(key)

        if live is None:
            action = ChangeAction.CREATE
            changed = tuple(after)
        else:
            keys = list(after) + [k for k in live.attributes if k not in after]
            changed = tuple(
                key
                for key in keys
                if key in provisional
                or after.get(key, _MISSING) != live.attributes.get(key, _MISSING)
            )
            if not changed:
                # A dependency-only update rewrites the record without a provider call
                same_deps = set(node.dependencies) == set(live.dependencies)
                action = ChangeAction.NOOP if same_deps else ChangeAction.UPDATE
            elif any(policy.requires_replacement(key) for key in changed):
                action = ChangeAction.REPLACE
            else:
                action = ChangeAction.UPDATE

        change = PlannedChange(
            address=address,
            resource_type=node.resource_type,
            action=action,
            before=dict(record.attributes) if record is not None else None,
            after=after,
            changed=changed,
            provisional=tuple(provisional),
            dependencies=node.dependencies,
            prior_dependencies=record.dependencies if record is not None else (),
            prior_id=record.provider_id if record is not None else None,
        )
        logger.debug("%s: %s %s", address, action.value, ", ".join(changed))
        planned[address] = change
        changes.append(change)

    orphans = {a: r for a, r in records.items() if a not in graph}
    changes.extend(plan_destroy(orphans))
    return changes


def plan_destroy(records: Mapping[str, StateRecord]) -> list[PlannedChange]:
    """Delete every record, dependents before their dependencies."""
    order = order_addresses({a: r.dependencies for a, r in records.items()})
    return [
        PlannedChange(
            address=address,
            resource_type=records[address].resource_type,
            action=ChangeAction.DELETE,
            before=dict(records[address].attributes),
            after=None,
            changed=tuple(records[address].attributes),
            prior_dependencies=records[address].dependencies,
            prior_id=records[address].provider_id,
        )
        for address in reversed(order)
    ]
