"""Dependency ordering for resource graphs.

Apply order is a topological order of the graph; destroy order is its
reverse. When several orderings are valid, independent nodes keep their
declaration order so plans are reproducible.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import networkx as nx

from .exceptions import CyclicDependencyError
from .graph import ResourceGraph


def _cycle_members(graph: nx.DiGraph) -> set[str]:
    members: set[str] = set()
    for component in nx.strongly_connected_components(graph):
        if len(component) > 1:
            members |= component
        else:
            (node,) = component
            if graph.has_edge(node, node):
                members.add(node)
    return members


def check_acyclic(graph: ResourceGraph) -> None:
    """
    Raise if the graph has any cycle.

    Raises:
        CyclicDependencyError: Naming every node on a cycle, in declaration order
    """
    members = _cycle_members(graph.digraph)
    if members:
        raise CyclicDependencyError(sorted(members, key=graph.index_of))


def apply_order(graph: ResourceGraph) -> list[str]:
    """Topological order for create/update, ties broken by declaration order."""
    check_acyclic(graph)
    return list(nx.lexicographical_topological_sort(graph.digraph, key=graph.index_of))


def destroy_order(graph: ResourceGraph) -> list[str]:
    """Reverse of the apply order: dependents are destroyed before their dependencies."""
    return list(reversed(apply_order(graph)))


def order_addresses(dependencies: Mapping[str, Iterable[str]]) -> list[str]:
    """
    Topologically order a bare address -> dependencies mapping.

    Dependencies outside the mapping are ignored. Ties follow the mapping's
    iteration order. Used for resources that only exist in state.

    Raises:
        CyclicDependencyError: If the recorded dependencies form a cycle
    """
    position = {address: i for i, address in enumerate(dependencies)}
    graph: nx.DiGraph = nx.DiGraph()
    graph.add_nodes_from(dependencies)
    for address, deps in dependencies.items():
        for dependency in deps:
            if dependency in position:
                graph.add_edge(dependency, address)

    members = _cycle_members(graph)
    if members:
        raise CyclicDependencyError(sorted(members, key=position.__getitem__))
    return list(nx.lexicographical_topological_sort(graph, key=position.__getitem__))
