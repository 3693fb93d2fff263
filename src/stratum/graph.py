"""Resource graph construction.

Parses a document's attribute values for reference expressions and builds
a directed graph of resource nodes. Edges point from a dependency to its
dependent, so a topological sort yields a valid apply order.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Any

import networkx as nx

from .document import DEPENDS_ON_KEY, Document
from .exceptions import (
    MalformedDocumentError,
    UnknownResourceTypeError,
    UnresolvedReferenceError,
    ValidationError,
)
from .models import Reference, ReferenceEdge, ResourceNode
from .naming import split_address

if TYPE_CHECKING:
    from .providers.registry import ProviderRegistry

# "$${...}" is an escaped literal, "${...}" is a reference
_EXPRESSION = re.compile(r"(\$?)\$\{([^{}]*)\}")
_SEGMENT = re.compile(r"^[A-Za-z0-9_-]+$")


def parse_expression(expression: str, address: str | None = None) -> Reference:
    """
    Parse the inside of a ``${...}`` expression.

    Raises:
        MalformedDocumentError: If the expression is not ``type.name.attr[.key...]``
    """
    segments = expression.strip().split(".")
    if len(segments) < 3 or not all(_SEGMENT.match(s) for s in segments):
        raise MalformedDocumentError(
            f"invalid reference '${{{expression}}}': expected ${{<type>.<name>.<attribute>}}",
            address=address,
        )
    target = f"{segments[0]}.{segments[1]}"
    try:
        split_address(target)
    except ValidationError as e:
        raise MalformedDocumentError(
            f"invalid reference '${{{expression}}}': {e.reason}", address=address
        ) from e
    return Reference(target=target, path=tuple(segments[2:]))


def _scan(text: str, address: str | None) -> list[Reference]:
    refs: list[Reference] = []
    for match in _EXPRESSION.finditer(text):
        if match.group(1):
            continue
        refs.append(parse_expression(match.group(2), address))
    # Anything still opening an expression was never closed
    leftover = _EXPRESSION.sub("", text)
    if "${" in leftover.replace("$${", ""):
        raise MalformedDocumentError(f"unterminated reference in {text!r}", address=address)
    return refs


def find_references(value: Any, address: str | None = None) -> list[Reference]:
    """Find every reference in a value, recursing into lists and mappings."""
    if isinstance(value, str):
        return _scan(value, address)
    if isinstance(value, dict):
        refs: list[Reference] = []
        for item in value.values():
            refs.extend(find_references(item, address))
        return refs
    if isinstance(value, list):
        refs = []
        for item in value:
            refs.extend(find_references(item, address))
        return refs
    return []


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True)


def interpolate(value: Any, resolve: Callable[[Reference], Any]) -> Any:
    """
    Replace references in ``value`` with resolved values.

    A string that is exactly one reference takes the referenced value as-is
    (keeping its type); references embedded in longer strings are rendered
    into the string.
    """
    if isinstance(value, dict):
        return {key: interpolate(item, resolve) for key, item in value.items()}
    if isinstance(value, list):
        return [interpolate(item, resolve) for item in value]
    if not isinstance(value, str):
        return value

    whole = _EXPRESSION.fullmatch(value)
    if whole and not whole.group(1):
        return resolve(parse_expression(whole.group(2)))

    def _replace(match: re.Match[str]) -> str:
        if match.group(1):
            return "${" + match.group(2) + "}"
        return _stringify(resolve(parse_expression(match.group(2))))

    return _EXPRESSION.sub(_replace, value)


class ResourceGraph:
    """
    Resource nodes and the reference edges between them.

    Wraps a ``networkx.DiGraph`` keyed by address; an edge ``u -> v`` means
    ``v`` depends on ``u``.
    """

    def __init__(self, nodes: list[ResourceNode], edges: list[ReferenceEdge]) -> None:
        self._nodes = {node.address: node for node in nodes}
        self._edges = list(edges)
        self._graph: nx.DiGraph = nx.DiGraph()
        for node in nodes:
            self._graph.add_node(node.address)
        for edge in edges:
            self._graph.add_edge(edge.target, edge.source)

    @property
    def digraph(self) -> nx.DiGraph:
        return self._graph

    @property
    def nodes(self) -> list[ResourceNode]:
        return list(self._nodes.values())

    @property
    def edges(self) -> list[ReferenceEdge]:
        return list(self._edges)

    def node(self, address: str) -> ResourceNode:
        return self._nodes[address]

    def index_of(self, address: str) -> int:
        return self._nodes[address].index

    def dependencies(self, address: str) -> list[str]:
        """Direct dependencies of a node, in declaration order."""
        return sorted(self._graph.predecessors(address), key=self.index_of)

    def dependents(self, address: str) -> list[str]:
        """Every node that depends on ``address``, directly or transitively."""
        return sorted(nx.descendants(self._graph, address), key=self.index_of)

    def __contains__(self, address: object) -> bool:
        return address in self._nodes

    def __iter__(self) -> Iterator[ResourceNode]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)


def build_graph(document: Document) -> ResourceGraph:
    """
    Build the resource graph for a document.

    Raises:
        MalformedDocumentError: If a reference expression cannot be parsed
        UnresolvedReferenceError: If a reference or depends_on names an
            undeclared resource
    """
    nodes: list[ResourceNode] = []
    for index, (address, declared) in enumerate(document.resources.items()):
        resource_type, name = split_address(address)
        attributes = {k: v for k, v in declared.items() if k != DEPENDS_ON_KEY}
        nodes.append(
            ResourceNode(
                resource_type=resource_type,
                name=name,
                attributes=attributes,
                references=tuple(find_references(attributes, address)),
                depends_on=tuple(declared.get(DEPENDS_ON_KEY) or ()),
                index=index,
            )
        )

    declared_addresses = {node.address for node in nodes}
    edges: list[ReferenceEdge] = []
    for node in nodes:
        for ref in node.references:
            if ref.target not in declared_addresses:
                raise UnresolvedReferenceError(node.address, ref.target, ".".join(ref.path))
            edges.append(ReferenceEdge(source=node.address, target=ref.target, path=ref.path))
        for dependency in node.depends_on:
            if dependency not in declared_addresses:
                raise UnresolvedReferenceError(node.address, dependency)
            edges.append(ReferenceEdge(source=node.address, target=dependency))

    return ResourceGraph(nodes, edges)


def validate_references(graph: ResourceGraph, registry: ProviderRegistry) -> None:
    """
    Check every node has a provider and every reference names a real attribute.

    An attribute is real if the target declares it, its provider lists it as
    an output, or it is the implicit ``id``.

    Raises:
        UnknownResourceTypeError: If a node's type has no registered provider
        UnresolvedReferenceError: If a reference names an unknown attribute
    """
    for node in graph:
        if node.resource_type not in registry:
            raise UnknownResourceTypeError(node.resource_type, node.address)

    for edge in graph.edges:
        attribute = edge.attribute
        if attribute is None:
            continue
        target = graph.node(edge.target)
        provider = registry.get(target.resource_type)
        if attribute in target.attributes or attribute in provider.outputs or attribute == "id":
            continue
        raise UnresolvedReferenceError(edge.source, edge.target, ".".join(edge.path))
