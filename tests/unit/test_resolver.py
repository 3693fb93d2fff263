"""Tests for dependency ordering."""

import pytest

from stratum.document import Document
from stratum.exceptions import CyclicDependencyError
from stratum.graph import build_graph
from stratum.resolver import apply_order, check_acyclic, destroy_order, order_addresses


def _graph(resources):
    return build_graph(Document.from_dict({"resources": resources}))


class TestApplyOrder:
    """Tests for apply_order."""

    def test_dependencies_come_first(self, stack_document):
        order = apply_order(build_graph(stack_document))
        assert order.index("fake_role.exec") < order.index("fake_function.handler")
        assert order.index("fake_function.handler") < order.index("fake_permission.invoke")

    def test_ties_follow_declaration_order(self):
        graph = _graph(
            {
                "fake_role.c": {},
                "fake_role.a": {},
                "fake_role.b": {},
            }
        )
        assert apply_order(graph) == ["fake_role.c", "fake_role.a", "fake_role.b"]

    def test_dependent_declared_first(self):
        graph = _graph(
            {
                "fake_function.fn": {"role": "${fake_role.exec.arn}"},
                "fake_role.other": {},
                "fake_role.exec": {},
            }
        )
        assert apply_order(graph) == ["fake_role.other", "fake_role.exec", "fake_function.fn"]

    def test_deterministic(self, stack_document):
        graph = build_graph(stack_document)
        assert apply_order(graph) == apply_order(graph)

    def test_destroy_order_is_reverse(self, stack_document):
        graph = build_graph(stack_document)
        assert destroy_order(graph) == list(reversed(apply_order(graph)))

    def test_empty_graph(self):
        assert apply_order(_graph({})) == []


class TestCycles:
    """Cycle detection names every participant."""

    def test_two_node_cycle(self):
        graph = _graph(
            {
                "fake_role.a": {"peer": "${fake_role.b.arn}"},
                "fake_role.b": {"peer": "${fake_role.a.arn}"},
                "fake_role.c": {},
            }
        )
        with pytest.raises(CyclicDependencyError) as exc_info:
            apply_order(graph)
        assert exc_info.value.members == ["fake_role.a", "fake_role.b"]

    def test_self_reference(self):
        graph = _graph({"fake_role.a": {"name": "x", "peer": "${fake_role.a.name}"}})
        with pytest.raises(CyclicDependencyError) as exc_info:
            check_acyclic(graph)
        assert exc_info.value.members == ["fake_role.a"]

    def test_all_members_of_separate_cycles(self):
        graph = _graph(
            {
                "fake_role.a": {"depends_on": ["fake_role.b"]},
                "fake_role.b": {"depends_on": ["fake_role.a"]},
                "fake_role.c": {"depends_on": ["fake_role.e"]},
                "fake_role.d": {"depends_on": ["fake_role.c"]},
                "fake_role.e": {"depends_on": ["fake_role.d"]},
            }
        )
        with pytest.raises(CyclicDependencyError) as exc_info:
            check_acyclic(graph)
        assert exc_info.value.members == [
            "fake_role.a",
            "fake_role.b",
            "fake_role.c",
            "fake_role.d",
            "fake_role.e",
        ]


class TestOrderAddresses:
    """Tests for order_addresses on bare dependency mappings."""

    def test_orders_by_recorded_dependencies(self):
        order = order_addresses(
            {
                "fake_permission.p": ["fake_function.f"],
                "fake_function.f": ["fake_role.r"],
                "fake_role.r": [],
            }
        )
        assert order == ["fake_role.r", "fake_function.f", "fake_permission.p"]

    def test_ignores_unknown_dependencies(self):
        assert order_addresses({"fake_role.a": ["fake_role.gone"]}) == ["fake_role.a"]

    def test_cycle(self):
        with pytest.raises(CyclicDependencyError):
            order_addresses({"fake_role.a": ["fake_role.b"], "fake_role.b": ["fake_role.a"]})
