"""Tests for exception classes."""

import pytest

from stratum.exceptions import (
    ApplyError,
    CyclicDependencyError,
    DocumentError,
    GraphError,
    ImmutableIdentifierError,
    InvalidTransitionError,
    LockContentionError,
    MalformedDocumentError,
    PermanentProviderError,
    ProviderError,
    ReferenceFaultError,
    ResourceNotFoundError,
    StalePlanError,
    StateCorruptionError,
    StateError,
    StratumError,
    TransientProviderError,
    UnknownResourceTypeError,
    UnresolvedReferenceError,
    ValidationError,
)


class TestHierarchy:
    """Every error is catchable through its category and the base class."""

    @pytest.mark.parametrize(
        ("error", "category"),
        [
            (MalformedDocumentError("bad"), DocumentError),
            (UnresolvedReferenceError("a.b", "c.d"), DocumentError),
            (UnknownResourceTypeError("nope_thing"), DocumentError),
            (CyclicDependencyError(["a.b"]), GraphError),
            (LockContentionError("session", None, 1.0), StateError),
            (StateCorruptionError("memory", "broken"), StateError),
            (ImmutableIdentifierError("a.b", "1", "2"), StateError),
            (StalePlanError("x@1", "x@2"), StateError),
            (TransientProviderError("slow"), ProviderError),
            (PermanentProviderError("bad"), ProviderError),
            (ResourceNotFoundError("fake_role", "r-1"), ProviderError),
            (InvalidTransitionError("idle", "applying"), ApplyError),
        ],
    )
    def test_category(self, error, category):
        assert isinstance(error, category)
        assert isinstance(error, StratumError)

    def test_reference_fault_is_both_document_and_apply_error(self):
        error = ReferenceFaultError("a.b", "c.d", "arn")
        assert isinstance(error, UnresolvedReferenceError)
        assert isinstance(error, ApplyError)


class TestMessages:
    """Structured attributes and formatted messages."""

    def test_malformed_document_prefixes_address(self):
        error = MalformedDocumentError("duplicate resource identity", address="a.b")
        assert str(error) == "a.b: duplicate resource identity"
        assert error.address == "a.b"

    def test_unresolved_reference(self):
        error = UnresolvedReferenceError("fake_function.fn", "fake_role.missing", "arn")
        assert error.source == "fake_function.fn"
        assert error.target == "fake_role.missing"
        assert "fake_role.missing.arn" in str(error)
        assert "undeclared" in str(error)

    def test_reference_fault_message(self):
        error = ReferenceFaultError("fake_function.fn", "fake_role.exec", "arn")
        assert "internal consistency fault" in str(error)

    def test_unknown_resource_type_names_user(self):
        error = UnknownResourceTypeError("nope_thing", address="nope_thing.x")
        assert "nope_thing" in str(error)
        assert "nope_thing.x" in str(error)

    def test_cycle_members(self):
        error = CyclicDependencyError(["a.x", "b.y"])
        assert error.members == ["a.x", "b.y"]
        assert "a.x, b.y" in str(error)

    def test_lock_contention_names_holder(self):
        error = LockContentionError("session", "host:123", 2.5)
        assert error.holder == "host:123"
        assert "held by host:123" in str(error)
        assert "2.5s" in str(error)

    def test_stale_plan(self):
        error = StalePlanError("lin@3", "lin@4")
        assert error.expected == "lin@3"
        assert "Re-run plan" in str(error)

    def test_provider_error_attributes(self):
        error = TransientProviderError("throttled", resource_type="aws_iam_role", operation="create")
        assert error.resource_type == "aws_iam_role"
        assert error.operation == "create"

    def test_resource_not_found(self):
        error = ResourceNotFoundError("fake_role", "r-1")
        assert error.provider_id == "r-1"
        assert error.operation == "read"

    def test_validation_error(self):
        error = ValidationError("parallelism", 0, "must be at least 1")
        assert error.field == "parallelism"
        assert str(error) == "Invalid parallelism 0: must be at least 1"
