"""Tests for the provider executor."""

import logging

import pytest

from stratum.exceptions import (
    PermanentProviderError,
    ReferenceFaultError,
    TransientProviderError,
)
from stratum.executor import ProviderExecutor, phases
from stratum.models import RetryPolicy, StateRecord
from stratum.plan import ChangeAction, PlannedChange


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def executor(registry, sleeps):
    return ProviderExecutor(
        registry,
        RetryPolicy(max_attempts=3, base_delay=0.5, max_delay=1.0),
        sleep=sleeps.append,
    )


ROLE = StateRecord(
    address="fake_role.exec",
    resource_type="fake_role",
    provider_id="role-1",
    attributes={"name": "exec-role"},
    outputs={"arn": "arn:fake:role-1"},
)


def _change(action, **kwargs):
    defaults = {
        "address": "fake_function.handler",
        "resource_type": "fake_function",
        "action": action,
        "after": {"name": "handler", "role": "${fake_role.exec.arn}"},
        "provisional": ("role",),
        "dependencies": ("fake_role.exec",),
    }
    defaults.update(kwargs)
    return PlannedChange(**defaults)


class TestResolve:
    """Provisional values are filled from applied records."""

    def test_resolves_provisional_fields(self, executor):
        attrs = executor.resolve(_change(ChangeAction.CREATE), {"fake_role.exec": ROLE})
        assert attrs == {"name": "handler", "role": "arn:fake:role-1"}

    def test_non_provisional_values_untouched(self, executor):
        change = _change(
            ChangeAction.CREATE,
            after={"name": "handler", "literal": "${kept.as.text}"},
            provisional=(),
        )
        assert executor.resolve(change, {})["literal"] == "${kept.as.text}"

    def test_missing_upstream_is_reference_fault(self, executor):
        with pytest.raises(ReferenceFaultError) as exc_info:
            executor.resolve(_change(ChangeAction.CREATE), {})
        assert exc_info.value.target == "fake_role.exec"

    def test_missing_attribute_is_reference_fault(self, executor):
        change = _change(ChangeAction.CREATE, after={"role": "${fake_role.exec.nope}"})
        with pytest.raises(ReferenceFaultError, match="fake_role.exec.nope"):
            executor.resolve(change, {"fake_role.exec": ROLE})


class TestExecute:
    """Dispatch by action."""

    def test_create(self, executor, cloud):
        result = executor.execute(_change(ChangeAction.CREATE), {"fake_role.exec": ROLE})
        assert result.action is ChangeAction.CREATE
        assert result.attempts == 1
        record = result.record
        assert record.provider_id == "fake_function-1"
        assert record.attributes["role"] == "arn:fake:role-1"
        assert record.outputs["arn"] == "arn:fake:fake_function-1"
        assert record.dependencies == ("fake_role.exec",)
        assert cloud.mutations() == [("create", "fake_function", "handler")]

    def test_update_keeps_provider_id(self, executor, cloud):
        cloud.resources["fn-1"] = {"name": "handler"}
        change = _change(ChangeAction.UPDATE, prior_id="fn-1")
        result = executor.execute(change, {"fake_role.exec": ROLE})
        assert result.record.provider_id == "fn-1"
        assert result.record.outputs["version"] == "2"
        assert cloud.mutations() == [("update", "fake_function", "handler")]

    def test_delete(self, executor, cloud):
        cloud.resources["fn-1"] = {"name": "handler"}
        change = _change(ChangeAction.DELETE, prior_id="fn-1", after=None, provisional=())
        result = executor.execute(change, {})
        assert result.record is None
        assert "fn-1" not in cloud.resources

    def test_replace_destroys_then_creates(self, executor, cloud):
        cloud.resources["fn-1"] = {"name": "handler"}
        destroyed = []
        change = _change(ChangeAction.REPLACE, prior_id="fn-1")
        result = executor.execute(change, {"fake_role.exec": ROLE}, on_destroyed=destroyed.append)
        assert [call[0] for call in cloud.mutations()] == ["delete", "create"]
        assert destroyed == [change]
        assert result.record.provider_id != "fn-1"
        assert result.attempts == 2

    def test_replace_reference_fault_happens_before_destroy(self, executor, cloud):
        cloud.resources["fn-1"] = {"name": "handler"}
        with pytest.raises(ReferenceFaultError):
            executor.execute(_change(ChangeAction.REPLACE, prior_id="fn-1"), {})
        assert cloud.mutations() == []

    def test_dependency_only_update_rewrites_record(self, executor, cloud):
        handler = StateRecord(
            "fake_function.handler", "fake_function", "fn-1", {"name": "handler"}, {"arn": "a"}
        )
        change = _change(
            ChangeAction.UPDATE,
            after={"name": "handler"},
            provisional=(),
            changed=(),
            prior_id="fn-1",
        )
        result = executor.execute(change, {"fake_function.handler": handler})
        assert result.attempts == 0
        assert result.record.dependencies == ("fake_role.exec",)
        assert result.record.provider_id == "fn-1"
        assert cloud.calls == []

    def test_noop_makes_no_calls(self, executor, cloud):
        result = executor.execute(_change(ChangeAction.NOOP), {})
        assert result.attempts == 0
        assert cloud.calls == []


class TestRetry:
    """Transient failures are retried with bounded backoff."""

    def test_transient_failure_retried(self, executor, cloud, sleeps, caplog):
        cloud.fail("create", "handler", TransientProviderError("throttled"), times=2)
        with caplog.at_level(logging.WARNING, logger="stratum.executor"):
            result = executor.execute(_change(ChangeAction.CREATE), {"fake_role.exec": ROLE})
        assert result.attempts == 3
        assert sleeps == [0.5, 1.0]
        assert sum("retrying" in r.message for r in caplog.records) == 2

    def test_gives_up_after_max_attempts(self, executor, cloud, sleeps):
        cloud.fail("create", "handler", TransientProviderError("throttled"), times=5)
        with pytest.raises(TransientProviderError):
            executor.execute(_change(ChangeAction.CREATE), {"fake_role.exec": ROLE})
        assert len([c for c in cloud.calls if c[0] == "create"]) == 3
        assert len(sleeps) == 2

    def test_permanent_failure_not_retried(self, executor, cloud, sleeps):
        cloud.fail("create", "handler", PermanentProviderError("invalid"))
        with pytest.raises(PermanentProviderError):
            executor.execute(_change(ChangeAction.CREATE), {"fake_role.exec": ROLE})
        assert sleeps == []

    def test_read_retries(self, executor, cloud, sleeps):
        cloud.resources["role-1"] = {"name": "exec"}
        cloud.fail("read", "exec", TransientProviderError("timeout"))
        assert executor.read(ROLE) == {"arn": "arn:fake:role-1"}
        assert sleeps == [0.5]


class TestPhases:
    """A replace runs as a delete step and a create step."""

    def test_replace_splits_into_delete_then_create(self):
        change = _change(ChangeAction.REPLACE, prior_id="fn-1")
        delete, create = phases(change)
        assert (delete.action, delete.prior_id) == (ChangeAction.DELETE, "fn-1")
        assert (create.action, create.prior_id) == (ChangeAction.CREATE, None)
        assert create.provisional == ("role",)

    @pytest.mark.parametrize("action", [ChangeAction.CREATE, ChangeAction.UPDATE, ChangeAction.DELETE])
    def test_other_changes_are_one_step(self, action):
        change = _change(action, prior_id="fn-1")
        assert phases(change) == (change,)
