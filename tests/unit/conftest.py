"""Unit test fixtures: an in-memory fake cloud and moto for DynamoDB."""

from typing import Any

import pytest
from moto import mock_aws

from stratum.document import Document
from stratum.exceptions import ResourceNotFoundError
from stratum.models import EngineOptions, RetryPolicy
from stratum.orchestrator import Orchestrator
from stratum.providers.base import DiffPolicy, Provider
from stratum.providers.registry import ProviderRegistry
from stratum.state import MemoryStateStore


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    # Unset AWS_ENDPOINT_URL to ensure moto intercepts requests
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)


@pytest.fixture
def mock_dynamodb(aws_credentials):
    """Mock DynamoDB for tests."""
    with mock_aws():
        yield


class FakeCloud:
    """
    Shared backend for fake providers.

    Records every provider call as ``(operation, resource_type, name)`` and
    raises queued failures keyed by ``(operation, name)``.
    """

    def __init__(self) -> None:
        self.resources: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str, str]] = []
        self._failures: dict[tuple[str, str], list[Exception]] = {}
        self._counter = 0

    def fail(self, operation: str, name: str, error: Exception, times: int = 1) -> None:
        self._failures.setdefault((operation, name), []).extend([error] * times)

    def record(self, operation: str, resource_type: str, name: str) -> None:
        self.calls.append((operation, resource_type, name))
        queued = self._failures.get((operation, name))
        if queued:
            raise queued.pop(0)

    def next_id(self, resource_type: str) -> str:
        self._counter += 1
        return f"{resource_type}-{self._counter}"

    def mutations(self) -> list[tuple[str, str, str]]:
        return [call for call in self.calls if call[0] != "read"]


class FakeProvider(Provider):
    """Provider storing resources in a :class:`FakeCloud`."""

    def __init__(
        self,
        cloud: FakeCloud,
        resource_type: str,
        outputs: frozenset[str] = frozenset({"arn"}),
        diff_policy: DiffPolicy = DiffPolicy(),
    ) -> None:
        self.cloud = cloud
        self.resource_type = resource_type  # type: ignore[misc]
        self.outputs = outputs  # type: ignore[misc]
        self.diff_policy = diff_policy  # type: ignore[misc]

    def _outputs(self, provider_id: str) -> dict[str, Any]:
        attrs = self.cloud.resources[provider_id]
        outputs: dict[str, Any] = {"arn": f"arn:fake:{provider_id}"}
        if "version" in self.outputs:
            outputs["version"] = str(attrs.get("_version", 1))
        return outputs

    def _name(self, provider_id: str) -> str:
        return str(self.cloud.resources.get(provider_id, {}).get("name", provider_id))

    def create(self, attrs: dict[str, Any]) -> tuple[dict[str, Any], str]:
        self.cloud.record("create", self.resource_type, str(attrs.get("name")))
        provider_id = self.cloud.next_id(self.resource_type)
        self.cloud.resources[provider_id] = dict(attrs)
        return self._outputs(provider_id), provider_id

    def read(self, provider_id: str) -> dict[str, Any]:
        self.cloud.record("read", self.resource_type, self._name(provider_id))
        if provider_id not in self.cloud.resources:
            raise ResourceNotFoundError(self.resource_type, provider_id)
        return self._outputs(provider_id)

    def update(self, provider_id: str, attrs: dict[str, Any]) -> dict[str, Any]:
        self.cloud.record("update", self.resource_type, str(attrs.get("name")))
        version = self.cloud.resources[provider_id].get("_version", 1) + 1
        self.cloud.resources[provider_id] = {**attrs, "_version": version}
        return self._outputs(provider_id)

    def delete(self, provider_id: str) -> None:
        self.cloud.record("delete", self.resource_type, self._name(provider_id))
        self.cloud.resources.pop(provider_id, None)


@pytest.fixture
def cloud() -> FakeCloud:
    return FakeCloud()


@pytest.fixture
def registry(cloud) -> ProviderRegistry:
    """
    Registry with three fake types:

    - ``fake_role``: replaced when ``name`` changes, outputs ``arn``
    - ``fake_function``: replaced when ``name`` changes, outputs ``arn`` and ``version``
    - ``fake_permission``: every change forces replacement
    """
    return ProviderRegistry(
        [
            FakeProvider(cloud, "fake_role", diff_policy=DiffPolicy(force_new=frozenset({"name"}))),
            FakeProvider(
                cloud,
                "fake_function",
                outputs=frozenset({"arn", "version"}),
                diff_policy=DiffPolicy(force_new=frozenset({"name"})),
            ),
            FakeProvider(
                cloud, "fake_permission", diff_policy=DiffPolicy(updatable=frozenset())
            ),
        ]
    )


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore(poll_interval=0.01)


@pytest.fixture
def fast_options() -> EngineOptions:
    return EngineOptions(
        parallelism=4,
        lock_timeout=0.05,
        retry=RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0),
    )


@pytest.fixture
def orchestrator(store, registry, fast_options) -> Orchestrator:
    return Orchestrator(store, registry, fast_options)


@pytest.fixture
def stack_document() -> Document:
    """Role -> function -> permission chain plus an independent role."""
    return Document.from_dict(
        {
            "resources": {
                "fake_role.exec": {"name": "exec-role"},
                "fake_function.handler": {
                    "name": "handler",
                    "role": "${fake_role.exec.arn}",
                    "memory": 128,
                },
                "fake_permission.invoke": {
                    "name": "invoke",
                    "function": "${fake_function.handler.arn}",
                },
                "fake_role.audit": {"name": "audit-role"},
            }
        }
    )
