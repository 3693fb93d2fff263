"""Integration test fixtures for LocalStack."""

import os
import time
import uuid

import pytest

from stratum.models import EngineOptions
from stratum.orchestrator import Orchestrator
from stratum.providers import default_registry
from stratum.state import DynamoDBStateStore


@pytest.fixture(scope="session")
def localstack_endpoint():
    """LocalStack endpoint URL from environment."""
    endpoint = os.getenv("AWS_ENDPOINT_URL")
    if not endpoint:
        pytest.skip("AWS_ENDPOINT_URL not set - LocalStack not available")
    return endpoint


@pytest.fixture
def unique_name():
    """Generate unique resource name for test isolation.

    Uses hyphens instead of underscores because AWS resource names
    must match pattern [a-zA-Z][-a-zA-Z0-9]*.
    """
    timestamp = int(time.time())
    unique_id = uuid.uuid4().hex[:8]
    return f"integration-test-{timestamp}-{unique_id}"


@pytest.fixture
def state_store(localstack_endpoint, unique_name):
    """DynamoDB state table, deleted after the test."""
    store = DynamoDBStateStore(
        unique_name, region="us-east-1", endpoint_url=localstack_endpoint
    )
    store.create_table()
    yield store
    store.delete_table()


@pytest.fixture
def orchestrator(localstack_endpoint, state_store):
    registry = default_registry("us-east-1", localstack_endpoint)
    return Orchestrator(state_store, registry, EngineOptions(lock_timeout=5.0))
