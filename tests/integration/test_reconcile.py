"""Integration tests for plan/apply against LocalStack.

To run these tests locally:
    # Start LocalStack
    docker compose up -d

    # Set environment variables and run tests
    export AWS_ENDPOINT_URL=http://localhost:4566
    export AWS_ACCESS_KEY_ID=test
    export AWS_SECRET_ACCESS_KEY=test
    export AWS_DEFAULT_REGION=us-east-1
    pytest tests/integration -v
"""

import pytest

from stratum.document import Document
from stratum.orchestrator import ApplyStatus
from stratum.plan import ChangeAction

pytestmark = pytest.mark.integration

ASSUME_ROLE_POLICY = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": "lambda.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }
    ],
}


def _document(name: str, retention: int = 7) -> Document:
    return Document.from_dict(
        {
            "resources": {
                "aws_iam_role.exec": {
                    "name": f"{name}-exec",
                    "assume_role_policy": ASSUME_ROLE_POLICY,
                },
                "aws_cloudwatch_log_group.logs": {
                    "name": f"/stratum/{name}",
                    "retention_in_days": retention,
                },
                "aws_cloudwatch_event_rule.tick": {
                    "name": f"{name}-tick",
                    "schedule_expression": "rate(5 minutes)",
                    "description": "${aws_cloudwatch_log_group.logs.arn}",
                },
            }
        }
    )


class TestReconcileIntegration:
    """Full plan/apply/destroy cycle against LocalStack."""

    def test_apply_update_destroy(self, orchestrator, state_store, unique_name):
        result = orchestrator.apply(orchestrator.plan(_document(unique_name)))
        assert result.status is ApplyStatus.APPLIED, result.to_dict()
        assert len(state_store.list()) == 3

        rule = state_store.read("aws_cloudwatch_event_rule.tick")
        logs = state_store.read("aws_cloudwatch_log_group.logs")
        assert rule.attributes["description"] == logs.outputs["arn"]

        assert not orchestrator.plan(_document(unique_name)).has_changes

        plan = orchestrator.plan(_document(unique_name, retention=14))
        assert [(c.address, c.action) for c in plan.actionable] == [
            ("aws_cloudwatch_log_group.logs", ChangeAction.UPDATE)
        ]
        assert orchestrator.apply(plan).status is ApplyStatus.APPLIED

        result = orchestrator.apply(orchestrator.plan_destroy())
        assert result.status is ApplyStatus.APPLIED
        assert state_store.list() == []

    def test_refresh_detects_deleted_resource(self, orchestrator, state_store, unique_name):
        orchestrator.apply(orchestrator.plan(_document(unique_name)))
        logs = state_store.read("aws_cloudwatch_log_group.logs")
        orchestrator.registry.get("aws_cloudwatch_log_group").delete(logs.provider_id)

        plan = orchestrator.plan(_document(unique_name), refresh=True)
        assert plan.get("aws_cloudwatch_log_group.logs").action is ChangeAction.CREATE

        assert orchestrator.apply(plan).status is ApplyStatus.APPLIED
        orchestrator.apply(orchestrator.plan_destroy())
