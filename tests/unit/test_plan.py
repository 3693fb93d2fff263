"""Tests for plan data structures."""

import json

import pytest

from stratum.exceptions import ValidationError
from stratum.plan import ChangeAction, Plan, PlanMetadata, PlannedChange


@pytest.fixture
def plan() -> Plan:
    return Plan(
        changes=(
            PlannedChange("aws_iam_role.exec", "aws_iam_role", ChangeAction.NOOP),
            PlannedChange(
                "aws_lambda_function.handler",
                "aws_lambda_function",
                ChangeAction.UPDATE,
                before={"memory_size": 128, "role": "arn:old"},
                after={"memory_size": 256, "role": "${aws_iam_role.exec.arn}"},
                changed=("memory_size", "role"),
                provisional=("role",),
                dependencies=("aws_iam_role.exec",),
                prior_id="handler",
            ),
            PlannedChange(
                "aws_cloudwatch_log_group.old",
                "aws_cloudwatch_log_group",
                ChangeAction.DELETE,
                before={"name": "/aws/lambda/old"},
                prior_id="/aws/lambda/old",
            ),
        ),
        metadata=PlanMetadata(lineage="abc", serial=7, document_digest="d1g3st"),
    )


class TestChangeAction:
    """Tests for ChangeAction."""

    @pytest.mark.parametrize(
        ("action", "symbol"),
        [
            (ChangeAction.CREATE, "+"),
            (ChangeAction.UPDATE, "~"),
            (ChangeAction.DELETE, "-"),
            (ChangeAction.REPLACE, "-/+"),
        ],
    )
    def test_symbols(self, action, symbol):
        assert action.symbol == symbol
        assert action.actionable

    def test_noop_is_not_actionable(self):
        assert not ChangeAction.NOOP.actionable
        assert ChangeAction("no-op") is ChangeAction.NOOP


class TestPlan:
    """Tests for Plan."""

    def test_actionable_excludes_noops(self, plan):
        assert plan.has_changes
        assert [c.address for c in plan.actionable] == [
            "aws_lambda_function.handler",
            "aws_cloudwatch_log_group.old",
        ]

    def test_empty_plan_has_no_changes(self):
        noop = PlannedChange("aws_iam_role.exec", "aws_iam_role", ChangeAction.NOOP)
        assert not Plan().has_changes
        assert not Plan(changes=(noop,)).has_changes

    def test_summary(self, plan):
        assert plan.summary() == {
            "no-op": 1,
            "create": 0,
            "update": 1,
            "delete": 1,
            "replace": 0,
        }

    def test_get(self, plan):
        assert plan.get("aws_iam_role.exec").action is ChangeAction.NOOP
        assert plan.get("aws_iam_role.missing") is None

    def test_fingerprint(self, plan):
        assert plan.metadata.fingerprint == "abc@7"
        assert PlanMetadata().fingerprint == "<empty>@0"

    def test_save_and_load(self, plan, tmp_path):
        path = tmp_path / "plan.json"
        plan.save(path)
        data = json.loads(path.read_text())
        assert data["format_version"] == 1
        assert data["changes"][1]["provisional"] == ["role"]
        assert Plan.load(path) == plan

    def test_unsupported_format_version(self, plan):
        data = plan.to_dict()
        data["format_version"] = 99
        with pytest.raises(ValidationError, match="format_version"):
            Plan.from_dict(data)

    def test_malformed_change(self, plan):
        data = plan.to_dict()
        data["changes"][0]["action"] = "explode"
        with pytest.raises(ValidationError, match="malformed plan"):
            Plan.from_dict(data)

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "plan.json"
        path.write_text("{not json")
        with pytest.raises(ValidationError, match="not valid JSON"):
            Plan.load(path)
