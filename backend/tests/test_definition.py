"""Tests for parsing and validating submitted chain definitions."""

from __future__ import annotations

import pytest

from backend.approvalflow.errors import ValidationError
from backend.approvalflow.flows.definition import parse_definition, parse_revision


def test_defaults_are_filled_in():
    definition = parse_definition(
        {
            "name": "  Review  ",
            "stages": [
                {"name": "Only", "steps": [{"name": "A"}, {"name": "B", "assignedRoles": [{"roleId": 12}]}]}
            ],
        }
    )

    assert definition.name == "Review"
    assert definition.description is None
    stage = definition.stages[0]
    assert stage.order == 0
    assert stage.execution_mode == "SEQUENTIAL"
    assert [step.order_in_stage for step in stage.steps] == [0, 1]
    assert stage.steps[0].approval_policy == "ALL"
    grant = stage.steps[1].assigned_roles[0]
    assert grant.role_id == "12"
    assert grant.required is True


def test_opaque_fields_pass_through_unchanged():
    definition = parse_definition(
        {
            "name": "Chain",
            "stages": [
                {
                    "name": "S",
                    "order": 7,
                    "executionMode": "PARALLEL",
                    "steps": [
                        {
                            "name": "Step",
                            "orderInStage": 3,
                            "approvalPolicy": "QUORUM_2",
                            "transitions": [{"toStepName": "Step", "condition": "score > 3"}],
                        }
                    ],
                }
            ],
        }
    )

    stage = definition.stages[0]
    assert (stage.order, stage.execution_mode) == (7, "PARALLEL")
    step = stage.steps[0]
    assert (step.order_in_stage, step.approval_policy) == (3, "QUORUM_2")
    assert step.transitions[0].condition == "score > 3"


@pytest.mark.parametrize("payload", [{}, {"name": ""}, {"name": "   "}, {"name": None}])
def test_name_is_required(payload):
    with pytest.raises(ValidationError) as excinfo:
        parse_definition(payload)

    assert excinfo.value.message == "name is required"


def test_payload_must_be_an_object():
    with pytest.raises(ValidationError):
        parse_definition(["name"])


def test_duplicate_step_names_across_stages_are_rejected():
    payload = {
        "name": "Chain",
        "stages": [
            {"name": "One", "steps": [{"name": "Check"}]},
            {"name": "Two", "steps": [{"name": "Check"}]},
        ],
    }

    with pytest.raises(ValidationError) as excinfo:
        parse_definition(payload)

    assert any("duplicate step name 'Check'" in error for error in excinfo.value.errors)


def test_duplicate_stage_names_are_rejected():
    payload = {"name": "Chain", "stages": [{"name": "Same"}, {"name": "Same"}]}

    with pytest.raises(ValidationError) as excinfo:
        parse_definition(payload)

    assert excinfo.value.errors == ["duplicate stage name 'Same'"]


def test_all_structural_problems_are_reported_together():
    payload = {
        "name": "Chain",
        "stages": [
            {
                "name": "",
                "order": "first",
                "steps": [
                    {"name": "A", "assignedRoles": [{"required": True}]},
                    "not-an-object",
                    {"name": "B", "transitions": [{"condition": "x"}]},
                ],
                "transitions": "nope",
            }
        ],
    }

    with pytest.raises(ValidationError) as excinfo:
        parse_definition(payload)

    errors = excinfo.value.errors
    assert "stages[0].name is required" in errors
    assert "stages[0].order must be an integer" in errors
    assert "stages[0].steps[0].assignedRoles[0].roleId is required" in errors
    assert "stages[0].steps[1] must be an object" in errors
    assert "stages[0].steps[2].transitions[0].toStepName is required" in errors
    assert "stages[0].transitions must be a list" in errors


def test_boolean_is_not_accepted_as_order():
    with pytest.raises(ValidationError) as excinfo:
        parse_definition({"name": "Chain", "stages": [{"name": "S", "order": True}]})

    assert excinfo.value.errors == ["stages[0].order must be an integer"]


def test_revision_is_a_required_integer():
    assert parse_revision({"revision": 4}) == 4
    with pytest.raises(ValidationError, match="revision is required"):
        parse_revision({})
    with pytest.raises(ValidationError):
        parse_revision({"revision": "4"})
    with pytest.raises(ValidationError):
        parse_revision({"revision": True})
