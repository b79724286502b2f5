"""Parsing and validation of submitted flow chain definitions.

A definition references stages and steps by *name* because none of them have
persisted ids yet when it is submitted. Step names are resolved through one
chain-wide map, so they must be unique across the whole chain, not just within
their stage; stage names must be unique within the chain. Both are rejected
up front rather than letting a later entry silently shadow an earlier one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..errors import ValidationError
from ..models.flowchain import (
    DEFAULT_APPROVAL_POLICY,
    DEFAULT_CONDITION,
    DEFAULT_EXECUTION_MODE,
)


@dataclass(frozen=True)
class RoleGrantSpec:
    role_id: str
    required: bool = True


@dataclass(frozen=True)
class StepTransitionSpec:
    to_step_name: str
    condition: str = DEFAULT_CONDITION


@dataclass(frozen=True)
class StageTransitionSpec:
    to_stage_name: str
    condition: str = DEFAULT_CONDITION


@dataclass
class StepSpec:
    name: str
    description: str | None = None
    order_in_stage: int = 0
    approval_policy: str = DEFAULT_APPROVAL_POLICY
    assigned_roles: list[RoleGrantSpec] = field(default_factory=list)
    transitions: list[StepTransitionSpec] = field(default_factory=list)


@dataclass
class StageSpec:
    name: str
    order: int = 0
    execution_mode: str = DEFAULT_EXECUTION_MODE
    steps: list[StepSpec] = field(default_factory=list)
    transitions: list[StageTransitionSpec] = field(default_factory=list)


@dataclass
class ChainDefinition:
    name: str
    description: str | None = None
    stages: list[StageSpec] = field(default_factory=list)


def _clean_name(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


def _optional_text(value: Any, path: str, errors: list[str]) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        errors.append(f"{path} must be a string")
        return None
    return value


def _text_with_default(value: Any, default: str, path: str, errors: list[str]) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or not value.strip():
        errors.append(f"{path} must be a non-empty string")
        return default
    return value.strip()


def _integer(value: Any, default: int, path: str, errors: list[str]) -> int:
    if value is None:
        return default
    # bool is an int subclass but never a meaningful position.
    if isinstance(value, bool) or not isinstance(value, int):
        errors.append(f"{path} must be an integer")
        return default
    return value


def _list_of_objects(
    value: Any, path: str, errors: list[str]
) -> list[tuple[int, dict[str, Any]]]:
    """Return the object entries of a list together with their original index."""

    if value is None:
        return []
    if not isinstance(value, list):
        errors.append(f"{path} must be a list")
        return []
    items: list[tuple[int, dict[str, Any]]] = []
    for index, item in enumerate(value):
        if not isinstance(item, dict):
            errors.append(f"{path}[{index}] must be an object")
            continue
        items.append((index, item))
    return items


def _parse_role_grants(value: Any, path: str, errors: list[str]) -> list[RoleGrantSpec]:
    grants: list[RoleGrantSpec] = []
    for index, item in _list_of_objects(value, path, errors):
        role_id = item.get("roleId")
        if isinstance(role_id, int) and not isinstance(role_id, bool):
            role_id = str(role_id)
        role_id = _clean_name(role_id)
        if not role_id:
            errors.append(f"{path}[{index}].roleId is required")
            continue
        required = item.get("required", True)
        if not isinstance(required, bool):
            errors.append(f"{path}[{index}].required must be a boolean")
            continue
        grants.append(RoleGrantSpec(role_id=role_id, required=required))
    return grants


def _parse_step(item: dict[str, Any], index: int, path: str, errors: list[str]) -> StepSpec:
    name = _clean_name(item.get("name"))
    if not name:
        errors.append(f"{path}.name is required")

    transitions: list[StepTransitionSpec] = []
    for t_index, raw in _list_of_objects(item.get("transitions"), f"{path}.transitions", errors):
        target = _clean_name(raw.get("toStepName"))
        if not target:
            errors.append(f"{path}.transitions[{t_index}].toStepName is required")
            continue
        condition = _text_with_default(
            raw.get("condition"), DEFAULT_CONDITION, f"{path}.transitions[{t_index}].condition", errors
        )
        transitions.append(StepTransitionSpec(to_step_name=target, condition=condition))

    return StepSpec(
        name=name,
        description=_optional_text(item.get("description"), f"{path}.description", errors),
        order_in_stage=_integer(item.get("orderInStage"), index, f"{path}.orderInStage", errors),
        approval_policy=_text_with_default(
            item.get("approvalPolicy"), DEFAULT_APPROVAL_POLICY, f"{path}.approvalPolicy", errors
        ),
        assigned_roles=_parse_role_grants(item.get("assignedRoles"), f"{path}.assignedRoles", errors),
        transitions=transitions,
    )


def _parse_stage(item: dict[str, Any], index: int, errors: list[str]) -> StageSpec:
    path = f"stages[{index}]"
    name = _clean_name(item.get("name"))
    if not name:
        errors.append(f"{path}.name is required")

    steps = [
        _parse_step(raw, s_index, f"{path}.steps[{s_index}]", errors)
        for s_index, raw in _list_of_objects(item.get("steps"), f"{path}.steps", errors)
    ]

    transitions: list[StageTransitionSpec] = []
    for t_index, raw in _list_of_objects(item.get("transitions"), f"{path}.transitions", errors):
        target = _clean_name(raw.get("toStageName"))
        if not target:
            errors.append(f"{path}.transitions[{t_index}].toStageName is required")
            continue
        condition = _text_with_default(
            raw.get("condition"), DEFAULT_CONDITION, f"{path}.transitions[{t_index}].condition", errors
        )
        transitions.append(StageTransitionSpec(to_stage_name=target, condition=condition))

    return StageSpec(
        name=name,
        order=_integer(item.get("order"), index, f"{path}.order", errors),
        execution_mode=_text_with_default(
            item.get("executionMode"), DEFAULT_EXECUTION_MODE, f"{path}.executionMode", errors
        ),
        steps=steps,
        transitions=transitions,
    )


def _duplicate_names(stages: list[StageSpec]) -> list[str]:
    errors: list[str] = []
    seen_stages: set[str] = set()
    seen_steps: dict[str, str] = {}
    for stage in stages:
        if stage.name and stage.name in seen_stages:
            errors.append(f"duplicate stage name {stage.name!r}")
        seen_stages.add(stage.name)
        for step in stage.steps:
            if not step.name:
                continue
            owner = seen_steps.get(step.name)
            if owner is not None:
                errors.append(
                    f"duplicate step name {step.name!r} in stages {owner!r} and {stage.name!r}"
                )
            else:
                seen_steps[step.name] = stage.name
    return errors


def require_name(payload: Any) -> str:
    """Return the stripped chain name or raise ``ValidationError``."""

    if not isinstance(payload, dict):
        raise ValidationError("payload must be an object")
    name = _clean_name(payload.get("name"))
    if not name:
        raise ValidationError("name is required")
    return name


def parse_definition(payload: Any) -> ChainDefinition:
    """Validate a raw JSON payload and return a typed definition.

    Raises ``ValidationError`` carrying every problem found. A missing name is
    reported on its own so that callers get the simple message first.
    """

    name = require_name(payload)

    errors: list[str] = []
    description = _optional_text(payload.get("description"), "description", errors)
    stages = [
        _parse_stage(item, index, errors)
        for index, item in _list_of_objects(payload.get("stages"), "stages", errors)
    ]
    errors.extend(_duplicate_names(stages))

    if errors:
        raise ValidationError("definition is invalid", errors=errors)

    return ChainDefinition(name=name, description=description, stages=stages)


def parse_revision(payload: dict[str, Any]) -> int:
    """Return the revision the client last read."""

    value = payload.get("revision")
    if value is None:
        raise ValidationError("revision is required")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("revision must be an integer")
    return value
