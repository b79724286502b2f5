"""Resolve named transitions into edges once every node exists (phase 2)."""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models.flowchain import FlowTransition, StageTransition
from .builder import NodeMaps


@dataclass
class WiringResult:
    step_transitions: int = 0
    stage_transitions: int = 0
    skipped: int = 0


def wire_transitions(maps: NodeMaps) -> WiringResult:
    """Create step and stage transitions whose targets resolve by name.

    Targets that match no submitted node are dropped without error.
    """

    result = WiringResult()

    for step_spec, step in maps.step_sources:
        for transition in step_spec.transitions:
            target_id = maps.step_ids.get(transition.to_step_name)
            if target_id is None:
                current_app.logger.debug(
                    "Skipping transition %r -> %r: unknown step",
                    step_spec.name,
                    transition.to_step_name,
                )
                result.skipped += 1
                continue
            db.session.add(
                FlowTransition(
                    from_step_id=step.id,
                    to_step_id=target_id,
                    condition=transition.condition,
                )
            )
            result.step_transitions += 1

    for stage_spec, stage in maps.stage_sources:
        for transition in stage_spec.transitions:
            target_id = maps.stage_ids.get(transition.to_stage_name)
            if target_id is None:
                current_app.logger.debug(
                    "Skipping stage transition %r -> %r: unknown stage",
                    stage_spec.name,
                    transition.to_stage_name,
                )
                result.skipped += 1
                continue
            db.session.add(
                StageTransition(
                    from_stage_id=stage.id,
                    to_stage_id=target_id,
                    condition=transition.condition,
                )
            )
            result.stage_transitions += 1

    db.session.flush()
    return result
