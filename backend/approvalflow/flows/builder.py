"""Materialise stages, steps and role grants for a chain (phase 1 of a rebuild)."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..extensions import db
from ..models.flowchain import FlowChain, FlowStage, FlowStep, FlowStepRole
from .definition import ChainDefinition, RoleGrantSpec, StageSpec, StepSpec


@dataclass
class NodeMaps:
    """Name to id lookups produced while creating nodes.

    ``step_ids`` is chain-wide, not per stage. The ``*_sources`` lists pair
    every submitted definition entry with the row it produced so the wiring
    pass knows each edge's origin.
    """

    stage_ids: dict[str, str] = field(default_factory=dict)
    step_ids: dict[str, str] = field(default_factory=dict)
    stage_sources: list[tuple[StageSpec, FlowStage]] = field(default_factory=list)
    step_sources: list[tuple[StepSpec, FlowStep]] = field(default_factory=list)


def write_role_grants(step: FlowStep, grants: list[RoleGrantSpec]) -> list[FlowStepRole]:
    """Attach role approval requirements to a freshly created step."""

    rows = [
        FlowStepRole(step_id=step.id, role_id=grant.role_id, required=grant.required)
        for grant in grants
    ]
    db.session.add_all(rows)
    return rows


def materialize_nodes(chain: FlowChain, definition: ChainDefinition) -> NodeMaps:
    """Create every stage and step of ``definition`` under ``chain``.

    Rows are flushed as they are created so their ids are available for the
    maps; nothing is committed here.
    """

    maps = NodeMaps()
    for stage_spec in definition.stages:
        stage = FlowStage(
            chain_id=chain.id,
            name=stage_spec.name,
            order=stage_spec.order,
            execution_mode=stage_spec.execution_mode,
        )
        db.session.add(stage)
        db.session.flush()

        maps.stage_ids[stage_spec.name] = stage.id
        maps.stage_sources.append((stage_spec, stage))

        for step_spec in stage_spec.steps:
            step = FlowStep(
                chain_id=chain.id,
                stage_id=stage.id,
                name=step_spec.name,
                description=step_spec.description,
                order_in_stage=step_spec.order_in_stage,
                approval_policy=step_spec.approval_policy,
            )
            db.session.add(step)
            db.session.flush()

            maps.step_ids[step_spec.name] = step.id
            maps.step_sources.append((step_spec, step))
            write_role_grants(step, step_spec.assigned_roles)

    db.session.flush()
    return maps
