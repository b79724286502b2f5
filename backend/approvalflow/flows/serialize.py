"""Loading and JSON serialisation of hydrated flow chains."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.orm import selectinload

from ..errors import AuthorizationError, NotFoundError
from ..extensions import db
from ..models.assignment import CampaignFlow
from ..models.flowchain import (
    FlowChain,
    FlowStage,
    FlowStep,
    FlowStepRole,
    FlowTransition,
    StageTransition,
)


def isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat() + "Z"


def _hydrated_options():
    step_path = selectinload(FlowChain.stages).selectinload(FlowStage.steps)
    return (
        step_path.selectinload(FlowStep.assigned_roles).selectinload(FlowStepRole.role),
        step_path.selectinload(FlowStep.outgoing_transitions).selectinload(FlowTransition.to_step),
        selectinload(FlowChain.stages)
        .selectinload(FlowStage.outgoing_transitions)
        .selectinload(StageTransition.to_stage),
    )


def load_chain(chain_id: str, company_id: str) -> FlowChain:
    """Return the chain with its whole graph loaded, enforcing tenancy."""

    chain = (
        db.session.query(FlowChain)
        .options(*_hydrated_options())
        .filter(FlowChain.id == chain_id)
        .one_or_none()
    )
    if chain is None:
        raise NotFoundError("FlowChain not found")
    if chain.company_id != company_id:
        raise AuthorizationError("Forbidden - Access denied")
    return chain


def _serialize_role(grant: FlowStepRole, company_id: str) -> dict[str, str] | None:
    # Role ids are not validated on write; never reveal another company's directory.
    role = grant.role
    if role is None or role.company_id != company_id:
        return None
    return {"id": role.id, "name": role.name}


def _serialize_step(step: FlowStep, company_id: str) -> dict[str, Any]:
    return {
        "id": step.id,
        "name": step.name,
        "description": step.description,
        "orderInStage": step.order_in_stage,
        "approvalPolicy": step.approval_policy,
        "assignedRoles": [
            {
                "id": grant.id,
                "roleId": grant.role_id,
                "required": grant.required,
                "role": _serialize_role(grant, company_id),
            }
            for grant in step.assigned_roles
        ],
        "transitions": [
            {
                "id": transition.id,
                "condition": transition.condition,
                "toStep": {"id": transition.to_step.id, "name": transition.to_step.name},
            }
            for transition in step.outgoing_transitions
        ],
    }


def _serialize_stage(stage: FlowStage, company_id: str) -> dict[str, Any]:
    return {
        "id": stage.id,
        "name": stage.name,
        "order": stage.order,
        "executionMode": stage.execution_mode,
        "steps": [_serialize_step(step, company_id) for step in stage.steps],
        "transitions": [
            {
                "id": transition.id,
                "condition": transition.condition,
                "toStage": {"id": transition.to_stage.id, "name": transition.to_stage.name},
            }
            for transition in stage.outgoing_transitions
        ],
    }


def serialize_chain(chain: FlowChain) -> dict[str, Any]:
    """Return the full JSON representation of a hydrated chain."""

    stages = [_serialize_stage(stage, chain.company_id) for stage in chain.stages]
    return {
        "id": chain.id,
        "companyId": chain.company_id,
        "name": chain.name,
        "description": chain.description,
        "revision": chain.revision,
        "totalStages": len(stages),
        "totalSteps": sum(len(stage["steps"]) for stage in stages),
        "stages": stages,
        "createdAt": isoformat(chain.created_at),
        "updatedAt": isoformat(chain.updated_at),
    }


def get_flow_chain(chain_id: str, company_id: str) -> dict[str, Any]:
    return serialize_chain(load_chain(chain_id, company_id))


def summarize_chain(chain: FlowChain) -> dict[str, Any]:
    return {
        "id": chain.id,
        "name": chain.name,
        "description": chain.description,
        "revision": chain.revision,
        "totalStages": len(chain.stages),
        "totalSteps": sum(len(stage.steps) for stage in chain.stages),
        "createdAt": isoformat(chain.created_at),
        "updatedAt": isoformat(chain.updated_at),
    }


def list_flow_chains(company_id: str, campaign_id: str | None = None) -> list[dict[str, Any]]:
    """Summaries of the company's chains, newest first.

    With ``campaign_id`` the chains already assigned to that campaign are left out.
    """

    query = (
        db.session.query(FlowChain)
        .options(selectinload(FlowChain.stages).selectinload(FlowStage.steps))
        .filter(FlowChain.company_id == company_id)
    )
    if campaign_id:
        assigned = db.session.query(CampaignFlow.flow_chain_id).filter(
            CampaignFlow.campaign_id == campaign_id
        )
        query = query.filter(FlowChain.id.not_in(assigned.scalar_subquery()))
    chains = query.order_by(FlowChain.created_at.desc()).all()
    return [summarize_chain(chain) for chain in chains]
