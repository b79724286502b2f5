"""Assignment of flow chains to campaigns and upkeep of the default flag.

At most one assignment per campaign carries ``is_default``. Nothing in the
schema enforces that; every write path here maintains it inside the same
transaction as the change that could break it.
"""

from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy.orm import selectinload

from ..errors import (
    AuthorizationError,
    ConflictError,
    IntegrityError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..flows.serialize import isoformat
from ..models.assignment import CampaignFlow
from ..models.directory import Campaign
from ..models.flowchain import FlowChain, FlowStage
from ..utils.transactions import run_atomically


def _load_campaign(campaign_id: str, company_id: str, *, lock: bool = False) -> Campaign:
    query = db.session.query(Campaign).filter(Campaign.id == campaign_id)
    if lock:
        query = query.with_for_update()
    campaign = query.one_or_none()
    if campaign is None:
        raise NotFoundError("Campaign not found")
    if campaign.company_id != company_id:
        raise AuthorizationError("Forbidden - Access denied")
    return campaign


def _load_assignment(campaign_id: str, assignment_id: str) -> CampaignFlow:
    assignment = db.session.get(CampaignFlow, assignment_id)
    if assignment is None:
        raise NotFoundError("Flow assignment not found")
    if assignment.campaign_id != campaign_id:
        raise IntegrityError("Flow does not belong to this campaign")
    return assignment


def promote_default(campaign_id: str) -> CampaignFlow | None:
    """Mark the oldest remaining assignment of a campaign as its default.

    Does nothing when the campaign already has a default or has no
    assignments left. Must run in the caller's transaction.
    """

    remaining = (
        CampaignFlow.query.filter_by(campaign_id=campaign_id)
        .order_by(CampaignFlow.created_at.asc(), CampaignFlow.id.asc())
        .all()
    )
    if not remaining or any(flow.is_default for flow in remaining):
        return None
    promoted = remaining[0]
    promoted.is_default = True
    current_app.logger.info(
        "Promoted assignment %s to default for campaign %s", promoted.id, campaign_id
    )
    return promoted


def _clear_defaults(campaign_id: str, keep_id: str | None = None) -> None:
    query = CampaignFlow.query.filter(
        CampaignFlow.campaign_id == campaign_id, CampaignFlow.is_default.is_(True)
    )
    if keep_id is not None:
        query = query.filter(CampaignFlow.id != keep_id)
    for flow in query.all():
        flow.is_default = False


def serialize_assignment(assignment: CampaignFlow) -> dict[str, Any]:
    chain = assignment.flow_chain
    return {
        "id": assignment.id,
        "campaignId": assignment.campaign_id,
        "isDefault": assignment.is_default,
        "flowChain": {
            "id": chain.id,
            "name": chain.name,
            "description": chain.description,
            "revision": chain.revision,
            "totalStages": len(chain.stages),
            "totalSteps": sum(len(stage.steps) for stage in chain.stages),
        },
        "createdAt": isoformat(assignment.created_at),
        "updatedAt": isoformat(assignment.updated_at),
    }


def detach_flow(campaign_id: str, assignment_id: str, company_id: str) -> None:
    """Remove an assignment, handing the default flag to the oldest survivor."""

    def _detach() -> None:
        _load_campaign(campaign_id, company_id, lock=True)
        assignment = _load_assignment(campaign_id, assignment_id)
        was_default = assignment.is_default

        db.session.delete(assignment)
        db.session.flush()

        if was_default:
            promote_default(campaign_id)

    run_atomically("remove campaign flow", _detach)
    current_app.logger.info("Detached assignment %s from campaign %s", assignment_id, campaign_id)


def attach_flow(
    campaign_id: str, flow_chain_id: Any, is_default: Any, company_id: str
) -> dict[str, Any]:
    """Assign a chain of the campaign's company to the campaign."""

    if not isinstance(flow_chain_id, str) or not flow_chain_id.strip():
        raise ValidationError("flowChainId is required")
    if is_default is not None and not isinstance(is_default, bool):
        raise ValidationError("isDefault must be a boolean")

    def _attach() -> str:
        campaign = _load_campaign(campaign_id, company_id, lock=True)
        chain = db.session.get(FlowChain, flow_chain_id)
        if chain is None:
            raise NotFoundError("FlowChain not found")
        if chain.company_id != campaign.company_id:
            raise IntegrityError("FlowChain does not belong to this company")

        existing = CampaignFlow.query.filter_by(
            campaign_id=campaign_id, flow_chain_id=flow_chain_id
        ).first()
        if existing is not None:
            raise ConflictError("FlowChain already assigned to this campaign")

        has_any = db.session.query(
            CampaignFlow.query.filter_by(campaign_id=campaign_id).exists()
        ).scalar()
        make_default = bool(is_default) or not has_any
        if make_default:
            _clear_defaults(campaign_id)

        assignment = CampaignFlow(
            campaign_id=campaign_id,
            flow_chain_id=flow_chain_id,
            is_default=make_default,
        )
        db.session.add(assignment)
        db.session.flush()
        return assignment.id

    assignment_id = run_atomically("add campaign flow", _attach)
    current_app.logger.info(
        "Attached chain %s to campaign %s as %s", flow_chain_id, campaign_id, assignment_id
    )
    return serialize_assignment(db.session.get(CampaignFlow, assignment_id))


def set_default_flow(
    campaign_id: str, assignment_id: str, is_default: Any, company_id: str
) -> dict[str, Any]:
    """Set or clear the default flag of one assignment."""

    if not isinstance(is_default, bool):
        raise ValidationError("isDefault must be a boolean")

    def _set_default() -> None:
        _load_campaign(campaign_id, company_id, lock=True)
        assignment = _load_assignment(campaign_id, assignment_id)
        if is_default:
            _clear_defaults(campaign_id, keep_id=assignment.id)
        assignment.is_default = is_default

    run_atomically("update campaign flow", _set_default)
    return serialize_assignment(db.session.get(CampaignFlow, assignment_id))


def list_campaign_flows(campaign_id: str, company_id: str) -> dict[str, Any]:
    campaign = _load_campaign(campaign_id, company_id)
    assignments = (
        CampaignFlow.query.options(
            selectinload(CampaignFlow.flow_chain)
            .selectinload(FlowChain.stages)
            .selectinload(FlowStage.steps)
        )
        .filter_by(campaign_id=campaign_id)
        .order_by(CampaignFlow.is_default.desc(), CampaignFlow.created_at.desc())
        .all()
    )
    flows = [serialize_assignment(assignment) for assignment in assignments]
    return {
        "campaignId": campaign.id,
        "campaignName": campaign.name,
        "totalFlows": len(flows),
        "defaultFlow": next((flow for flow in flows if flow["isDefault"]), None),
        "flows": flows,
    }
