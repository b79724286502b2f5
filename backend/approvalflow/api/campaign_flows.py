"""REST API endpoints assigning flow chains to campaigns."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from ..campaigns.assignments import (
    attach_flow,
    detach_flow,
    list_campaign_flows,
    set_default_flow,
)
from ..utils.auth import current_principal, require_token

bp = Blueprint("campaign_flows", __name__)


def _payload() -> dict:
    payload = request.get_json(silent=True, force=True)
    return payload if isinstance(payload, dict) else {}


@bp.get("/campaigns/<campaign_id>/flows")
@require_token(role="admin")
def list_flows(campaign_id: str) -> tuple[object, int]:
    data = list_campaign_flows(campaign_id, current_principal().company_id)
    return jsonify({"success": True, "data": data}), HTTPStatus.OK


@bp.post("/campaigns/<campaign_id>/flows")
@require_token(role="admin")
def add_flow(campaign_id: str) -> tuple[object, int]:
    payload = _payload()
    assignment = attach_flow(
        campaign_id,
        payload.get("flowChainId"),
        payload.get("isDefault"),
        current_principal().company_id,
    )
    return (
        jsonify(
            {
                "success": True,
                "data": assignment,
                "message": "FlowChain linked to campaign successfully",
            }
        ),
        HTTPStatus.CREATED,
    )


@bp.put("/campaigns/<campaign_id>/flows/<assignment_id>")
@require_token()
def update_flow(campaign_id: str, assignment_id: str) -> tuple[object, int]:
    payload = _payload()
    assignment = set_default_flow(
        campaign_id,
        assignment_id,
        payload.get("isDefault"),
        current_principal().company_id,
    )
    return jsonify({"success": True, "data": assignment}), HTTPStatus.OK


@bp.delete("/campaigns/<campaign_id>/flows/<assignment_id>")
@require_token()
def remove_flow(campaign_id: str, assignment_id: str) -> tuple[object, int]:
    detach_flow(campaign_id, assignment_id, current_principal().company_id)
    return (
        jsonify({"success": True, "message": "Flow removed from campaign successfully"}),
        HTTPStatus.OK,
    )
