"""REST API endpoints for flow chain definitions."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Blueprint, current_app, jsonify, request

from ..errors import AuthorizationError, ValidationError
from ..extensions import limiter
from ..flows.replace import create_flow_chain, delete_flow_chain, replace_flow_chain
from ..flows.serialize import get_flow_chain, list_flow_chains
from ..utils.auth import current_principal, require_token

bp = Blueprint("flowchains", __name__)


def _write_limit() -> str:
    return current_app.config.get("FLOWCHAIN_WRITE_RATE_LIMIT", "60 per minute")


def _json_payload() -> dict[str, Any]:
    payload = request.get_json(silent=True, force=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("payload must be an object")
    return payload


def _ensure_company_matches(payload: dict[str, Any], company_id: str) -> None:
    """Reject a body that names another company than the authenticated one."""

    claimed = payload.get("companyId")
    if claimed is not None and str(claimed) != company_id:
        raise AuthorizationError("Forbidden - Access denied")


@bp.get("/flowchains")
@require_token()
def list_chains() -> tuple[object, int]:
    principal = current_principal()
    campaign_id = request.args.get("campaignId") or None
    chains = list_flow_chains(principal.company_id, campaign_id)
    return jsonify({"success": True, "data": chains}), HTTPStatus.OK


@bp.post("/flowchains")
@require_token(role="admin")
@limiter.limit(_write_limit)
def create_chain() -> tuple[object, int]:
    principal = current_principal()
    payload = _json_payload()
    _ensure_company_matches(payload, principal.company_id)
    chain = create_flow_chain(principal.company_id, payload)
    return (
        jsonify({"success": True, "data": chain, "message": "FlowChain created successfully"}),
        HTTPStatus.CREATED,
    )


@bp.get("/flowchains/<chain_id>")
@require_token()
def get_chain(chain_id: str) -> tuple[object, int]:
    chain = get_flow_chain(chain_id, current_principal().company_id)
    return jsonify({"success": True, "data": chain}), HTTPStatus.OK


@bp.put("/flowchains/<chain_id>")
@require_token()
@limiter.limit(_write_limit)
def replace_chain(chain_id: str) -> tuple[object, int]:
    principal = current_principal()
    payload = _json_payload()
    _ensure_company_matches(payload, principal.company_id)
    chain = replace_flow_chain(chain_id, principal.company_id, payload)
    return (
        jsonify({"success": True, "data": chain, "message": "FlowChain updated successfully"}),
        HTTPStatus.OK,
    )


@bp.delete("/flowchains/<chain_id>")
@require_token(role="admin")
def delete_chain(chain_id: str) -> tuple[object, int]:
    delete_flow_chain(chain_id, current_principal().company_id)
    return (
        jsonify({"success": True, "message": "FlowChain deleted successfully"}),
        HTTPStatus.OK,
    )
