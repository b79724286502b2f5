"""REST endpoints for API token management."""

from __future__ import annotations

from datetime import UTC, datetime
from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models.auth import ApiToken
from ..utils.auth import ROLES, current_principal, generate_token, hash_token, require_token

bp = Blueprint("auth", __name__)


def _serialize(token: ApiToken) -> dict[str, object | None]:
    return {
        "id": token.id,
        "name": token.name,
        "role": token.role,
        "companyId": token.company_id,
        "employeeId": token.employee_id,
        "created_at": token.created_at.isoformat() + "Z",
        "revoked_at": token.revoked_at.isoformat() + "Z" if token.revoked_at else None,
    }


@bp.post("/auth/tokens")
@require_token(role="admin")
def create_token() -> tuple[object, int]:
    payload = request.get_json(force=True, silent=True) or {}
    name = (payload.get("name") or "").strip()
    role = (payload.get("role") or "member").strip().lower()
    employee_id = payload.get("employeeId")

    if not name:
        raise ValidationError("name is required")

    if role not in ROLES:
        raise ValidationError("role must be 'admin' or 'member'")

    if employee_id is not None and not isinstance(employee_id, str):
        raise ValidationError("employeeId must be a string")

    principal = current_principal()
    plaintext = generate_token()
    token = ApiToken(
        name=name,
        role=role,
        token_hash=hash_token(plaintext),
        company_id=principal.company_id,
        employee_id=employee_id,
    )
    db.session.add(token)
    db.session.commit()
    current_app.logger.info("Issued %s token %s for company %s", role, token.id, token.company_id)

    response_payload = _serialize(token)
    response_payload["token"] = plaintext
    return jsonify(response_payload), HTTPStatus.CREATED


@bp.get("/auth/tokens")
@require_token(role="admin")
def list_tokens() -> tuple[object, int]:
    tokens = (
        ApiToken.query.filter_by(company_id=current_principal().company_id)
        .order_by(ApiToken.created_at.desc())
        .all()
    )
    return jsonify([_serialize(token) for token in tokens]), HTTPStatus.OK


@bp.delete("/auth/tokens/<int:token_id>")
@require_token(role="admin")
def revoke_token(token_id: int) -> tuple[object, int]:
    token = db.session.get(ApiToken, token_id)
    # Tokens of other companies are reported as missing rather than forbidden.
    if token is None or token.company_id != current_principal().company_id:
        raise NotFoundError("token not found")
    if token.revoked_at is None:
        token.revoked_at = datetime.now(UTC)
        db.session.commit()
    return "", HTTPStatus.NO_CONTENT
