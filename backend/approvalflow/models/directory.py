"""Read-only mirrors of entities owned by other services (roles, campaigns)."""

from __future__ import annotations

import uuid
from datetime import datetime

from ..extensions import db


class Role(db.Model):
    """Approver role from the company's role directory."""

    __tablename__ = "roles"

    id = db.Column(db.String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<Role {self.name!r}>"


class Campaign(db.Model):
    """Campaign owned by a company; flows are assigned to it."""

    __tablename__ = "campaigns"

    id = db.Column(db.String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    flows = db.relationship("CampaignFlow", back_populates="campaign")

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<Campaign {self.name!r}>"
