"""Assignment of flow chains to campaigns."""

from __future__ import annotations

import uuid
from datetime import datetime

from ..extensions import db


class CampaignFlow(db.Model):
    """Links a flow chain to a campaign; at most one per campaign is the default."""

    __tablename__ = "campaign_flows"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    campaign_id = db.Column(
        db.String(64), db.ForeignKey("campaigns.id"), nullable=False, index=True
    )
    flow_chain_id = db.Column(
        db.String(36), db.ForeignKey("flow_chains.id"), nullable=False, index=True
    )
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    campaign = db.relationship("Campaign", back_populates="flows")
    flow_chain = db.relationship("FlowChain")

    def __repr__(self) -> str:  # pragma: no cover - repr not critical for tests
        return f"<CampaignFlow {self.campaign_id}->{self.flow_chain_id} default={self.is_default}>"
