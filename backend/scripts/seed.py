"""Seed the database with a demo company: roles, a campaign, an admin token and a flow."""
from __future__ import annotations

import os
import pathlib
import sys

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.approvalflow import create_app
from backend.approvalflow.extensions import db
from backend.approvalflow.flows.replace import create_flow_chain
from backend.approvalflow.models.assignment import CampaignFlow
from backend.approvalflow.models.auth import ApiToken
from backend.approvalflow.models.directory import Campaign, Role
from backend.approvalflow.models.flowchain import FlowChain
from backend.approvalflow.utils.auth import generate_token, hash_token

DEMO_COMPANY_ID = os.getenv("SEED_COMPANY_ID", "demo-company")
EXAMPLE_CHAIN_NAME = "Content Approval"
EXAMPLE_CAMPAIGN_NAME = "Launch Campaign"
ROLE_NAMES = ("Copywriter", "Brand Reviewer", "Legal")


def _ensure_roles() -> dict[str, str]:
    role_ids: dict[str, str] = {}
    for name in ROLE_NAMES:
        role = Role.query.filter_by(company_id=DEMO_COMPANY_ID, name=name).first()
        if role is None:
            role = Role(company_id=DEMO_COMPANY_ID, name=name)
            db.session.add(role)
            db.session.flush()
        role_ids[name] = role.id
    return role_ids


def _ensure_campaign() -> tuple[Campaign, bool]:
    campaign = Campaign.query.filter_by(
        company_id=DEMO_COMPANY_ID, name=EXAMPLE_CAMPAIGN_NAME
    ).first()
    if campaign is not None:
        return campaign, False
    campaign = Campaign(company_id=DEMO_COMPANY_ID, name=EXAMPLE_CAMPAIGN_NAME)
    db.session.add(campaign)
    db.session.flush()
    return campaign, True


def _example_definition(role_ids: dict[str, str]) -> dict[str, object]:
    """Two stages: a draft written by the copywriter, then brand and legal review."""

    return {
        "name": EXAMPLE_CHAIN_NAME,
        "description": "Draft, then parallel brand and legal review",
        "stages": [
            {
                "name": "Draft",
                "order": 0,
                "executionMode": "SEQUENTIAL",
                "steps": [
                    {
                        "name": "Write",
                        "orderInStage": 0,
                        "assignedRoles": [{"roleId": role_ids["Copywriter"], "required": True}],
                        "transitions": [
                            {"toStepName": "Brand Review", "condition": "SUBMITTED"},
                            {"toStepName": "Legal Review", "condition": "SUBMITTED"},
                        ],
                    }
                ],
                "transitions": [{"toStageName": "Review", "condition": "APPROVED"}],
            },
            {
                "name": "Review",
                "order": 1,
                "executionMode": "PARALLEL",
                "steps": [
                    {
                        "name": "Brand Review",
                        "orderInStage": 0,
                        "approvalPolicy": "ANY",
                        "assignedRoles": [
                            {"roleId": role_ids["Brand Reviewer"], "required": True}
                        ],
                        "transitions": [{"toStepName": "Write", "condition": "CHANGES_REQUESTED"}],
                    },
                    {
                        "name": "Legal Review",
                        "orderInStage": 1,
                        "assignedRoles": [{"roleId": role_ids["Legal"], "required": False}],
                    },
                ],
            },
        ],
    }


def main() -> None:
    app = create_app()
    with app.app_context():
        role_ids = _ensure_roles()
        campaign, created_campaign = _ensure_campaign()
        db.session.commit()

        chain = FlowChain.query.filter_by(
            company_id=DEMO_COMPANY_ID, name=EXAMPLE_CHAIN_NAME
        ).first()
        created_chain = chain is None
        if chain is None:
            chain_id = create_flow_chain(DEMO_COMPANY_ID, _example_definition(role_ids))["id"]
        else:
            chain_id = chain.id

        if CampaignFlow.query.filter_by(campaign_id=campaign.id, flow_chain_id=chain_id).first() is None:
            db.session.add(
                CampaignFlow(campaign_id=campaign.id, flow_chain_id=chain_id, is_default=True)
            )

        plaintext = generate_token()
        db.session.add(
            ApiToken(
                name="Seed Admin Token",
                role="admin",
                token_hash=hash_token(plaintext),
                company_id=DEMO_COMPANY_ID,
            )
        )
        db.session.commit()

        print(
            "Seed completed",
            f"company={DEMO_COMPANY_ID}",
            f"campaign created={int(created_campaign)}",
            f"chain created={int(created_chain)}",
            f"admin token={plaintext}",
        )


if __name__ == "__main__":
    main()
