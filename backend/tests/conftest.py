from __future__ import annotations

import pathlib
import secrets
import sys
from collections.abc import Callable

import pytest
from sqlalchemy.pool import StaticPool

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _load_dependencies():
    from approvalflow import Config, create_app
    from backend.approvalflow.extensions import db

    return Config, create_app, db


ConfigBase, create_app, db = _load_dependencies()

COMPANY_ID = "company-acme"
OTHER_COMPANY_ID = "company-globex"


class TestConfig(ConfigBase):
    TESTING = True
    APP_ENV = "development"
    SQLALCHEMY_DATABASE_URI = "sqlite+pysqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "poolclass": StaticPool,
        "connect_args": {"check_same_thread": False},
    }
    CORS_ALLOWED_ORIGINS = "http://localhost"
    RATELIMIT_ENABLED = False


@pytest.fixture(scope="module")
def app():
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    yield app
    db.session.remove()
    ctx.pop()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def cleanup_tables(app):
    from backend.approvalflow.models import (
        ApiToken,
        Campaign,
        CampaignFlow,
        FlowChain,
        FlowStage,
        FlowStep,
        FlowStepRole,
        FlowTransition,
        Role,
        StageTransition,
    )

    yield

    db.session.rollback()
    for model in (
        StageTransition,
        FlowTransition,
        FlowStepRole,
        FlowStep,
        FlowStage,
        CampaignFlow,
        FlowChain,
        Campaign,
        Role,
        ApiToken,
    ):
        db.session.query(model).delete()
    db.session.commit()


@pytest.fixture()
def auth_header_factory(app):
    from backend.approvalflow.models.auth import ApiToken
    from backend.approvalflow.utils.auth import hash_token

    def factory(
        role: str = "admin", company_id: str = COMPANY_ID, name: str | None = None
    ) -> dict[str, str]:
        token_value = secrets.token_urlsafe(16)
        token = ApiToken(
            name=name or f"Test {role.title()} Token",
            role=role,
            token_hash=hash_token(token_value),
            company_id=company_id,
        )
        db.session.add(token)
        db.session.commit()
        return {"Authorization": f"Bearer {token_value}"}

    return factory


@pytest.fixture()
def admin_headers(auth_header_factory: Callable[..., dict[str, str]]):
    return auth_header_factory(role="admin")


@pytest.fixture()
def member_headers(auth_header_factory: Callable[..., dict[str, str]]):
    return auth_header_factory(role="member")


@pytest.fixture()
def make_chain(app):
    from backend.approvalflow.models.flowchain import FlowChain

    def factory(name: str = "Approval", company_id: str = COMPANY_ID) -> str:
        chain = FlowChain(company_id=company_id, name=name)
        db.session.add(chain)
        db.session.commit()
        return chain.id

    return factory


@pytest.fixture()
def make_campaign(app):
    from backend.approvalflow.models.directory import Campaign

    def factory(name: str = "Spring Launch", company_id: str = COMPANY_ID) -> str:
        campaign = Campaign(company_id=company_id, name=name)
        db.session.add(campaign)
        db.session.commit()
        return campaign.id

    return factory


@pytest.fixture()
def draft_review_definition() -> dict:
    """Two stages where the first step points forward at a step declared later."""

    return {
        "name": "Draft and Review",
        "description": "Write, then review",
        "stages": [
            {
                "name": "Draft",
                "order": 0,
                "steps": [
                    {
                        "name": "Write",
                        "orderInStage": 0,
                        "transitions": [{"toStepName": "Review", "condition": "always"}],
                    }
                ],
                "transitions": [{"toStageName": "Review", "condition": "approved"}],
            },
            {
                "name": "Review",
                "order": 1,
                "steps": [{"name": "Review", "orderInStage": 0, "transitions": []}],
            },
        ],
    }
