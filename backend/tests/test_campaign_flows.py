"""Tests for assigning flow chains to campaigns and keeping one default."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from backend.approvalflow.campaigns.assignments import detach_flow, promote_default
from backend.approvalflow.errors import IntegrityError
from backend.approvalflow.extensions import db
from backend.approvalflow.models import CampaignFlow

COMPANY_ID = "company-acme"
OTHER_COMPANY_ID = "company-globex"


@pytest.fixture()
def assign(app):
    def factory(campaign_id: str, chain_id: str, *, is_default: bool = False, age: int = 0) -> str:
        created = datetime(2024, 1, 1) + timedelta(minutes=age)
        assignment = CampaignFlow(
            campaign_id=campaign_id,
            flow_chain_id=chain_id,
            is_default=is_default,
            created_at=created,
            updated_at=created,
        )
        db.session.add(assignment)
        db.session.commit()
        return assignment.id

    return factory


def _flows(campaign_id: str) -> list[tuple[str, bool]]:
    db.session.expire_all()
    return [
        (flow.id, flow.is_default)
        for flow in CampaignFlow.query.filter_by(campaign_id=campaign_id)
        .order_by(CampaignFlow.created_at)
        .all()
    ]


def test_detaching_default_promotes_remaining(client, member_headers, make_campaign, make_chain, assign):
    campaign_id = make_campaign()
    a = assign(campaign_id, make_chain("A"), is_default=True, age=0)
    b = assign(campaign_id, make_chain("B"), age=1)

    response = client.delete(f"/api/campaigns/{campaign_id}/flows/{a}", headers=member_headers)

    assert response.status_code == 200
    body = response.get_json()
    assert body == {"success": True, "message": "Flow removed from campaign successfully"}
    assert _flows(campaign_id) == [(b, True)]


def test_detaching_only_assignment_leaves_none(client, member_headers, make_campaign, make_chain, assign):
    campaign_id = make_campaign()
    only = assign(campaign_id, make_chain(), is_default=True)

    response = client.delete(f"/api/campaigns/{campaign_id}/flows/{only}", headers=member_headers)

    assert response.status_code == 200
    assert _flows(campaign_id) == []


def test_detaching_non_default_keeps_default(client, member_headers, make_campaign, make_chain, assign):
    campaign_id = make_campaign()
    a = assign(campaign_id, make_chain("A"), is_default=True, age=0)
    b = assign(campaign_id, make_chain("B"), age=1)

    client.delete(f"/api/campaigns/{campaign_id}/flows/{b}", headers=member_headers)

    assert _flows(campaign_id) == [(a, True)]


def test_promotion_picks_oldest_assignment(app, make_campaign, make_chain, assign):
    campaign_id = make_campaign()
    default = assign(campaign_id, make_chain("Default"), is_default=True, age=5)
    newest = assign(campaign_id, make_chain("Newest"), age=9)
    oldest = assign(campaign_id, make_chain("Oldest"), age=1)

    detach_flow(campaign_id, default, COMPANY_ID)

    assert _flows(campaign_id) == [(oldest, True), (newest, False)]


def test_promote_default_is_noop_when_default_exists(app, make_campaign, make_chain, assign):
    campaign_id = make_campaign()
    assign(campaign_id, make_chain("A"), age=0)
    current = assign(campaign_id, make_chain("B"), is_default=True, age=1)

    assert promote_default(campaign_id) is None
    db.session.commit()
    assert [flow_id for flow_id, is_default in _flows(campaign_id) if is_default] == [current]


def test_detach_rejects_assignment_of_other_campaign(
    client, member_headers, make_campaign, make_chain, assign
):
    first = make_campaign("First")
    second = make_campaign("Second")
    foreign = assign(second, make_chain(), is_default=True)

    response = client.delete(f"/api/campaigns/{first}/flows/{foreign}", headers=member_headers)

    assert response.status_code == 400
    body = response.get_json()
    assert body["error"] == "integrity_error"
    assert body["message"] == "Flow does not belong to this campaign"
    assert _flows(second) == [(foreign, True)]

    with pytest.raises(IntegrityError):
        detach_flow(first, foreign, COMPANY_ID)


def test_detach_checks_campaign_and_assignment(
    client, member_headers, make_campaign, make_chain, assign
):
    foreign_campaign = make_campaign(company_id=OTHER_COMPANY_ID)
    foreign_assignment = assign(foreign_campaign, make_chain(company_id=OTHER_COMPANY_ID))
    own_campaign = make_campaign()

    forbidden = client.delete(
        f"/api/campaigns/{foreign_campaign}/flows/{foreign_assignment}", headers=member_headers
    )
    assert forbidden.status_code == 403

    missing_campaign = client.delete(
        f"/api/campaigns/missing/flows/{foreign_assignment}", headers=member_headers
    )
    assert missing_campaign.status_code == 404
    assert missing_campaign.get_json()["message"] == "Campaign not found"

    missing_assignment = client.delete(
        f"/api/campaigns/{own_campaign}/flows/missing", headers=member_headers
    )
    assert missing_assignment.status_code == 404
    assert missing_assignment.get_json()["message"] == "Flow assignment not found"

    assert len(_flows(foreign_campaign)) == 1


def test_first_attached_flow_becomes_default(client, admin_headers, make_campaign, make_chain):
    campaign_id = make_campaign()
    first_chain = make_chain("First")
    second_chain = make_chain("Second")

    first = client.post(
        f"/api/campaigns/{campaign_id}/flows",
        json={"flowChainId": first_chain},
        headers=admin_headers,
    )
    second = client.post(
        f"/api/campaigns/{campaign_id}/flows",
        json={"flowChainId": second_chain},
        headers=admin_headers,
    )

    assert first.status_code == 201
    assert first.get_json()["data"]["isDefault"] is True
    assert first.get_json()["data"]["flowChain"]["name"] == "First"
    assert first.get_json()["data"]["createdAt"].endswith("Z")
    assert second.get_json()["data"]["isDefault"] is False


def test_attaching_as_default_clears_previous(client, admin_headers, make_campaign, make_chain, assign):
    campaign_id = make_campaign()
    old = assign(campaign_id, make_chain("Old"), is_default=True)

    response = client.post(
        f"/api/campaigns/{campaign_id}/flows",
        json={"flowChainId": make_chain("New"), "isDefault": True},
        headers=admin_headers,
    )

    assert response.status_code == 201
    new = response.get_json()["data"]["id"]
    assert dict(_flows(campaign_id)) == {old: False, new: True}


def test_attach_rejects_duplicates_and_foreign_chains(
    client, admin_headers, member_headers, make_campaign, make_chain, assign
):
    campaign_id = make_campaign()
    chain_id = make_chain()
    assign(campaign_id, chain_id, is_default=True)

    duplicate = client.post(
        f"/api/campaigns/{campaign_id}/flows", json={"flowChainId": chain_id}, headers=admin_headers
    )
    assert duplicate.status_code == 409

    foreign = client.post(
        f"/api/campaigns/{campaign_id}/flows",
        json={"flowChainId": make_chain(company_id=OTHER_COMPANY_ID)},
        headers=admin_headers,
    )
    assert foreign.status_code == 400
    assert foreign.get_json()["error"] == "integrity_error"

    missing = client.post(
        f"/api/campaigns/{campaign_id}/flows", json={"flowChainId": "missing"}, headers=admin_headers
    )
    assert missing.status_code == 404

    no_chain = client.post(f"/api/campaigns/{campaign_id}/flows", json={}, headers=admin_headers)
    assert no_chain.status_code == 400

    as_member = client.post(
        f"/api/campaigns/{campaign_id}/flows",
        json={"flowChainId": make_chain("Other")},
        headers=member_headers,
    )
    assert as_member.status_code == 403
    assert len(_flows(campaign_id)) == 1


def test_set_default_moves_flag(client, member_headers, make_campaign, make_chain, assign):
    campaign_id = make_campaign()
    a = assign(campaign_id, make_chain("A"), is_default=True, age=0)
    b = assign(campaign_id, make_chain("B"), age=1)

    response = client.put(
        f"/api/campaigns/{campaign_id}/flows/{b}", json={"isDefault": True}, headers=member_headers
    )

    assert response.status_code == 200
    assert response.get_json()["data"]["isDefault"] is True
    assert _flows(campaign_id) == [(a, False), (b, True)]

    invalid = client.put(
        f"/api/campaigns/{campaign_id}/flows/{b}", json={"isDefault": "yes"}, headers=member_headers
    )
    assert invalid.status_code == 400


def test_list_campaign_flows_puts_default_first(
    client, admin_headers, make_campaign, make_chain, assign
):
    campaign_id = make_campaign("Autumn")
    plain = assign(campaign_id, make_chain("Plain"), age=5)
    default = assign(campaign_id, make_chain("Default"), is_default=True, age=0)

    response = client.get(f"/api/campaigns/{campaign_id}/flows", headers=admin_headers)

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["campaignName"] == "Autumn"
    assert data["totalFlows"] == 2
    assert data["defaultFlow"]["id"] == default
    assert [flow["id"] for flow in data["flows"]] == [default, plain]
