"""Tests for the healthcheck endpoint."""

from __future__ import annotations


def test_health_endpoint_reports_database(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "database": "ok"}


def test_health_endpoint_needs_no_token(client):
    response = client.get("/api/health", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 200
