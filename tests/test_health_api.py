"""Tests for health, readiness, metrics and the admin panel page."""

import pytest
from fastapi.testclient import TestClient

from api.main import app
from shared.config.store import PesapalConfig, save_config


@pytest.fixture()
def client():
    return TestClient(app)


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok", "provider": "pesapal"}


def test_livez(client):
    assert client.get("/livez").json() == {"alive": True}


def test_not_ready_without_config(client):
    assert client.get("/readyz").json() == {"ready": False, "environment": None}


def test_ready_when_enabled(client):
    save_config(PesapalConfig(consumer_key="ck", consumer_secret="cs", environment="live", enabled=True))
    assert client.get("/readyz").json() == {"ready": True, "environment": "live"}


def test_metrics_exposed(client):
    client.get("/store/pesapal/webhook")
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "pesapal_webhooks_total" in response.text


def test_admin_panel_served(client):
    response = client.get("/admin/pesapal")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "Pesapal Configuration" in response.text
    assert "/admin/custom/pesapal/config" in response.text
