"""Integration tests for the connection test endpoint."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.admin_connection import router
from conftest import token_body
from modules.payments.providers import pesapal
from shared.config.store import PesapalConfig, save_config

URL = "/admin/custom/pesapal/test"
TOKEN = "/api/Auth/RequestToken"


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(router)
    return TestClient(app)


def test_missing_credentials(client, fake_pesapal):
    response = client.post(URL, json={"config": {"consumer_key": "ck", "environment": "sandbox"}})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Consumer key and consumer secret are required"}
    assert fake_pesapal.calls == []


def test_successful_connection(client, fake_pesapal):
    body = token_body("tok-1")
    fake_pesapal.add("POST", TOKEN, body)

    response = client.post(
        URL, json={"config": {"consumer_key": "ck", "consumer_secret": "cs", "environment": "live"}}
    )

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Successfully connected to Pesapal live environment",
        "token_expires": body["expiryDate"],
    }
    assert fake_pesapal.calls[0]["url"] == "https://pay.pesapal.com/v3/api/Auth/RequestToken"


def test_rejected_credentials(client, fake_pesapal):
    fake_pesapal.add(
        "POST",
        TOKEN,
        {"token": None, "error": {"code": "invalid_consumer_key_or_secret_provided", "message": ""}},
    )

    response = client.post(URL, json={"config": {"consumer_key": "ck", "consumer_secret": "bad"}})

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "message": "Authentication failed: invalid_consumer_key_or_secret_provided",
    }


def test_rejected_without_reason(client, fake_pesapal):
    fake_pesapal.add("POST", TOKEN, {"token": ""})

    response = client.post(URL, json={"config": {"consumer_key": "ck", "consumer_secret": "bad"}})
    assert response.json()["message"] == "Authentication failed: Invalid credentials"


def test_unreadable_response(client, fake_pesapal):
    fake_pesapal.add("POST", TOKEN, "<html>maintenance</html>", status=503)

    response = client.post(URL, json={"config": {"consumer_key": "ck", "consumer_secret": "cs"}})

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Failed to test connection"
    assert "503" in body["error"]


def test_masked_secret_uses_stored_secret(client, fake_pesapal):
    save_config(PesapalConfig(consumer_key="ck", consumer_secret="stored-secret"))
    fake_pesapal.add("POST", TOKEN, token_body())

    response = client.post(URL, json={"config": {"consumer_key": "ck", "consumer_secret": "****"}})

    assert response.status_code == 200
    assert fake_pesapal.calls[0]["payload"]["consumer_secret"] == "stored-secret"


def test_unexpected_error_returns_json(client, monkeypatch):
    async def bad_charset(*args, **kwargs):
        raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

    monkeypatch.setattr(pesapal, "send_request", bad_charset)

    response = client.post(URL, json={"config": {"consumer_key": "ck", "consumer_secret": "cs"}})

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Failed to test connection"
    assert "invalid start byte" in body["error"]
