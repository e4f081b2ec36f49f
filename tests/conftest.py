"""
Shared test fixtures.

Provides: isolated config file per test, a fake Pesapal API patched in
place of ``send_request``, and a ready PesapalProvider.
"""

import asyncio
import json
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

import pytest

from modules.payments import providers
from modules.payments.providers import pesapal
from shared.config import env
from shared.utils.time import utc_now


def token_body(token: str = "tok-1", expires_in: timedelta = timedelta(minutes=5)) -> Dict[str, Any]:
    expiry = (utc_now() + expires_in).strftime("%Y-%m-%dT%H:%M:%S.%f") + "1Z"
    return {
        "token": token,
        "expiryDate": expiry,
        "error": None,
        "status": "200",
        "message": "Request processed successfully",
    }


def status_body(code: Any = "1", **overrides: Any) -> Dict[str, Any]:
    body = {
        "payment_method": "MpesaKE",
        "amount": 15.0,
        "created_date": "2024-05-01T10:00:00.000",
        "confirmation_code": "SE12XYZ",
        "payment_status_description": "Completed",
        "description": "Transaction processed",
        "message": "Request processed successfully",
        "payment_account": "2547xxxx1234",
        "call_back_url": "https://shop.example.com/store/pesapal/webhook",
        "status_code": 1,
        "merchant_reference": "order_1714557600000_abc123xyz",
        "payment_status_code": code,
        "currency": "KES",
        "error": None,
        "status": "200",
    }
    body.update(overrides)
    return body


class FakePesapal:
    """Serves canned responses in place of ``pesapal.send_request``.

    Responses are registered per ``(method, path)`` where ``path`` starts
    at ``/api/``.  Several responses for one route are served in order,
    the last one repeats.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Tuple[int, Any]]] = {}
        self.calls: List[Dict[str, Any]] = []

    def add(self, method: str, path: str, body: Any, status: int = 200) -> "FakePesapal":
        self.routes.setdefault((method, path), []).append((status, body))
        return self

    def calls_to(self, path: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["path"] == path]

    async def __call__(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        payload: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[int, str]:
        # уступаем цикл, как настоящий HTTP-вызов
        await asyncio.sleep(0)
        parts = urlsplit(url)
        path = "/api/" + parts.path.split("/api/", 1)[1]
        self.calls.append(
            {
                "method": method,
                "url": url,
                "path": path,
                "query": {k: v[0] for k, v in parse_qs(parts.query).items()},
                "headers": dict(headers or {}),
                "payload": payload,
            }
        )
        responses = self.routes.get((method, path))
        if not responses:
            return 404, "not found"
        status, body = responses.pop(0) if len(responses) > 1 else responses[0]
        return status, body if isinstance(body, str) else json.dumps(body)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the config store at a temp file and drop cached providers."""
    monkeypatch.setattr(env.settings, "config_path", str(tmp_path / "pesapal-config.json"))
    monkeypatch.setattr(env.settings, "backend_url", "https://shop.example.com")
    monkeypatch.setattr(env.settings, "payment_provider", "pesapal")
    providers.reset_providers()
    yield
    providers.reset_providers()


@pytest.fixture
def fake_pesapal(monkeypatch):
    fake = FakePesapal()
    monkeypatch.setattr(pesapal, "send_request", fake)
    return fake


@pytest.fixture
def provider_options():
    return {
        "consumer_key": "ck-test",
        "consumer_secret": "cs-test",
        "environment": "sandbox",
        "currency": "KES",
        "merchant_name": "Duka Ltd",
        "ipn_url": "",
    }


@pytest.fixture
def provider(provider_options):
    return pesapal.PesapalProvider(provider_options)
