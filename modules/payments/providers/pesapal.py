# modules/payments/providers/pesapal.py
from __future__ import annotations

import asyncio
import json
import secrets
import string
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import quote

import aiohttp

from shared.config import env
from shared.utils.logging import get_logger
from shared.utils.metrics import pesapal_api_requests_total, pesapal_token_requests_total
from shared.utils.time import now_ms, parse_iso8601, utc_now

from .. import (
    AUTHORIZED,
    CANCELED,
    CAPTURED,
    ERROR,
    PENDING,
    PaymentProviderInput,
    PaymentProviderOutput,
    PaymentSessionStatus,
    ProviderError,
    ProviderWebhookPayload,
    WebhookAction,
    WebhookActionResult,
)
from . import AbstractPaymentProvider

log = get_logger("pesapal.payments.providers.pesapal")

LIVE_BASE_URL = "https://pay.pesapal.com/v3"
SANDBOX_BASE_URL = "https://cybqa.pesapal.com/pesapalv3"

WEBHOOK_PATH = "/store/pesapal/webhook"

JSON_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

# Токен Pesapal живёт 5 минут; используем, если expiryDate не разобрать
TOKEN_FALLBACK_TTL = timedelta(minutes=5)

# Числовой код статуса Pesapal -> состояние сессии хоста
STATUS_MAP: Dict[str, PaymentSessionStatus] = {
    "0": PENDING,
    "1": AUTHORIZED,
    "2": CAPTURED,
    "3": CANCELED,
}

# status_code из GetTransactionStatus: 0 INVALID, 1 COMPLETED, 2 FAILED, 3 REVERSED
TRANSACTION_STATUS_MAP: Dict[str, PaymentSessionStatus] = {
    "0": ERROR,
    "1": CAPTURED,
    "2": ERROR,
    "3": CANCELED,
}

WEBHOOK_ACTIONS: Dict[str, WebhookAction] = {
    AUTHORIZED: "authorized",
    CAPTURED: "captured",
    ERROR: "failed",
}

_REFERENCE_ALPHABET = string.ascii_lowercase + string.digits


def base_url_for(environment: Optional[str]) -> str:
    return LIVE_BASE_URL if environment == "live" else SANDBOX_BASE_URL


def map_status(code: Any) -> PaymentSessionStatus:
    """Map a Pesapal numeric status code to a payment session status.

    Unknown or missing codes map to ``"error"``.
    """
    if code is None or isinstance(code, bool):
        return ERROR
    return STATUS_MAP.get(str(code).strip(), ERROR)


def new_merchant_reference() -> str:
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(9))
    return f"order_{now_ms()}_{suffix}"


def to_major_units(amount: Any) -> float:
    """Convert an amount in minor units (cents) to the major unit."""
    try:
        return float(Decimal(str(amount)) / 100)
    except (InvalidOperation, ValueError) as exc:
        raise ProviderError(f"invalid amount: {amount!r}") from exc


def to_minor_units(amount: Any) -> int:
    try:
        return int((Decimal(str(amount or 0)) * 100).to_integral_value())
    except (InvalidOperation, ValueError) as exc:
        raise ProviderError(f"invalid amount: {amount!r}") from exc


def error_text(data: Mapping[str, Any]) -> str:
    """Human readable error from a Pesapal response body."""
    err = data.get("error")
    if isinstance(err, Mapping):
        return str(err.get("message") or err.get("code") or err.get("error_type") or "")
    return str(data.get("message") or err or "")


def build_billing_address(customer: Mapping[str, Any], billing: Mapping[str, Any]) -> Dict[str, str]:
    return {
        "email_address": customer.get("email") or billing.get("email") or "customer@example.com",
        "phone_number": billing.get("phone") or customer.get("phone") or "",
        "country_code": str(billing.get("country_code") or "KE").upper(),
        "first_name": billing.get("first_name") or customer.get("first_name") or "Customer",
        "middle_name": "",
        "last_name": billing.get("last_name") or customer.get("last_name") or "",
        "line_1": billing.get("address_1") or "",
        "line_2": billing.get("address_2") or "",
        "city": billing.get("city") or "",
        "state": billing.get("province") or "",
        "postal_code": billing.get("postal_code") or "",
        "zip_code": billing.get("postal_code") or "",
    }


async def send_request(
    method: str,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    payload: Optional[Dict[str, Any]] = None,
    timeout: Optional[float] = None,
) -> Tuple[int, str]:
    """Send one HTTP request to Pesapal and return ``(status, body text)``."""
    client_timeout = aiohttp.ClientTimeout(total=timeout or env.settings.http_timeout)
    async with aiohttp.ClientSession(timeout=client_timeout) as sess:
        async with sess.request(method, url, json=payload, headers=headers or JSON_HEADERS) as resp:
            text = await resp.text()
            return resp.status, text


async def request_token(environment: Optional[str], consumer_key: str, consumer_secret: str) -> Dict[str, Any]:
    """
    POST /api/Auth/RequestToken.
    Возвращает разобранный JSON как есть: {token, expiryDate, error?, message?}.
    """
    url = f"{base_url_for(environment)}/api/Auth/RequestToken"
    status, text = await send_request(
        "POST",
        url,
        headers=JSON_HEADERS,
        payload={"consumer_key": consumer_key, "consumer_secret": consumer_secret},
    )
    try:
        data = json.loads(text)
    except ValueError:
        log.error("pesapal token non-JSON response: %s %s", status, text[:500])
        raise ProviderError(f"pesapal invalid response (status={status})")
    if not isinstance(data, dict):
        raise ProviderError(f"pesapal invalid response (status={status})")
    return data


def resolve_status(resp: Mapping[str, Any]) -> PaymentSessionStatus:
    """Session status of a GetTransactionStatus body.

    ``payment_status_code`` wins; when it is empty the transaction
    ``status_code`` is read through its own table.
    """
    code = resp.get("payment_status_code")
    if code is not None and str(code).strip() != "":
        return map_status(code)
    fallback = resp.get("status_code")
    if fallback is None or isinstance(fallback, bool):
        return ERROR
    return TRANSACTION_STATUS_MAP.get(str(fallback).strip(), ERROR)


def _is_active(ipn: Mapping[str, Any]) -> bool:
    state = ipn.get("ipn_status_description") or ipn.get("status") or ""
    return str(state).lower() == "active"


class PesapalProvider(AbstractPaymentProvider):
    """Pesapal API 3.0 adapter for the host payment contract.

    Pesapal has no separate capture or cancel step: a completed payment
    is already captured, and cancel only marks the session locally.
    """

    identifier = "pesapal"

    def __init__(self, options: Mapping[str, Any], *, backend_url: Optional[str] = None) -> None:
        opts = dict(options or {})
        if not opts.get("consumer_key") or not opts.get("consumer_secret"):
            raise ProviderError("Pesapal consumer_key and consumer_secret are required")
        self.options = opts
        self._backend_url = backend_url
        self._token: Optional[str] = None
        self._token_expiry: Optional[datetime] = None
        self._token_lock = asyncio.Lock()
        self._ipn_id: Optional[str] = None
        self._ipn_lock = asyncio.Lock()

    @property
    def environment(self) -> str:
        return self.options.get("environment") or "sandbox"

    @property
    def base_url(self) -> str:
        return base_url_for(self.environment)

    @property
    def callback_url(self) -> str:
        if self.options.get("ipn_url"):
            return self.options["ipn_url"]
        backend_url = (self._backend_url or env.settings.backend_url).rstrip("/")
        if not backend_url:
            raise ProviderError("ipn_url or BACKEND_URL must be set for Pesapal notifications")
        return f"{backend_url}{WEBHOOK_PATH}"

    # --- auth ---

    def _token_valid(self) -> bool:
        return bool(self._token and self._token_expiry and utc_now() < self._token_expiry)

    async def _get_auth_token(self) -> str:
        if self._token_valid():
            return self._token  # type: ignore[return-value]

        async with self._token_lock:
            # мог обновить конкурентный вызов, пока ждали lock
            if self._token_valid():
                return self._token  # type: ignore[return-value]
            try:
                data = await request_token(
                    self.environment, self.options["consumer_key"], self.options["consumer_secret"]
                )
                if data.get("error") or not data.get("token"):
                    raise ProviderError(f"Pesapal authentication failed: {error_text(data)}")
            except Exception as exc:
                pesapal_token_requests_total.labels(outcome="error").inc()
                log.error("Failed to get Pesapal auth token: %s", exc)
                raise ProviderError("Failed to authenticate with Pesapal") from exc

            pesapal_token_requests_total.labels(outcome="ok").inc()
            self._token = str(data["token"])
            try:
                self._token_expiry = parse_iso8601(str(data.get("expiryDate") or ""))
            except ValueError:
                log.warning("pesapal token: unparseable expiryDate=%r", data.get("expiryDate"))
                self._token_expiry = utc_now() + TOKEN_FALLBACK_TTL
            log.debug("pesapal token refreshed, expires at %s", self._token_expiry.isoformat())
            return self._token

    async def _request(
        self,
        endpoint: str,
        *,
        method: str = "GET",
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        token = await self._get_auth_token()
        headers = {**JSON_HEADERS, "Authorization": f"Bearer {token}"}
        name = endpoint.split("?", 1)[0].rsplit("/", 1)[-1]

        status, text = await send_request(method, f"{self.base_url}{endpoint}", headers=headers, payload=payload)
        if not 200 <= status < 300:
            pesapal_api_requests_total.labels(endpoint=name, outcome="error").inc()
            raise ProviderError(f"Pesapal API error: {status} {text}")
        try:
            data = json.loads(text)
        except ValueError:
            pesapal_api_requests_total.labels(endpoint=name, outcome="error").inc()
            log.error("pesapal %s non-JSON response: %s %s", name, status, text[:500])
            raise ProviderError(f"Pesapal API error: {status} invalid JSON")
        pesapal_api_requests_total.labels(endpoint=name, outcome="ok").inc()
        return data

    async def _get_transaction_status(self, order_tracking_id: Any) -> Dict[str, Any]:
        if not order_tracking_id:
            raise ProviderError("order_tracking_id is missing")
        resp = await self._request(
            f"/api/Transactions/GetTransactionStatus?orderTrackingId={quote(str(order_tracking_id), safe='')}"
        )
        if not isinstance(resp, dict):
            raise ProviderError("Pesapal API error: unexpected transaction status response")
        return resp

    async def _get_ipn_id(self) -> str:
        """Return the IPN id for our callback URL, registering it once if needed."""
        if self._ipn_id:
            return self._ipn_id

        async with self._ipn_lock:
            if self._ipn_id:
                return self._ipn_id
            try:
                url = self.callback_url
                ipns = await self._request("/api/URLSetup/GetIpnList")
                existing = next(
                    (
                        ipn
                        for ipn in (ipns if isinstance(ipns, list) else [])
                        if isinstance(ipn, dict) and ipn.get("url") == url and _is_active(ipn)
                    ),
                    None,
                )
                if existing is not None:
                    ipn_id = existing.get("ipn_id")
                else:
                    response = await self._request(
                        "/api/URLSetup/RegisterIPN",
                        method="POST",
                        payload={"url": url, "ipn_notification_type": "GET"},
                    )
                    ipn_id = response.get("ipn_id") if isinstance(response, dict) else None
                    log.info("pesapal IPN registered: url=%s ipn_id=%s", url, ipn_id)
                if not ipn_id:
                    raise ProviderError("Pesapal returned no ipn_id")
            except Exception as exc:
                log.error("Failed to get/register IPN: %s", exc)
                raise ProviderError("Failed to setup IPN registration") from exc

            self._ipn_id = str(ipn_id)
            return self._ipn_id

    # --- host contract ---

    async def initiate_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput:
        currency_code = input.get("currency_code") or self.options.get("currency") or "KES"
        amount = input.get("amount")
        context = input.get("context") or {}
        try:
            merchant_reference = new_merchant_reference()
            order = {
                "id": merchant_reference,
                "currency": currency_code.upper(),
                "amount": to_major_units(amount),
                "description": f"Payment for order {merchant_reference}",
                "callback_url": self.callback_url,
                "notification_id": await self._get_ipn_id(),
                "billing_address": build_billing_address(
                    context.get("customer") or {}, context.get("billing_address") or {}
                ),
            }
            response = await self._request("/api/Transactions/SubmitOrderRequest", method="POST", payload=order)
            if not isinstance(response, dict) or response.get("error"):
                raise ProviderError(
                    f"Pesapal order submission failed: {error_text(response) if isinstance(response, dict) else response}"
                )
        except Exception as exc:
            log.error("Failed to initiate Pesapal payment: %s", exc)
            raise ProviderError("Failed to initiate payment") from exc

        tracking_id = response.get("order_tracking_id")
        log.info(
            "pesapal order submitted: merchant_reference=%s",
            response.get("merchant_reference"),
            extra={"corr_id": tracking_id},
        )
        return {
            "id": tracking_id,
            "data": {
                "order_tracking_id": tracking_id,
                "merchant_reference": response.get("merchant_reference"),
                "redirect_url": response.get("redirect_url"),
                "amount": amount,
                "currency": currency_code,
                "status": PENDING,
            },
        }

    async def update_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput:
        # Pesapal не поддерживает изменение заказа
        return {"data": input.get("data") or {}}

    async def authorize_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput:
        data = dict(input.get("data") or {})
        try:
            resp = await self._get_transaction_status(data.get("order_tracking_id"))
        except Exception as exc:
            log.error("Failed to authorize Pesapal payment: %s", exc, extra={"corr_id": data.get("order_tracking_id")})
            raise ProviderError("Failed to authorize payment") from exc

        status = resolve_status(resp)
        return {
            "status": status,
            "data": {
                **data,
                "payment_status": resp.get("payment_status_description"),
                "confirmation_code": resp.get("confirmation_code"),
                "payment_method": resp.get("payment_method"),
                "payment_account": resp.get("payment_account"),
                "status": status,
            },
        }

    async def capture_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput:
        # Отдельного capture нет: оплата списывается при авторизации
        data = dict(input.get("data") or {})
        try:
            resp = await self._get_transaction_status(data.get("order_tracking_id"))
        except Exception as exc:
            log.error("Failed to capture Pesapal payment: %s", exc, extra={"corr_id": data.get("order_tracking_id")})
            raise ProviderError("Failed to capture payment") from exc

        return {
            "data": {
                **data,
                "payment_status": resp.get("payment_status_description"),
                "confirmation_code": resp.get("confirmation_code"),
                "status": CAPTURED,
            },
        }

    async def refund_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput:
        data = dict(input.get("data") or {})
        amount = input.get("amount")
        confirmation_code = data.get("confirmation_code")
        try:
            if not confirmation_code:
                raise ProviderError("confirmation_code is missing")
            refund = {
                "confirmation_code": confirmation_code,
                "amount": to_major_units(amount),
                "username": self.options.get("merchant_name") or "merchant",
                "remarks": f"Refund for payment {confirmation_code}",
            }
            response = await self._request("/api/Transactions/RefundRequest", method="POST", payload=refund)
            if isinstance(response, dict) and str(response.get("status", "200")) != "200":
                raise ProviderError(f"Pesapal refund rejected: {error_text(response)}")
        except Exception as exc:
            log.error("Failed to refund Pesapal payment: %s", exc, extra={"corr_id": data.get("order_tracking_id")})
            raise ProviderError("Failed to refund payment") from exc

        log.info("pesapal refund requested: confirmation_code=%s amount=%s", confirmation_code, amount)
        return {
            "data": {
                **data,
                "refund_status": "refunded",
                "refund_amount": amount,
                "refund_response": response,
            },
        }

    async def cancel_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput:
        # Явной отмены у Pesapal нет, просто помечаем сессию
        return {
            "data": {
                **(input.get("data") or {}),
                "status": CANCELED,
                "canceled_at": utc_now().isoformat(),
            },
        }

    async def delete_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput:
        return {"data": input.get("data") or {}}

    async def retrieve_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput:
        data = dict(input.get("data") or {})
        try:
            resp = await self._get_transaction_status(data.get("order_tracking_id"))
        except Exception as exc:
            log.error("Failed to retrieve Pesapal payment: %s", exc, extra={"corr_id": data.get("order_tracking_id")})
            raise ProviderError("Failed to retrieve payment") from exc

        return {
            "data": {
                **data,
                "payment_status": resp.get("payment_status_description"),
                "confirmation_code": resp.get("confirmation_code"),
                "payment_method": resp.get("payment_method"),
                "payment_account": resp.get("payment_account"),
                "amount": resp.get("amount"),
                "currency": resp.get("currency"),
                "created_date": resp.get("created_date"),
            },
        }

    async def get_payment_status(self, input: PaymentProviderInput) -> PaymentProviderOutput:
        data = dict(input.get("data") or {})
        try:
            resp = await self._get_transaction_status(data.get("order_tracking_id"))
        except Exception as exc:
            # опрос статуса не должен ронять хост: считаем платёж ожидающим
            log.error("Failed to get Pesapal payment status: %s", exc, extra={"corr_id": data.get("order_tracking_id")})
            return {"status": PENDING, "data": input.get("data") or {}}

        status = resolve_status(resp)
        return {
            "status": status,
            "data": {
                **data,
                "payment_status": resp.get("payment_status_description"),
                "confirmation_code": resp.get("confirmation_code"),
                "status": status,
            },
        }

    async def get_webhook_action_and_data(self, payload: ProviderWebhookPayload) -> WebhookActionResult:
        webhook_data = (payload or {}).get("data") or {}
        tracking_id = webhook_data.get("OrderTrackingId")
        if not tracking_id:
            return {"action": "not_supported"}

        try:
            resp = await self._get_transaction_status(tracking_id)
            status = resolve_status(resp)
            action: WebhookAction = WEBHOOK_ACTIONS.get(status, "not_supported")
            result: WebhookActionResult = {
                "action": action,
                "data": {
                    "session_id": str(webhook_data.get("OrderMerchantReference")),
                    "amount": to_minor_units(resp.get("amount")),
                },
            }
        except Exception as exc:
            log.error("Failed to process Pesapal webhook: %s", exc, extra={"corr_id": tracking_id})
            return {"action": "failed"}

        log.info("pesapal webhook translated: status=%s action=%s", status, action, extra={"corr_id": tracking_id})
        return result


__all__ = [
    "PesapalProvider",
    "STATUS_MAP",
    "TRANSACTION_STATUS_MAP",
    "base_url_for",
    "map_status",
    "request_token",
    "resolve_status",
    "send_request",
]
