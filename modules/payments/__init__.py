"""
Payments package.

Типы контракта платёжного провайдера хоста и общая ошибка провайдера.
Адаптеры живут в ``modules.payments.providers``.

Обычно используем так:
    from modules.payments import ProviderError, PaymentProviderInput
    from modules.payments.providers import get_provider
"""

from __future__ import annotations
from typing import Any, Dict, Literal, TypedDict

# Состояния платёжной сессии хоста
PaymentSessionStatus = Literal["pending", "authorized", "captured", "canceled", "error"]

PENDING: PaymentSessionStatus = "pending"
AUTHORIZED: PaymentSessionStatus = "authorized"
CAPTURED: PaymentSessionStatus = "captured"
CANCELED: PaymentSessionStatus = "canceled"
ERROR: PaymentSessionStatus = "error"

SESSION_STATUSES = (PENDING, AUTHORIZED, CAPTURED, CANCELED, ERROR)

WebhookAction = Literal["authorized", "captured", "failed", "not_supported"]


class PaymentProviderInput(TypedDict, total=False):
    amount: Any
    currency_code: str
    data: Dict[str, Any]
    context: Dict[str, Any]


class PaymentProviderOutput(TypedDict, total=False):
    id: str
    status: PaymentSessionStatus
    data: Dict[str, Any]


class WebhookActionData(TypedDict):
    session_id: str
    amount: int


class WebhookActionResult(TypedDict, total=False):
    action: WebhookAction
    data: WebhookActionData


class ProviderWebhookPayload(TypedDict, total=False):
    data: Dict[str, Any]
    raw_data: Any
    headers: Dict[str, str]


class ProviderError(Exception):
    """Исключение уровня платёжного провайдера/сервиса."""


__all__ = [
    "PaymentSessionStatus",
    "PENDING",
    "AUTHORIZED",
    "CAPTURED",
    "CANCELED",
    "ERROR",
    "SESSION_STATUSES",
    "WebhookAction",
    "PaymentProviderInput",
    "PaymentProviderOutput",
    "WebhookActionData",
    "WebhookActionResult",
    "ProviderWebhookPayload",
    "ProviderError",
]
