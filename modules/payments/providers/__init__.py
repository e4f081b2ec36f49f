# modules/payments/providers/__init__.py
from __future__ import annotations

import abc
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Union

from shared.config import env
from shared.config.store import PesapalConfig, load_config

from .. import (
    PaymentProviderInput,
    PaymentProviderOutput,
    ProviderError,
    ProviderWebhookPayload,
    WebhookActionResult,
)


class AbstractPaymentProvider(abc.ABC):
    """Контракт платёжного провайдера хоста.

    Каждый метод получает вход хоста (amount, currency_code, data,
    context) и возвращает ``{"data": ...}``; методы со статусом
    дополнительно возвращают ``status`` сессии.
    """

    identifier: ClassVar[str] = ""

    @abc.abstractmethod
    async def initiate_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput: ...

    @abc.abstractmethod
    async def update_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput: ...

    @abc.abstractmethod
    async def authorize_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput: ...

    @abc.abstractmethod
    async def capture_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput: ...

    @abc.abstractmethod
    async def refund_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput: ...

    @abc.abstractmethod
    async def cancel_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput: ...

    @abc.abstractmethod
    async def delete_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput: ...

    @abc.abstractmethod
    async def retrieve_payment(self, input: PaymentProviderInput) -> PaymentProviderOutput: ...

    @abc.abstractmethod
    async def get_payment_status(self, input: PaymentProviderInput) -> PaymentProviderOutput: ...

    @abc.abstractmethod
    async def get_webhook_action_and_data(self, payload: ProviderWebhookPayload) -> WebhookActionResult: ...


ProviderOptions = Union[PesapalConfig, Mapping[str, Any], None]

# Экземпляры кэшируем по набору опций, чтобы токен жил между запросами
_instances: Dict[Tuple[Any, ...], AbstractPaymentProvider] = {}


def _resolve_options(options: ProviderOptions) -> Dict[str, Any]:
    if isinstance(options, PesapalConfig):
        return options.provider_options()
    if options is not None:
        return dict(options)
    stored = load_config()
    if stored is not None:
        return stored.provider_options()
    return env.settings.provider_options()


def get_provider(options: ProviderOptions = None) -> AbstractPaymentProvider:
    """
    Возвращает адаптер провайдера по ENV PAYMENT_PROVIDER.
    Без ``options`` берём сохранённую конфигурацию, затем ENV.
    Добавление новых провайдеров = новая ветка elif и импорт.
    """
    name = env.settings.payment_provider
    opts = _resolve_options(options)
    key = (name,) + tuple(sorted((k, str(v)) for k, v in opts.items()))
    cached = _instances.get(key)
    if cached is not None:
        return cached

    if name == "pesapal":
        from .pesapal import PesapalProvider  # локальный импорт
        provider: AbstractPaymentProvider = PesapalProvider(opts)
    else:
        raise ProviderError(f"unknown PAYMENT_PROVIDER={name}")

    _instances[key] = provider
    return provider


def reset_providers() -> None:
    """Drop cached provider instances (after the stored config changes)."""
    _instances.clear()


__all__ = ["AbstractPaymentProvider", "get_provider", "reset_providers"]
