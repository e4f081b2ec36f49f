"""Tests for provider resolution and caching."""

import pytest

from modules.payments import ProviderError
from modules.payments.providers import AbstractPaymentProvider, get_provider, reset_providers
from modules.payments.providers.pesapal import PesapalProvider
from shared.config import env
from shared.config.store import PesapalConfig, save_config


def test_provider_from_explicit_options(provider_options):
    provider = get_provider(provider_options)
    assert isinstance(provider, PesapalProvider)
    assert isinstance(provider, AbstractPaymentProvider)
    assert provider.identifier == "pesapal"


def test_same_options_reuse_instance(provider_options):
    assert get_provider(provider_options) is get_provider(dict(provider_options))


def test_reset_drops_instances(provider_options):
    first = get_provider(provider_options)
    reset_providers()
    assert get_provider(provider_options) is not first


def test_stored_config_used_by_default():
    save_config(PesapalConfig(consumer_key="stored-key", consumer_secret="stored-secret", environment="live"))
    provider = get_provider()
    assert provider.options["consumer_key"] == "stored-key"
    assert provider.base_url == "https://pay.pesapal.com/v3"


def test_env_options_without_stored_config(monkeypatch):
    monkeypatch.setattr(env.settings, "consumer_key", "env-key")
    monkeypatch.setattr(env.settings, "consumer_secret", "env-secret")
    provider = get_provider()
    assert provider.options["consumer_key"] == "env-key"


def test_missing_credentials():
    with pytest.raises(ProviderError):
        get_provider({"consumer_key": "", "consumer_secret": ""})


def test_unknown_provider(monkeypatch, provider_options):
    monkeypatch.setattr(env.settings, "payment_provider", "paypal")
    with pytest.raises(ProviderError, match="unknown PAYMENT_PROVIDER=paypal"):
        get_provider(provider_options)
