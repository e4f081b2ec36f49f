"""Centralized environment configuration for the Pesapal gateway.

This module centralizes loading of process-level settings.  It merges
values from the process environment (``os.environ``, optionally seeded
from a ``.env`` file by python-dotenv) with an optional YAML file
located at ``configs/app.yaml`` (override with ``APP_CONFIG_PATH``).
Environment variables win over YAML values.  Aliases for commonly used
variables (e.g. ``PESAPAL_CONSUMER_KEY`` vs ``PESAPAL_KEY``) are
supported.

Usage::

    from shared.config import env
    timeout = env.settings.http_timeout

    # If you need to reload settings (e.g. after changing environment
    # variables), call reload_settings():
    env.reload_settings()

Gateway credentials normally live in the JSON record managed by
:mod:`shared.config.store` (edited from the admin panel).  The
``PESAPAL_*`` variables here are only the fallback used when no record
has been saved yet.
"""

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger("pesapal.env")

DEFAULT_CONFIG_FILENAME = "pesapal-config.json"


@dataclass
class Settings:
    """Holds all process settings.

    None of the values is mandatory; missing ones fall back to the
    defaults below.
    """

    backend_url: str = ""
    config_path: str = field(default_factory=lambda: os.path.join(os.getcwd(), DEFAULT_CONFIG_FILENAME))
    loglevel: str = "INFO"
    http_timeout: float = 30.0
    payment_provider: str = "pesapal"
    consumer_key: str = ""
    consumer_secret: str = ""
    environment: str = "sandbox"
    currency: str = "KES"
    merchant_name: str = ""
    ipn_url: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Normalize types of values that may arrive as strings."""
        try:
            self.http_timeout = float(self.http_timeout)
        except (TypeError, ValueError):
            self.http_timeout = 30.0
        if self.http_timeout <= 0:
            self.http_timeout = 30.0
        self.backend_url = (self.backend_url or "").rstrip("/")
        self.payment_provider = (self.payment_provider or "pesapal").lower()
        self.environment = (self.environment or "sandbox").lower()

    def provider_options(self) -> Dict[str, Any]:
        """Pesapal options taken from the environment."""
        return {
            "consumer_key": self.consumer_key,
            "consumer_secret": self.consumer_secret,
            "environment": self.environment,
            "currency": self.currency,
            "merchant_name": self.merchant_name,
            "ipn_url": self.ipn_url,
        }


def _load_yaml_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load the optional YAML settings file.

    If the file does not exist or cannot be parsed, an empty dict is
    returned.
    """
    if not path:
        # this file lives at shared/config/env.py, the project root is two levels up
        base_dir = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
        path = os.path.join(base_dir, "configs", "app.yaml")
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("env: failed to load YAML config %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def _get_alias(env: Dict[str, str], *names: str, default: Optional[Any] = None) -> Optional[Any]:
    """Return the first defined environment variable from ``names``.

    Example::

        _get_alias(os.environ, 'PESAPAL_CONSUMER_KEY', 'PESAPAL_KEY')

    will return the value of ``PESAPAL_CONSUMER_KEY`` if set, otherwise
    the value of ``PESAPAL_KEY``.  If neither is set, returns
    ``default``.
    """
    for name in names:
        val = env.get(name)
        if val:
            return val
    return default


def load_settings() -> Settings:
    """Load settings from environment and optional YAML."""
    env = os.environ
    yaml_data = _load_yaml_config(env.get("APP_CONFIG_PATH"))
    pesapal = yaml_data.get("pesapal") or {}
    if not isinstance(pesapal, dict):
        pesapal = {}

    cfg = Settings(
        backend_url=_get_alias(env, "BACKEND_URL", default=yaml_data.get("backend_url", "")),
        config_path=_get_alias(
            env,
            "PESAPAL_CONFIG_PATH",
            default=yaml_data.get("config_path") or os.path.join(os.getcwd(), DEFAULT_CONFIG_FILENAME),
        ),
        loglevel=_get_alias(env, "LOGLEVEL", default=yaml_data.get("loglevel", "INFO")),
        http_timeout=_get_alias(env, "PESAPAL_HTTP_TIMEOUT", default=yaml_data.get("http_timeout", 30)),
        payment_provider=_get_alias(env, "PAYMENT_PROVIDER", default=yaml_data.get("payment_provider", "pesapal")),
        consumer_key=_get_alias(env, "PESAPAL_CONSUMER_KEY", "PESAPAL_KEY", default=pesapal.get("consumer_key", "")),
        consumer_secret=_get_alias(
            env, "PESAPAL_CONSUMER_SECRET", "PESAPAL_SECRET", default=pesapal.get("consumer_secret", "")
        ),
        environment=_get_alias(env, "PESAPAL_ENVIRONMENT", "PESAPAL_ENV", default=pesapal.get("environment", "sandbox")),
        currency=_get_alias(env, "PESAPAL_CURRENCY", default=pesapal.get("currency", "KES")),
        merchant_name=_get_alias(env, "PESAPAL_MERCHANT_NAME", default=pesapal.get("merchant_name", "")),
        ipn_url=_get_alias(env, "PESAPAL_IPN_URL", default=pesapal.get("ipn_url", "")),
        extra=yaml_data.get("extra", {}) if isinstance(yaml_data.get("extra"), dict) else {},
    )
    logger.info(
        "env: loaded settings (provider=%s environment=%s config_path=%s)",
        cfg.payment_provider,
        cfg.environment,
        cfg.config_path,
    )
    return cfg


# Load settings once at import; can be reloaded by calling reload_settings().
settings: Settings = load_settings()


def reload_settings() -> Settings:
    """Reload the settings and update the global ``settings`` object.

    The returned ``Settings`` instance is also stored in
    ``shared.config.env.settings``.
    """
    global settings
    settings = load_settings()
    return settings
