"""File-backed storage for the Pesapal gateway record.

The admin panel edits a single flat record (credentials, environment,
currency, merchant name, IPN URL, enabled flag) which is kept as one
pretty-printed JSON file.  The file location comes from
``settings.config_path`` (``PESAPAL_CONFIG_PATH``).

Usage::

    from shared.config.store import load_config, save_config

    cfg = load_config()          # None if nothing was saved yet
    cfg.enabled = True
    save_config(cfg)
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping, Optional

from shared.config import env

log = logging.getLogger("pesapal.config.store")

SECRET_MASK = "****"
ENVIRONMENTS = ("sandbox", "live")


class ConfigError(ValueError):
    """Invalid gateway record."""


@dataclass
class PesapalConfig:
    consumer_key: str = ""
    consumer_secret: str = ""
    environment: str = "sandbox"
    currency: str = "KES"
    merchant_name: str = ""
    ipn_url: str = ""
    enabled: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "PesapalConfig":
        """Build a record from decoded JSON, ignoring unknown keys."""
        data = data or {}
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        cfg = cls(**values)
        for name in ("consumer_key", "consumer_secret", "environment", "currency", "merchant_name", "ipn_url"):
            setattr(cfg, name, str(getattr(cfg, name)).strip())
        if isinstance(cfg.enabled, str):
            cfg.enabled = cfg.enabled.strip().lower() in ("1", "true", "yes", "on")
        cfg.enabled = bool(cfg.enabled)
        return cfg

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def masked(self) -> Dict[str, Any]:
        """Return the record with the consumer secret hidden."""
        data = self.to_dict()
        data["consumer_secret"] = SECRET_MASK if self.consumer_secret else ""
        return data

    def validate(self) -> None:
        if not self.consumer_key or not self.consumer_secret:
            raise ConfigError("Consumer key and consumer secret are required")
        if self.environment not in ENVIRONMENTS:
            raise ConfigError("Environment must be either 'sandbox' or 'live'")

    def provider_options(self) -> Dict[str, Any]:
        data = self.to_dict()
        data.pop("enabled")
        return data


DEFAULT_CONFIG = PesapalConfig()


def _path(path: Optional[str]) -> str:
    return path or env.settings.config_path


def load_config(path: Optional[str] = None) -> Optional[PesapalConfig]:
    """Read the stored record.

    Returns ``None`` when the file is missing or cannot be parsed.
    """
    target = _path(path)
    try:
        with open(target, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as e:
        log.warning("config: cannot read %s: %s", target, e)
        return None
    if not isinstance(data, dict):
        log.warning("config: %s does not hold a JSON object", target)
        return None
    return PesapalConfig.from_dict(data)


def save_config(config: PesapalConfig, path: Optional[str] = None) -> None:
    """Write the record atomically (temp file + rename)."""
    target = _path(path)
    directory = os.path.dirname(os.path.abspath(target))
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".pesapal-config-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(config.to_dict(), f, indent=2)
        os.replace(tmp_path, target)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    log.info("config: saved gateway record to %s (environment=%s enabled=%s)",
             target, config.environment, config.enabled)
