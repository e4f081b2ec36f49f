# api/admin_config.py
import logging
from typing import Any, Dict

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from modules.payments.providers import reset_providers
from shared.config.store import (
    DEFAULT_CONFIG,
    SECRET_MASK,
    ConfigError,
    PesapalConfig,
    load_config,
    save_config,
)

log = logging.getLogger("pesapal.api.admin_config")
router = APIRouter()

CONFIG_PATH = "/admin/custom/pesapal/config"


async def read_config_body(request: Request) -> Dict[str, Any]:
    """Return the ``config`` object of a ``{"config": {...}}`` body, or ``{}``."""
    try:
        body = await request.json()
    except ValueError:
        raw = await request.body()
        log.warning("admin config: non-JSON body: %r", raw[:200])
        return {}
    cfg = body.get("config") if isinstance(body, dict) else None
    return cfg if isinstance(cfg, dict) else {}


def unmask_secret(cfg: PesapalConfig) -> PesapalConfig:
    """Replace a masked secret (sent back by the admin panel) with the stored one."""
    if cfg.consumer_secret == SECRET_MASK:
        stored = load_config()
        cfg.consumer_secret = stored.consumer_secret if stored else ""
    return cfg


@router.get(CONFIG_PATH)
async def get_pesapal_config():
    try:
        cfg = load_config()
    except Exception as e:
        log.exception("Failed to load Pesapal config: %s", e)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Failed to load configuration", "error": str(e)},
        )
    # секрет наружу не отдаём
    return {"config": (cfg or DEFAULT_CONFIG).masked()}


@router.post(CONFIG_PATH)
async def save_pesapal_config(request: Request):
    raw = await read_config_body(request)
    cfg = unmask_secret(PesapalConfig.from_dict(raw))
    # окружение обязательно: умолчание sandbox только для чтения
    if not raw.get("environment"):
        cfg.environment = ""
    try:
        cfg.validate()
    except ConfigError as e:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": str(e)})

    try:
        save_config(cfg)
    except OSError as e:
        log.exception("Failed to save Pesapal config: %s", e)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Failed to save configuration", "error": str(e)},
        )

    # закэшированные адаптеры держат старые ключи
    reset_providers()
    return {"message": "Configuration saved successfully", "config": cfg.masked()}
