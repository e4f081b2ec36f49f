# api/admin_connection.py
import asyncio
import logging

import aiohttp
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from api.admin_config import read_config_body, unmask_secret
from modules.payments import ProviderError
from modules.payments.providers import pesapal
from shared.config.store import PesapalConfig

log = logging.getLogger("pesapal.api.admin_connection")
router = APIRouter()


@router.post("/admin/custom/pesapal/test")
async def check_pesapal_connection(request: Request):
    """
    Проверка ключей: запрашиваем токен у Pesapal в выбранном окружении.
    Ничего не сохраняем.
    """
    cfg = unmask_secret(PesapalConfig.from_dict(await read_config_body(request)))
    if not cfg.consumer_key or not cfg.consumer_secret:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": "Consumer key and consumer secret are required"},
        )

    try:
        data = await pesapal.request_token(cfg.environment, cfg.consumer_key, cfg.consumer_secret)
    except (ProviderError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        log.error("Failed to test Pesapal connection: %s", e)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": "Failed to test connection", "error": str(e)},
        )
    except Exception as e:
        log.exception("Unexpected error while testing Pesapal connection: %s", e)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": "Failed to test connection", "error": str(e)},
        )

    if data.get("error") or not data.get("token"):
        reason = pesapal.error_text(data) or "Invalid credentials"
        log.info("pesapal connection test failed: environment=%s reason=%s", cfg.environment, reason)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": f"Authentication failed: {reason}"},
        )

    log.info("pesapal connection test ok: environment=%s", cfg.environment)
    return {
        "success": True,
        "message": f"Successfully connected to Pesapal {cfg.environment} environment",
        "token_expires": data.get("expiryDate"),
    }
