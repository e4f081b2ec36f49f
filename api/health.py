from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from shared.config import env
from shared.config.store import load_config

router = APIRouter()


@router.get("/healthz")
async def healthz():
    return {"status": "ok", "provider": env.settings.payment_provider}


@router.get("/readyz")
async def readyz():
    cfg = load_config()
    return {
        "ready": bool(cfg and cfg.enabled and cfg.consumer_key and cfg.consumer_secret),
        "environment": cfg.environment if cfg else None,
    }


@router.get("/livez")
async def livez():
    return {"alive": True}


@router.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
