# api/main.py
"""
Единый entrypoint Pesapal gateway:
- админские эндпоинты конфигурации и проверки ключей
- страница настроек для админки
- IPN вебхук Pesapal
- служебные health/metrics
"""
from dotenv import load_dotenv
load_dotenv()

import os
from importlib.metadata import PackageNotFoundError, version

from fastapi import FastAPI

from api.admin_config import router as admin_config_router
from api.admin_connection import router as admin_connection_router
from api.admin_panel import router as admin_panel_router
from api.health import router as health_router
from api.webhook import router as webhook_router
from shared.config import env
from shared.utils.logging import setup_logging

try:
    __version__ = version("pesapal-gateway")
except PackageNotFoundError:
    __version__ = "0.0.0"

setup_logging(env.settings.loglevel)

app = FastAPI(title="Pesapal Gateway API", version=__version__)

app.include_router(admin_config_router)
app.include_router(admin_connection_router)
app.include_router(admin_panel_router)
app.include_router(webhook_router)
app.include_router(health_router)


def main() -> None:
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "9000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
