# api/admin_panel.py
from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter()

PANEL_FILE = Path(__file__).with_name("static") / "pesapal_configuration.html"


@router.get("/admin/pesapal", response_class=HTMLResponse)
async def pesapal_admin_panel():
    """
    Страница настроек Pesapal для админки.
    Вся логика формы — в JS, он ходит в /admin/custom/pesapal/*.
    """
    return HTMLResponse(PANEL_FILE.read_text(encoding="utf-8"))
