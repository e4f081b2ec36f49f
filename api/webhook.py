# api/webhook.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import JSONResponse

from modules.payments import WebhookActionResult
from modules.payments.providers import get_provider
from modules.payments.providers.pesapal import WEBHOOK_PATH
from shared.config.store import load_config
from shared.utils.logging import get_logger
from shared.utils.metrics import pesapal_webhooks_total
from shared.utils.time import utc_now

router = APIRouter()
log = get_logger("pesapal.api.webhook")


async def _translate(webhook_data: Dict[str, Any]) -> Optional[WebhookActionResult]:
    """Run the notification through the provider when the gateway is enabled."""
    cfg = load_config()
    if cfg is None or not cfg.enabled:
        return None
    provider = get_provider(cfg)
    return await provider.get_webhook_action_and_data({"data": webhook_data})


@router.get(WEBHOOK_PATH)
async def pesapal_ipn(
    order_tracking_id: Optional[str] = Query(None, alias="OrderTrackingId"),
    order_merchant_reference: Optional[str] = Query(None, alias="OrderMerchantReference"),
):
    """
    IPN от Pesapal (GET, как регистрируем в RegisterIPN).
    Без OrderTrackingId — 400, иначе логируем и отвечаем эхом.
    """
    if not order_tracking_id:
        pesapal_webhooks_total.labels(method="GET", outcome="rejected").inc()
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Missing OrderTrackingId parameter"},
        )

    try:
        webhook_data = {
            "OrderTrackingId": order_tracking_id,
            "OrderMerchantReference": order_merchant_reference,
            "timestamp": utc_now().isoformat(),
        }
        log.info("Pesapal webhook received: %s", webhook_data, extra={"corr_id": order_tracking_id})

        body: Dict[str, Any] = {"message": "Webhook processed successfully", "data": webhook_data}
        result = await _translate(webhook_data)
        if result is not None:
            body["action"] = result.get("action")
    except Exception as e:
        pesapal_webhooks_total.labels(method="GET", outcome="error").inc()
        log.exception("Failed to process Pesapal webhook: %s", e, extra={"corr_id": order_tracking_id})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Failed to process webhook", "error": str(e)},
        )

    pesapal_webhooks_total.labels(method="GET", outcome="ok").inc()
    return body


@router.post(WEBHOOK_PATH)
async def pesapal_ipn_post(request: Request):
    # 1) безопасно читаем JSON
    try:
        payload = await request.json()
    except ValueError:
        raw = await request.body()
        log.warning("Pesapal POST webhook non-JSON body: %r", raw[:500])
        payload = None

    tracking_id = payload.get("OrderTrackingId") if isinstance(payload, dict) else None
    try:
        log.info("Pesapal POST webhook received: %s", payload, extra={"corr_id": tracking_id})
        body: Dict[str, Any] = {"message": "POST webhook processed successfully", "data": payload}

        # 2) если есть OrderTrackingId — прогоняем через провайдера
        if tracking_id:
            result = await _translate(
                {
                    "OrderTrackingId": tracking_id,
                    "OrderMerchantReference": payload.get("OrderMerchantReference"),
                }
            )
            if result is not None:
                body["action"] = result.get("action")
    except Exception as e:
        pesapal_webhooks_total.labels(method="POST", outcome="error").inc()
        log.exception("Failed to process Pesapal POST webhook: %s", e, extra={"corr_id": tracking_id})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Failed to process POST webhook", "error": str(e)},
        )

    pesapal_webhooks_total.labels(method="POST", outcome="ok").inc()
    return body
