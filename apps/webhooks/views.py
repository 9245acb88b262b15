"""Payment gateway webhook endpoint."""

from __future__ import annotations

import json
import logging

from django.conf import settings
from django.db import DatabaseError
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from apps.webhooks.security import validate_signature
from apps.webhooks.services import (
    FORWARDED_HEADERS,
    WebhookOutcome,
    WebhookPersistenceError,
    handle_payment_webhook,
)

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def mercadopago_webhook(request: HttpRequest) -> JsonResponse:
    try:
        payload = json.loads(request.body.decode("utf-8") or "{}")
    except (UnicodeDecodeError, ValueError):
        return JsonResponse({"success": False, "error": "Invalid JSON body"}, status=400)
    if not isinstance(payload, dict):
        return JsonResponse({"success": False, "error": "Invalid JSON body"}, status=400)

    if getattr(settings, "MERCADOPAGO_WEBHOOK_SECRET", ""):
        signature = request.headers.get("X-Signature")
        request_id = request.headers.get("X-Request-Id")
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        data_id = data.get("id")
        if not signature or not request_id or not data_id:
            return JsonResponse(
                {"success": False, "error": "Missing required webhook headers"}, status=400
            )
        if not validate_signature(signature, request_id, str(data_id)):
            logger.warning("webhook.invalid_signature", extra={"request_id": request_id})
            return JsonResponse({"success": False, "error": "Invalid signature"}, status=403)

    headers = {name: request.headers.get(name, "") for name in FORWARDED_HEADERS}
    try:
        result = handle_payment_webhook(payload, headers)
    except (WebhookPersistenceError, DatabaseError):
        logger.exception("webhook.persistence_failed")
        return JsonResponse(
            {"success": False, "error": WebhookOutcome.PROCESSING_ERROR}, status=500
        )
    except Exception:
        logger.exception("webhook.unhandled_error")
        return JsonResponse(
            {"success": False, "error": WebhookOutcome.PROCESSING_ERROR}, status=500
        )
    return JsonResponse(result)
