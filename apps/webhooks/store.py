"""Idempotency records for payment webhooks."""

from __future__ import annotations

from typing import Any, Dict, Optional

from django.db import transaction

from apps.webhooks.models import WebhookEvent, WebhookEventStatus


def find_event(payment_id: str, request_id: str) -> Optional[WebhookEvent]:
    return WebhookEvent.objects.filter(payment_id=payment_id, request_id=request_id).first()


def record_event(
    *,
    payment_id: str,
    request_id: str,
    event_type: str,
    status: str,
    payload: Dict[str, Any],
    headers: Dict[str, str],
    response: Dict[str, Any],
    error_message: str = "",
) -> WebhookEvent:
    """Insert the record; a duplicate key raises ``IntegrityError``.

    Runs in a savepoint so the caller's transaction stays usable.
    """

    with transaction.atomic():
        return WebhookEvent.objects.create(
            payment_id=payment_id,
            request_id=request_id,
            event_type=event_type,
            status=status,
            request_body=payload,
            request_headers=headers,
            response_body=response,
            error_message=error_message,
        )


def stored_response(event: WebhookEvent) -> Dict[str, Any]:
    if event.response_body:
        return event.response_body
    if event.status == WebhookEventStatus.PROCESSED:
        return {"success": True, "message": "Already processed"}
    return {"success": False, "error": event.error_message}
