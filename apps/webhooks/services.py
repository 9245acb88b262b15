"""Mercado Pago payment notification processing.

Each delivery is identified by ``(data.id, x-request-id)``. The outcome,
successful or not, is stored in a ``WebhookEvent`` committed in the same
transaction as the business changes, so a redelivery of the same key
replays the stored response without touching the gateway again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from django.db import DatabaseError, IntegrityError, transaction

from apps.appointments.models import Appointment
from apps.billing.gateway import MercadoPagoClient, MercadoPagoError
from apps.billing.intents import (
    DepositIntent,
    MalformedReference,
    SubscriptionIntent,
    UnknownIntent,
    parse_reference,
)
from apps.billing.models import BillingPeriod, SubscriptionPlan
from apps.billing.services import activate_subscription, confirm_deposit
from apps.notifications.publishers import publish_after_commit
from apps.professionals.models import Professional
from apps.webhooks import store
from apps.webhooks.models import WebhookEventStatus

logger = logging.getLogger(__name__)

FORWARDED_HEADERS = ("x-signature", "x-request-id", "user-agent", "content-type")


class WebhookOutcome:
    """Gateway-facing messages for every terminal outcome."""

    IGNORED = "Ignored non-payment webhook"
    MISSING_IDENTIFIERS = "Missing required identifiers"
    GATEWAY_UNAVAILABLE = "Payment gateway unavailable"
    PAYMENT_NOT_FOUND = "Payment not found in Mercado Pago"
    MISSING_REFERENCE = "Payment has no external_reference"
    MALFORMED_REFERENCE = "Invalid external reference format"
    UNKNOWN_INTENT = "Unknown payment type"
    PROFESSIONAL_NOT_FOUND = "Professional not found"
    PLAN_NOT_FOUND = "Plan not found"
    APPOINTMENT_NOT_FOUND = "Appointment not found"
    SUBSCRIPTION_ACTIVATED = "Subscription activated"
    DEPOSIT_PAID = "Deposit paid"
    DEPOSIT_ALREADY_PAID = "Deposit already paid"
    PROCESSING_ERROR = "Webhook processing error"


class WebhookPersistenceError(RuntimeError):
    """The outcome of a delivery could not be recorded."""


@dataclass(frozen=True)
class Delivery:
    payment_id: str
    request_id: str
    event_type: str
    payload: Dict[str, Any]
    headers: Dict[str, str]


def success(message: str) -> Dict[str, Any]:
    return {"success": True, "message": message}


def failure(error: str) -> Dict[str, Any]:
    return {"success": False, "error": error}


def normalize_headers(headers: Mapping[str, Any] | None) -> Dict[str, str]:
    lowered = {str(key).lower(): str(value or "") for key, value in (headers or {}).items()}
    return {name: lowered.get(name, "") for name in FORWARDED_HEADERS}


def handle_payment_webhook(
    payload: Mapping[str, Any],
    headers: Mapping[str, Any] | None,
    gateway: MercadoPagoClient | None = None,
) -> Dict[str, Any]:
    payload = dict(payload or {})
    event_type = str(payload.get("type") or "")
    if event_type != "payment":
        logger.info("webhook.ignored", extra={"event_type": event_type})
        return success(WebhookOutcome.IGNORED)

    headers = normalize_headers(headers)
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    payment_id = str(data.get("id") or "").strip()
    request_id = headers["x-request-id"].strip()
    if not payment_id or not request_id:
        logger.warning("webhook.missing_identifiers", extra={"payment_id": payment_id})
        return failure(WebhookOutcome.MISSING_IDENTIFIERS)

    delivery = Delivery(payment_id, request_id, event_type, payload, headers)
    existing = store.find_event(payment_id, request_id)
    if existing is not None:
        logger.info(
            "webhook.duplicate",
            extra={"payment_id": payment_id, "request_id": request_id, "status": existing.status},
        )
        return store.stored_response(existing)

    try:
        return _process(delivery, gateway or MercadoPagoClient())
    except WebhookPersistenceError:
        raise
    except Exception as exc:
        logger.exception(
            "webhook.processing_error",
            extra={"payment_id": payment_id, "request_id": request_id},
        )
        return record_failure(delivery, WebhookOutcome.PROCESSING_ERROR, str(exc))


def _process(delivery: Delivery, gateway: MercadoPagoClient) -> Dict[str, Any]:
    payment_id = delivery.payment_id
    try:
        payment = gateway.get_payment(payment_id)
    except MercadoPagoError as exc:
        return record_failure(delivery, WebhookOutcome.GATEWAY_UNAVAILABLE, str(exc))
    if payment is None:
        return record_failure(delivery, WebhookOutcome.PAYMENT_NOT_FOUND)

    raw_reference = payment.get("external_reference")
    if not raw_reference:
        return record_failure(delivery, WebhookOutcome.MISSING_REFERENCE)
    try:
        intent = parse_reference(raw_reference)
    except MalformedReference as exc:
        return record_failure(
            delivery,
            WebhookOutcome.MALFORMED_REFERENCE,
            f"Invalid JSON in external_reference: {exc}",
        )
    if isinstance(intent, UnknownIntent):
        return record_failure(
            delivery,
            WebhookOutcome.UNKNOWN_INTENT,
            f"Unknown payment type: {intent.type}",
        )

    return apply_payment(delivery, payment, intent)


def apply_payment(delivery: Delivery, payment: Dict[str, Any], intent) -> Dict[str, Any]:
    """Apply the intent and record the event atomically."""

    try:
        with transaction.atomic():
            if isinstance(intent, SubscriptionIntent):
                response = _apply_subscription(payment, intent)
            else:
                response = _apply_deposit(payment, intent)
            store.record_event(
                payment_id=delivery.payment_id,
                request_id=delivery.request_id,
                event_type=delivery.event_type,
                status=(
                    WebhookEventStatus.PROCESSED
                    if response["success"]
                    else WebhookEventStatus.FAILED
                ),
                payload=delivery.payload,
                headers=delivery.headers,
                response=response,
                error_message=response.get("error", ""),
            )
    except IntegrityError:
        return _replay_winner(delivery)

    logger.info(
        "webhook.processed",
        extra={
            "payment_id": delivery.payment_id,
            "request_id": delivery.request_id,
            "success": response["success"],
        },
    )
    return response


def record_failure(
    delivery: Delivery, error: str, error_message: Optional[str] = None
) -> Dict[str, Any]:
    response = failure(error)
    try:
        store.record_event(
            payment_id=delivery.payment_id,
            request_id=delivery.request_id,
            event_type=delivery.event_type,
            status=WebhookEventStatus.FAILED,
            payload=delivery.payload,
            headers=delivery.headers,
            response=response,
            error_message=error_message or error,
        )
    except IntegrityError:
        return _replay_winner(delivery)
    except DatabaseError as exc:
        raise WebhookPersistenceError(str(exc)) from exc

    logger.warning(
        "webhook.failed",
        extra={
            "payment_id": delivery.payment_id,
            "request_id": delivery.request_id,
            "error": error_message or error,
        },
    )
    return response


def _replay_winner(delivery: Delivery) -> Dict[str, Any]:
    winner = store.find_event(delivery.payment_id, delivery.request_id)
    if winner is None:
        raise WebhookPersistenceError(
            f"could not record webhook {delivery.payment_id}/{delivery.request_id}"
        )
    logger.info(
        "webhook.concurrent_duplicate",
        extra={"payment_id": delivery.payment_id, "request_id": delivery.request_id},
    )
    return store.stored_response(winner)


def _as_pk(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _apply_subscription(payment: Dict[str, Any], intent: SubscriptionIntent) -> Dict[str, Any]:
    status = payment.get("status")
    if status != "approved":
        return success(f"Payment status: {status}")

    professional = Professional.objects.filter(pk=_as_pk(intent.professional_id)).first()
    if professional is None:
        return failure(WebhookOutcome.PROFESSIONAL_NOT_FOUND)
    plan = SubscriptionPlan.objects.filter(pk=_as_pk(intent.plan_id)).first()
    if plan is None:
        return failure(WebhookOutcome.PLAN_NOT_FOUND)

    period = (
        intent.billing_period
        if intent.billing_period in BillingPeriod.values
        else BillingPeriod.MONTHLY
    )
    activate_subscription(professional, plan, period, payment)
    return success(WebhookOutcome.SUBSCRIPTION_ACTIVATED)


def _apply_deposit(payment: Dict[str, Any], intent: DepositIntent) -> Dict[str, Any]:
    status = payment.get("status")
    if status != "approved":
        return success(f"Payment status: {status}")

    locked = Appointment.objects.select_for_update(of=("self",)).select_related("professional")
    appointment = None
    appointment_pk = _as_pk(intent.appointment_id)
    if appointment_pk is not None:
        appointment = locked.filter(pk=appointment_pk).first()
    if appointment is None and intent.booking_reference:
        appointment = locked.filter(booking_reference=intent.booking_reference).first()
    if appointment is None:
        return failure(WebhookOutcome.APPOINTMENT_NOT_FOUND)

    if not confirm_deposit(appointment, payment):
        return success(WebhookOutcome.DEPOSIT_ALREADY_PAID)
    publish_after_commit(
        appointment.professional,
        "appointment.deposit_paid",
        {"bookingReference": appointment.booking_reference, "status": appointment.status},
    )
    return success(WebhookOutcome.DEPOSIT_PAID)
