"""Subscription activation and payment recording.

Callers own the transaction; every function here expects to run inside
``transaction.atomic()`` together with the webhook idempotency record.
"""

from __future__ import annotations

import calendar
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

from django.conf import settings
from django.utils import timezone

from apps.appointments.models import Appointment, AppointmentStatus
from apps.billing.models import (
    BillingPeriod,
    Payment,
    PaymentStatus,
    PaymentType,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
)
from apps.professionals.models import Professional

logger = logging.getLogger(__name__)


def add_months(value: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's length."""

    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_billing_date(start: datetime, period: str) -> datetime:
    return add_months(start, 12 if period == BillingPeriod.ANNUAL else 1)


def payment_amount(payment: Dict[str, Any]) -> Decimal:
    try:
        return Decimal(str(payment.get("transaction_amount") or 0))
    except InvalidOperation:
        return Decimal("0")


def payment_currency(payment: Dict[str, Any]) -> str:
    return payment.get("currency_id") or getattr(settings, "MERCADOPAGO_CURRENCY", "ARS")


def activate_subscription(
    professional: Professional,
    plan: SubscriptionPlan,
    period: str,
    payment: Dict[str, Any],
) -> Subscription:
    """Create or refresh the professional's single subscription and log the payment."""

    now = timezone.now()
    gateway_id = str(payment.get("id") or "")
    subscription = (
        Subscription.objects.select_for_update().filter(professional=professional).first()
    )
    if subscription is None:
        subscription = Subscription(professional=professional)
    subscription.plan = plan
    subscription.billing_period = period
    subscription.status = SubscriptionStatus.ACTIVE
    subscription.start_date = now
    subscription.next_billing_date = next_billing_date(now, period)
    subscription.gateway_payment_id = gateway_id
    subscription.save()

    Payment.objects.create(
        professional=professional,
        subscription=subscription,
        payment_type=PaymentType.SUBSCRIPTION,
        status=PaymentStatus.COMPLETED,
        amount=payment_amount(payment),
        currency=payment_currency(payment),
        gateway_payment_id=gateway_id,
        paid_at=now,
    )
    logger.info(
        "billing.subscription_activated",
        extra={"professional_id": professional.id, "plan_id": plan.id, "period": period},
    )
    return subscription


def confirm_deposit(appointment: Appointment, payment: Dict[str, Any]) -> bool:
    """Mark a locked appointment's deposit paid; returns False if it already was.

    ``pending_payment`` advances to ``confirmed``; any other status, cancelled
    included, is left as is.
    """

    if appointment.deposit_paid:
        return False

    now = timezone.now()
    appointment.deposit_paid = True
    appointment.deposit_paid_at = now
    update_fields = ["deposit_paid", "deposit_paid_at", "updated_at"]
    if appointment.status == AppointmentStatus.PENDING_PAYMENT:
        appointment.status = AppointmentStatus.CONFIRMED
        update_fields.append("status")
    elif appointment.status == AppointmentStatus.CANCELLED:
        logger.warning(
            "billing.deposit_for_cancelled_appointment",
            extra={"appointment_id": appointment.id},
        )
    appointment.save(update_fields=update_fields)

    Payment.objects.create(
        professional_id=appointment.professional_id,
        appointment=appointment,
        payment_type=PaymentType.DEPOSIT,
        status=PaymentStatus.COMPLETED,
        amount=payment_amount(payment),
        currency=payment_currency(payment),
        gateway_payment_id=str(payment.get("id") or ""),
        paid_at=now,
    )
    logger.info(
        "billing.deposit_paid",
        extra={"appointment_id": appointment.id, "status": appointment.status},
    )
    return True
