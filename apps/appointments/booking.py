"""Transactional booking coordinator.

A slot is sold at most once: every booking for a professional runs inside
one transaction that locks the professional row, re-checks overlap, blocked
dates and availability, and only then inserts. The partial unique constraint
on the appointment table catches anything that slips past the check.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.appointments.models import (
    Appointment,
    AppointmentCustomFieldValue,
    AppointmentStatus,
    CancelledBy,
)
from apps.billing.gateway import MercadoPagoClient, MercadoPagoError
from apps.billing.intents import DepositIntent
from apps.common.errors import (
    DateBlocked,
    DepositNotPayable,
    Internal,
    InvalidCustomField,
    InvalidRequest,
    NoAvailability,
    NotCancellable,
    NotFound,
    ReferenceExhausted,
    SlotContested,
    SlotTaken,
)
from apps.common.utils import format_hhmm
from apps.holds.services import consume_hold, validate_hold_for_booking
from apps.notifications.publishers import publish_after_commit
from apps.notifications.services import (
    enqueue_booking_notifications,
    enqueue_cancellation_notifications,
)
from apps.patients.services import PatientInfo, upsert_patient
from apps.professionals.models import Professional

logger = logging.getLogger(__name__)

BOOKING_REFERENCE_LENGTH = int(getattr(settings, "BOOKING_REFERENCE_LENGTH", 6))
BOOKING_REFERENCE_MAX_ATTEMPTS = int(getattr(settings, "BOOKING_REFERENCE_MAX_ATTEMPTS", 10))
BOOKING_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits

SKIPPED_FIELD_PREFIX = "fixed-"
SKIPPED_FIELD_KEYS = {"countryCode"}

APPOINTMENT_NOT_FOUND = _("Reserva no encontrada.")


@dataclass(frozen=True)
class BookingResult:
    appointment: Appointment
    booking_reference: str
    requires_deposit: bool
    deposit_amount: Optional[Decimal] = None


def get_bookable_professional(slug: str) -> Professional:
    """Missing, inactive and suspended professionals are indistinguishable."""

    professional = Professional.objects.bookable().filter(slug=slug).first()
    if professional is None:
        raise NotFound()
    return professional


def compute_end_time(start_time: time, duration_minutes: int) -> time:
    start = datetime.combine(date.min, start_time)
    end = start + timedelta(minutes=duration_minutes)
    if end.date() != start.date():
        raise InvalidRequest(_("El turno no puede terminar después de medianoche."))
    return end.time()


def generate_booking_reference() -> str:
    """Return an unused reference, giving up after a bounded number of probes."""

    for _attempt in range(BOOKING_REFERENCE_MAX_ATTEMPTS):
        reference = "".join(
            secrets.choice(BOOKING_REFERENCE_ALPHABET) for _pos in range(BOOKING_REFERENCE_LENGTH)
        )
        if not Appointment.objects.filter(booking_reference=reference).exists():
            return reference
    logger.error(
        "booking.reference_exhausted",
        extra={"attempts": BOOKING_REFERENCE_MAX_ATTEMPTS},
    )
    raise ReferenceExhausted()


def create_appointment(
    slug: str,
    patient: PatientInfo,
    date_value: date,
    start_time: time,
    session_id: str | None = None,
    custom_field_values: Mapping[str, Any] | None = None,
) -> BookingResult:
    professional = get_bookable_professional(slug)

    if session_id and not validate_hold_for_booking(
        professional, date_value, start_time, session_id
    ):
        logger.info(
            "booking.slot_contested",
            extra={"professional_id": professional.id, "date": str(date_value), "time": format_hhmm(start_time)},
        )
        raise SlotContested()

    end_time = compute_end_time(start_time, professional.appointment_duration_minutes)

    try:
        with transaction.atomic():
            # Serializes bookings of one professional.
            Professional.objects.select_for_update().filter(pk=professional.pk).first()

            if Appointment.objects.overlapping(
                professional, date_value, start_time, end_time
            ).exists():
                raise SlotTaken()
            if professional.blocked_dates.filter(date=date_value).exists():
                raise DateBlocked()
            if not professional.availabilities.active().filter(
                day_of_week=date_value.weekday()
            ).exists():
                raise NoAvailability()

            patient_record = upsert_patient(professional, patient)
            reference = generate_booking_reference()
            requires_deposit = professional.requires_deposit
            appointment = Appointment.objects.create(
                professional=professional,
                patient=patient_record,
                date=date_value,
                start_time=start_time,
                end_time=end_time,
                status=(
                    AppointmentStatus.PENDING_PAYMENT
                    if requires_deposit
                    else AppointmentStatus.PENDING
                ),
                booking_reference=reference,
                deposit_required=requires_deposit,
                deposit_amount=professional.deposit_amount if requires_deposit else None,
            )
            save_custom_field_values(appointment, custom_field_values or {})

            if session_id:
                transaction.on_commit(
                    lambda: consume_hold(professional, date_value, start_time, session_id)
                )
            publish_after_commit(
                professional,
                "appointment.created",
                {
                    "bookingReference": reference,
                    "date": date_value.isoformat(),
                    "time": format_hhmm(start_time),
                },
            )
            transaction.on_commit(lambda: enqueue_booking_notifications(appointment.id))
    except IntegrityError:
        logger.info(
            "booking.slot_taken",
            extra={"professional_id": professional.id, "date": str(date_value), "time": format_hhmm(start_time)},
        )
        raise SlotTaken()

    logger.info(
        "booking.created",
        extra={"appointment_id": appointment.id, "reference": reference, "status": appointment.status},
    )
    return BookingResult(
        appointment=appointment,
        booking_reference=reference,
        requires_deposit=requires_deposit,
        deposit_amount=appointment.deposit_amount,
    )


def save_custom_field_values(appointment: Appointment, values: Mapping[str, Any]) -> int:
    """Store answers keyed by custom field id; unknown ids abort the booking."""

    fields = {
        str(field.id): field
        for field in appointment.professional.custom_fields.active()
    }
    rows = []
    for key, value in values.items():
        key = str(key)
        if key.startswith(SKIPPED_FIELD_PREFIX) or key in SKIPPED_FIELD_KEYS:
            continue
        field = fields.get(key)
        if field is None:
            raise InvalidCustomField()
        rows.append(
            AppointmentCustomFieldValue(
                appointment=appointment,
                custom_field=field,
                value=_stringify(value),
            )
        )
    AppointmentCustomFieldValue.objects.bulk_create(rows)
    return len(rows)


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)


def get_appointment_by_reference(reference: str, email: str | None = None) -> Appointment:
    appointment = (
        Appointment.objects.select_related("professional", "patient")
        .filter(booking_reference=(reference or "").strip().upper())
        .first()
    )
    if appointment is None or (email is not None and not _email_matches(appointment, email)):
        raise NotFound(APPOINTMENT_NOT_FOUND)
    return appointment


def _email_matches(appointment: Appointment, email: str) -> bool:
    return appointment.patient.email.strip().lower() == (email or "").strip().lower()


def cancel_appointment_by_patient(reference: str, email: str, reason: str = "") -> Appointment:
    with transaction.atomic():
        appointment = (
            Appointment.objects.select_for_update()
            .select_related("professional", "patient")
            .filter(booking_reference=(reference or "").strip().upper())
            .first()
        )
        if appointment is None or not _email_matches(appointment, email):
            raise NotFound(APPOINTMENT_NOT_FOUND)
        if not appointment.is_cancellable:
            raise NotCancellable()

        appointment.status = AppointmentStatus.CANCELLED
        appointment.cancelled_at = timezone.now()
        appointment.cancelled_by = CancelledBy.PATIENT
        appointment.cancellation_reason = reason or ""
        appointment.save(
            update_fields=[
                "status",
                "cancelled_at",
                "cancelled_by",
                "cancellation_reason",
                "updated_at",
            ]
        )
        publish_after_commit(
            appointment.professional,
            "appointment.cancelled",
            {"bookingReference": appointment.booking_reference},
        )
        transaction.on_commit(lambda: enqueue_cancellation_notifications(appointment.id))

    logger.info(
        "booking.cancelled",
        extra={"appointment_id": appointment.id, "cancelled_by": CancelledBy.PATIENT},
    )
    return appointment


def create_deposit_payment(
    reference: str, email: str, gateway: MercadoPagoClient | None = None
) -> Dict[str, Any]:
    """Open a Mercado Pago checkout for an appointment's unpaid deposit."""

    appointment = get_appointment_by_reference(reference, email)
    if not appointment.deposit_required or not appointment.deposit_amount:
        raise DepositNotPayable(_("Esta reserva no requiere depósito."))
    if appointment.deposit_paid:
        raise DepositNotPayable(_("El depósito ya ha sido pagado."))
    if appointment.status != AppointmentStatus.PENDING_PAYMENT:
        raise DepositNotPayable()

    professional = appointment.professional
    patient = appointment.patient
    currency = getattr(settings, "MERCADOPAGO_CURRENCY", "ARS")
    frontend_url = getattr(settings, "FRONTEND_URL", "").rstrip("/")
    backend_url = getattr(settings, "BACKEND_URL", "").rstrip("/")
    confirmation_url = f"{frontend_url}/booking/confirmation?ref={appointment.booking_reference}"
    intent = DepositIntent(
        appointment_id=appointment.id,
        professional_id=professional.id,
        booking_reference=appointment.booking_reference,
    )
    body = {
        "items": [
            {
                "id": str(appointment.id),
                "title": f"Seña para cita - {professional.full_name}",
                "description": f"Reserva {appointment.booking_reference}",
                "quantity": 1,
                "unit_price": float(appointment.deposit_amount),
                "currency_id": currency,
            }
        ],
        "payer": {"email": patient.email, "name": patient.full_name},
        "back_urls": {
            "success": f"{confirmation_url}&payment=success",
            "failure": f"{confirmation_url}&payment=failure",
            "pending": f"{confirmation_url}&payment=pending",
        },
        "auto_return": "approved",
        "external_reference": intent.to_reference(),
        "notification_url": f"{backend_url}/api/webhooks/mercadopago",
        "statement_descriptor": "Seña Cita",
    }

    gateway = gateway or MercadoPagoClient()
    try:
        preference = gateway.create_preference(body)
    except MercadoPagoError:
        logger.exception(
            "booking.deposit_preference_failed",
            extra={"appointment_id": appointment.id},
        )
        raise Internal(_("Error al crear el pago de depósito."))

    return {
        **preference,
        "amount": str(appointment.deposit_amount),
        "currency": currency,
    }


def release_unpaid_deposit_appointments(limit_minutes: int, batch_size: int = 50) -> int:
    """Cancel ``pending_payment`` bookings whose deposit is overdue, freeing the slot."""

    cutoff = timezone.now() - timedelta(minutes=limit_minutes)
    released = 0
    candidate_ids = list(
        Appointment.objects.filter(
            status=AppointmentStatus.PENDING_PAYMENT,
            deposit_required=True,
            deposit_paid=False,
            created_at__lt=cutoff,
        ).values_list("id", flat=True)[:batch_size]
    )
    for appointment_id in candidate_ids:
        with transaction.atomic():
            appointment = (
                Appointment.objects.select_for_update()
                .filter(
                    id=appointment_id,
                    status=AppointmentStatus.PENDING_PAYMENT,
                    deposit_paid=False,
                )
                .first()
            )
            if appointment is None:
                continue
            appointment.status = AppointmentStatus.CANCELLED
            appointment.cancelled_at = timezone.now()
            appointment.cancelled_by = CancelledBy.SYSTEM
            appointment.cancellation_reason = (
                f"Depósito no pagado dentro del límite de {limit_minutes} minutos"
            )
            appointment.save(
                update_fields=[
                    "status",
                    "cancelled_at",
                    "cancelled_by",
                    "cancellation_reason",
                    "updated_at",
                ]
            )
            transaction.on_commit(
                lambda appointment_id=appointment.id: enqueue_cancellation_notifications(appointment_id)
            )
        released += 1
        logger.info(
            "booking.deposit_expired",
            extra={"appointment_id": appointment_id, "reference": appointment.booking_reference},
        )
    return released
