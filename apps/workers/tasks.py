"""Celery tasks for hold cleanup, booking notifications and reminders."""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from apps.appointments.booking import release_unpaid_deposit_appointments
from apps.appointments.models import Appointment, AppointmentStatus
from apps.holds.services import cleanup_expired_holds
from apps.notifications.backends import NotificationBackendError, get_calendar_backend
from apps.notifications.models import ReminderStatus, ScheduledReminder
from apps.notifications.services import (
    appointment_variables,
    cancel_reminders,
    schedule_reminders,
    send_whatsapp,
)

logger = logging.getLogger(__name__)

REMINDER_BATCH_SIZE = int(getattr(settings, "REMINDER_DISPATCH_BATCH_SIZE", 50))
REMINDER_BACKOFF_MAX_SECONDS = int(getattr(settings, "REMINDER_BACKOFF_MAX_SECONDS", 300))
REMINDER_LEASE_SECONDS = int(getattr(settings, "REMINDER_LEASE_SECONDS", 600))
DEPOSIT_TIME_LIMIT_MINUTES = int(getattr(settings, "DEPOSIT_TIME_LIMIT_MINUTES", 30))
NOTIFICATION_MAX_RETRIES = int(getattr(settings, "NOTIFICATION_MAX_RETRIES", 3))


def _load_appointment(appointment_id: int) -> Appointment | None:
    appointment = (
        Appointment.objects.select_related("professional", "patient")
        .filter(id=appointment_id)
        .first()
    )
    if appointment is None:
        logger.warning("notifications.missing_appointment", extra={"appointment_id": appointment_id})
    return appointment


@shared_task
def cleanup_expired_slot_holds() -> int:
    return cleanup_expired_holds()


@shared_task
def release_unpaid_deposits() -> int:
    """Cancel bookings whose deposit was not paid in time."""
    return release_unpaid_deposit_appointments(DEPOSIT_TIME_LIMIT_MINUTES)


@shared_task(bind=True, max_retries=NOTIFICATION_MAX_RETRIES)
def sync_appointment_calendar(self, appointment_id: int) -> str:
    """Mirror the appointment in the professional's calendar."""
    appointment = _load_appointment(appointment_id)
    if appointment is None:
        return "missing"

    backend = get_calendar_backend()
    try:
        if appointment.status == AppointmentStatus.CANCELLED:
            if not appointment.calendar_event_id:
                return "skipped"
            backend.delete_event(appointment)
            appointment.calendar_event_id = ""
            appointment.save(update_fields=["calendar_event_id", "updated_at"])
            return "deleted"
        if appointment.calendar_event_id:
            return "already_synced"
        event_id = backend.create_event(appointment)
    except NotificationBackendError as exc:
        logger.warning(
            "calendar.sync_failed",
            extra={"appointment_id": appointment_id, "attempt": self.request.retries + 1, "error": str(exc)},
        )
        raise self.retry(exc=exc, countdown=60 * (2 ** self.request.retries))

    appointment.calendar_event_id = event_id or ""
    appointment.save(update_fields=["calendar_event_id", "updated_at"])
    return "synced"


@shared_task(bind=True, max_retries=NOTIFICATION_MAX_RETRIES)
def send_booking_confirmation_whatsapp(self, appointment_id: int) -> str:
    appointment = _load_appointment(appointment_id)
    if appointment is None:
        return "missing"
    try:
        send_whatsapp(appointment, "booking_confirmation")
    except NotificationBackendError as exc:
        raise self.retry(exc=exc, countdown=30 * (2 ** self.request.retries))
    return "sent"


@shared_task
def send_booking_confirmation_email(appointment_id: int) -> str:
    appointment = _load_appointment(appointment_id)
    if appointment is None:
        return "missing"
    if not appointment.patient.email:
        return "no_email"
    variables = appointment_variables(appointment)
    send_mail(
        subject=f"Reserva confirmada {variables['reference']}",
        message=(
            f"Hola {variables['name']}, tu turno con {variables['professional']} "
            f"es el {variables['date']} a las {variables['time']}. "
            f"Código de reserva: {variables['reference']}."
        ),
        from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
        recipient_list=[appointment.patient.email],
    )
    return "sent"


@shared_task(bind=True, max_retries=NOTIFICATION_MAX_RETRIES)
def send_cancellation_notice(self, appointment_id: int) -> str:
    appointment = _load_appointment(appointment_id)
    if appointment is None:
        return "missing"
    try:
        send_whatsapp(appointment, "booking_cancelled")
    except NotificationBackendError as exc:
        raise self.retry(exc=exc, countdown=30 * (2 ** self.request.retries))
    return "sent"


@shared_task
def schedule_appointment_reminders(appointment_id: int) -> int:
    """Queue reminders 24h and 2h before the appointment."""
    appointment = _load_appointment(appointment_id)
    if appointment is None or appointment.status == AppointmentStatus.CANCELLED:
        return 0
    return schedule_reminders(appointment)


@shared_task
def cancel_appointment_reminders(appointment_id: int) -> int:
    appointment = _load_appointment(appointment_id)
    if appointment is None:
        return 0
    return cancel_reminders(appointment)


@shared_task
def dispatch_due_reminders() -> int:
    """Send reminders that are due; failures back off exponentially."""
    now = timezone.now()
    lease_cutoff = now - timedelta(seconds=REMINDER_LEASE_SECONDS)
    claimed: list[ScheduledReminder] = []

    with transaction.atomic():
        candidates = list(
            ScheduledReminder.objects.select_for_update(skip_locked=True)
            .filter(
                Q(status__in=[ReminderStatus.PENDING, ReminderStatus.FAILED], scheduled_for__lte=now)
                # Claimed by a worker that never finished.
                | Q(status=ReminderStatus.SENDING, updated_at__lt=lease_cutoff),
                attempts__lt=F("max_attempts"),
            )
            .order_by("scheduled_for")[:REMINDER_BATCH_SIZE]
        )
        for reminder in candidates:
            reminder.status = ReminderStatus.SENDING
            reminder.attempts += 1
            reminder.save(update_fields=["status", "attempts", "updated_at"])
            claimed.append(reminder)

    sent = 0
    for reminder in claimed:
        appointment = _load_appointment(reminder.appointment_id)
        if appointment is None or appointment.status == AppointmentStatus.CANCELLED:
            reminder.status = ReminderStatus.CANCELLED
            reminder.save(update_fields=["status", "updated_at"])
            continue
        try:
            send_whatsapp(appointment, reminder.kind)
        except NotificationBackendError as exc:
            reminder.status = (
                ReminderStatus.FAILED
                if reminder.attempts < reminder.max_attempts
                else ReminderStatus.CANCELLED
            )
            reminder.last_error = str(exc)
            reminder.scheduled_for = timezone.now() + timedelta(
                seconds=min(REMINDER_BACKOFF_MAX_SECONDS, 2 ** reminder.attempts)
            )
            reminder.save(update_fields=["status", "last_error", "scheduled_for", "updated_at"])
            logger.warning(
                "reminder.failed",
                extra={"reminder_id": reminder.id, "attempt": reminder.attempts, "error": str(exc)},
            )
            continue
        reminder.status = ReminderStatus.SENT
        reminder.sent_at = timezone.now()
        reminder.save(update_fields=["status", "sent_at", "updated_at"])
        sent += 1
    return sent
