"""Post-commit side effects of booking and cancellation.

Everything here runs after the database transaction has committed and is
best effort: a failure to enqueue is logged and never reaches the patient.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from django.utils import timezone

from apps.appointments.models import Appointment
from apps.notifications.backends import get_whatsapp_backend
from apps.notifications.models import ReminderKind, ReminderStatus, ScheduledReminder

logger = logging.getLogger(__name__)

REMINDER_OFFSETS = (
    (ReminderKind.REMINDER_24H, timedelta(hours=24)),
    (ReminderKind.REMINDER_2H, timedelta(hours=2)),
)


def _enqueue(task, appointment_id: int) -> None:
    try:
        task.delay(appointment_id)
    except Exception:  # pragma: no cover - broker unavailable
        logger.exception(
            "notifications.enqueue_failed",
            extra={"task": task.name, "appointment_id": appointment_id},
        )


def enqueue_booking_notifications(appointment_id: int) -> None:
    from apps.workers import tasks

    for task in (
        tasks.sync_appointment_calendar,
        tasks.send_booking_confirmation_whatsapp,
        tasks.send_booking_confirmation_email,
        tasks.schedule_appointment_reminders,
    ):
        _enqueue(task, appointment_id)


def enqueue_cancellation_notifications(appointment_id: int) -> None:
    from apps.workers import tasks

    for task in (
        tasks.sync_appointment_calendar,
        tasks.send_cancellation_notice,
        tasks.cancel_appointment_reminders,
    ):
        _enqueue(task, appointment_id)


def schedule_reminders(appointment: Appointment) -> int:
    """Create the 24 h and 2 h reminders that are still in the future."""

    now = timezone.now()
    starts_at = appointment.starts_at
    created = 0
    for kind, offset in REMINDER_OFFSETS:
        due = starts_at - offset
        if due <= now:
            continue
        _, was_created = ScheduledReminder.objects.get_or_create(
            appointment=appointment, kind=kind, defaults={"scheduled_for": due}
        )
        created += int(was_created)
    return created


def cancel_reminders(appointment: Appointment) -> int:
    return ScheduledReminder.objects.filter(
        appointment=appointment, status=ReminderStatus.PENDING
    ).update(status=ReminderStatus.CANCELLED, updated_at=timezone.now())


def appointment_variables(appointment: Appointment) -> dict:
    return {
        "name": appointment.patient.first_name,
        "professional": appointment.professional.full_name,
        "date": appointment.date.isoformat(),
        "time": appointment.start_time.strftime("%H:%M"),
        "reference": appointment.booking_reference,
    }


def send_whatsapp(appointment: Appointment, template: str) -> str:
    return get_whatsapp_backend().send_template(
        appointment.patient.whatsapp_number, template, appointment_variables(appointment)
    )
