from datetime import time, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from apps.appointments.models import Appointment, AppointmentStatus
from apps.holds.models import SlotHold
from apps.notifications.backends import NotificationBackendError
from apps.notifications.models import ReminderKind, ReminderStatus, ScheduledReminder
from apps.workers import tasks
from tests.factories import make_appointment

pytestmark = pytest.mark.django_db


def test_schedule_reminders_creates_future_reminders_once(professional, booking_date):
    appointment = make_appointment(professional, booking_date, time(10, 0))

    assert tasks.schedule_appointment_reminders(appointment.id) == 2
    assert tasks.schedule_appointment_reminders(appointment.id) == 0
    kinds = set(ScheduledReminder.objects.values_list("kind", flat=True))
    assert kinds == {ReminderKind.REMINDER_24H, ReminderKind.REMINDER_2H}


def test_schedule_reminders_skips_past_offsets(professional):
    starts = timezone.now().astimezone(
        timezone.get_current_timezone()
    ).replace(second=0, microsecond=0) + timedelta(hours=3)
    professional.timezone = str(timezone.get_current_timezone())
    professional.save()
    appointment = make_appointment(professional, starts.date(), starts.time())

    assert tasks.schedule_appointment_reminders(appointment.id) == 1
    assert ScheduledReminder.objects.get().kind == ReminderKind.REMINDER_2H


def test_dispatch_due_reminders(professional, booking_date):
    due = timezone.now() - timedelta(minutes=1)
    active = make_appointment(professional, booking_date, time(10, 0))
    cancelled = make_appointment(professional, booking_date, time(11, 0), status=AppointmentStatus.CANCELLED)
    sent = ScheduledReminder.objects.create(appointment=active, kind=ReminderKind.REMINDER_24H, scheduled_for=due)
    dropped = ScheduledReminder.objects.create(appointment=cancelled, kind=ReminderKind.REMINDER_24H, scheduled_for=due)
    later = ScheduledReminder.objects.create(
        appointment=active, kind=ReminderKind.REMINDER_2H, scheduled_for=timezone.now() + timedelta(hours=1)
    )

    assert tasks.dispatch_due_reminders() == 1

    sent.refresh_from_db()
    dropped.refresh_from_db()
    later.refresh_from_db()
    assert sent.status == ReminderStatus.SENT and sent.sent_at is not None
    assert dropped.status == ReminderStatus.CANCELLED
    assert later.status == ReminderStatus.PENDING


def test_dispatch_failure_backs_off(professional, booking_date, monkeypatch):
    appointment = make_appointment(professional, booking_date, time(10, 0))
    reminder = ScheduledReminder.objects.create(
        appointment=appointment,
        kind=ReminderKind.REMINDER_24H,
        scheduled_for=timezone.now() - timedelta(minutes=1),
    )

    def _fail(*args, **kwargs):
        raise NotificationBackendError("provider down")

    monkeypatch.setattr(tasks, "send_whatsapp", _fail)

    assert tasks.dispatch_due_reminders() == 0
    reminder.refresh_from_db()
    assert reminder.status == ReminderStatus.FAILED
    assert reminder.attempts == 1
    assert reminder.last_error == "provider down"
    assert reminder.scheduled_for > timezone.now()


def test_release_unpaid_deposits(deposit_professional, booking_date):
    overdue = make_appointment(
        deposit_professional,
        booking_date,
        time(10, 0),
        status=AppointmentStatus.PENDING_PAYMENT,
        deposit_required=True,
        deposit_amount=Decimal("5000.00"),
    )
    fresh = make_appointment(
        deposit_professional,
        booking_date,
        time(11, 0),
        status=AppointmentStatus.PENDING_PAYMENT,
        deposit_required=True,
        deposit_amount=Decimal("5000.00"),
    )
    Appointment.objects.filter(id=overdue.id).update(created_at=timezone.now() - timedelta(minutes=45))

    assert tasks.release_unpaid_deposits() == 1

    overdue.refresh_from_db()
    fresh.refresh_from_db()
    assert overdue.status == AppointmentStatus.CANCELLED
    assert overdue.cancelled_by == "system"
    assert fresh.status == AppointmentStatus.PENDING_PAYMENT


def test_calendar_sync_creates_and_removes_event(professional, booking_date):
    appointment = make_appointment(professional, booking_date, time(10, 0))

    assert tasks.sync_appointment_calendar(appointment.id) == "synced"
    appointment.refresh_from_db()
    assert appointment.calendar_event_id == f"local-{appointment.booking_reference}"

    appointment.status = AppointmentStatus.CANCELLED
    appointment.save()
    assert tasks.sync_appointment_calendar(appointment.id) == "deleted"
    appointment.refresh_from_db()
    assert appointment.calendar_event_id == ""


def test_cleanup_task_removes_expired_holds(professional, booking_date):
    SlotHold.objects.create(
        professional=professional,
        date=booking_date,
        start_time=time(10, 0),
        session_id="stale",
        expires_at=timezone.now() - timedelta(seconds=1),
    )

    assert tasks.cleanup_expired_slot_holds() == 1
    assert not SlotHold.objects.exists()


def test_missing_appointment_is_tolerated():
    assert tasks.send_booking_confirmation_email(424242) == "missing"
    assert tasks.schedule_appointment_reminders(424242) == 0


def test_dispatch_reclaims_abandoned_sending_rows(professional, booking_date):
    appointment = make_appointment(professional, booking_date, time(10, 0))
    stale = ScheduledReminder.objects.create(
        appointment=appointment,
        kind=ReminderKind.REMINDER_24H,
        scheduled_for=timezone.now() - timedelta(hours=1),
        status=ReminderStatus.SENDING,
        attempts=1,
    )
    in_flight = ScheduledReminder.objects.create(
        appointment=appointment,
        kind=ReminderKind.REMINDER_2H,
        scheduled_for=timezone.now() - timedelta(minutes=1),
        status=ReminderStatus.SENDING,
        attempts=1,
    )
    ScheduledReminder.objects.filter(id=stale.id).update(
        updated_at=timezone.now() - timedelta(seconds=tasks.REMINDER_LEASE_SECONDS + 60)
    )

    assert tasks.dispatch_due_reminders() == 1

    stale.refresh_from_db()
    in_flight.refresh_from_db()
    assert stale.status == ReminderStatus.SENT
    assert stale.attempts == 2
    assert in_flight.status == ReminderStatus.SENDING
