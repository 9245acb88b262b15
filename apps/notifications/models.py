"""Queued patient notifications (appointment reminders)."""

from django.db import models

from apps.appointments.models import Appointment
from apps.common.models import TimeStampedModel


class ReminderKind(models.TextChoices):
    REMINDER_24H = "reminder_24h", "24 hours before"
    REMINDER_2H = "reminder_2h", "2 hours before"


class ReminderStatus(models.TextChoices):
    """Lifecycle status for queued reminders."""

    PENDING = "pending", "Pending"
    SENDING = "sending", "Sending"
    SENT = "sent", "Sent"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


class ScheduledReminder(TimeStampedModel):
    """WhatsApp reminder due at ``scheduled_for`` for one appointment."""

    appointment = models.ForeignKey(
        Appointment, on_delete=models.CASCADE, related_name="reminders"
    )
    kind = models.CharField(max_length=20, choices=ReminderKind.choices)
    scheduled_for = models.DateTimeField()
    status = models.CharField(
        max_length=20, choices=ReminderStatus.choices, default=ReminderStatus.PENDING
    )
    attempts = models.PositiveIntegerField(default=0)
    max_attempts = models.PositiveIntegerField(default=5)
    last_error = models.TextField(blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [models.Index(fields=["status", "scheduled_for"], name="reminder_status_due_idx")]
        ordering = ["scheduled_for"]
        constraints = [
            models.UniqueConstraint(
                fields=["appointment", "kind"], name="unique_reminder_per_appointment"
            ),
        ]
