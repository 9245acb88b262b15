"""Domain models for the appointments module."""

from datetime import datetime
from zoneinfo import ZoneInfo

from django.db import models
from django.db.models import Q

from apps.common.models import TimeStampedModel
from apps.patients.models import Patient
from apps.professionals.models import CustomFormField, Professional


class AppointmentStatus(models.TextChoices):
    """Possible lifecycle states for an appointment."""

    PENDING = "pending", "Pending"
    PENDING_PAYMENT = "pending_payment", "Pending payment"
    CONFIRMED = "confirmed", "Confirmed"
    CANCELLED = "cancelled", "Cancelled"
    COMPLETED = "completed", "Completed"
    NO_SHOW = "no_show", "No show"


CANCELLABLE_STATUSES = (
    AppointmentStatus.PENDING,
    AppointmentStatus.PENDING_PAYMENT,
    AppointmentStatus.CONFIRMED,
)


class CancelledBy(models.TextChoices):
    PATIENT = "patient", "Patient"
    PROFESSIONAL = "professional", "Professional"
    SYSTEM = "system", "System"


class AppointmentQuerySet(models.QuerySet):
    """Custom queryset helpers for appointments."""

    def active(self):
        return self.exclude(status=AppointmentStatus.CANCELLED)

    def for_day(self, professional, date_value):
        return self.filter(professional=professional, date=date_value)

    def overlapping(self, professional, date_value, start_time, end_time):
        return (
            self.active()
            .for_day(professional, date_value)
            .filter(start_time__lt=end_time, end_time__gt=start_time)
        )


class Appointment(TimeStampedModel):
    """A booked slot; never deleted, only cancelled."""

    professional = models.ForeignKey(
        Professional, on_delete=models.CASCADE, related_name="appointments"
    )
    patient = models.ForeignKey(
        Patient, on_delete=models.PROTECT, related_name="appointments"
    )
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    status = models.CharField(
        max_length=16,
        choices=AppointmentStatus.choices,
        default=AppointmentStatus.PENDING,
    )
    booking_reference = models.CharField(max_length=12, unique=True)
    deposit_required = models.BooleanField(default=False)
    deposit_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    deposit_paid = models.BooleanField(default=False)
    deposit_paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)
    cancelled_by = models.CharField(max_length=16, choices=CancelledBy.choices, blank=True)
    calendar_event_id = models.CharField(max_length=255, blank=True)

    objects = AppointmentQuerySet.as_manager()

    class Meta:
        ordering = ["date", "start_time"]
        indexes = [models.Index(fields=["professional", "date"], name="appointment_prof_date_idx")]
        constraints = [
            models.UniqueConstraint(
                fields=["professional", "date", "start_time"],
                name="prevent_double_booking",
                condition=~Q(status=AppointmentStatus.CANCELLED),
            ),
        ]

    def __str__(self) -> str:
        return f"{self.booking_reference} {self.date} {self.start_time}"

    @property
    def starts_at(self) -> datetime:
        """Aware start instant in the professional's timezone."""
        tz = ZoneInfo(self.professional.timezone or "UTC")
        return datetime.combine(self.date, self.start_time, tzinfo=tz)

    @property
    def is_cancellable(self) -> bool:
        return self.status in CANCELLABLE_STATUSES


class AppointmentCustomFieldValue(models.Model):
    """Answer to a professional's custom booking-form question."""

    appointment = models.ForeignKey(
        Appointment, on_delete=models.CASCADE, related_name="custom_field_values"
    )
    custom_field = models.ForeignKey(
        CustomFormField, on_delete=models.PROTECT, related_name="values"
    )
    value = models.TextField(blank=True)

    class Meta:
        unique_together = ("appointment", "custom_field")
