"""Tenant records: professionals and their booking configuration."""

from django.conf import settings
from django.db import models

from apps.common.models import TimeStampedModel, ToggleableModel


class WeekdayChoices(models.IntegerChoices):
    """Weekday enumeration aligned with Python's weekday numbering."""

    MONDAY = 0, "Monday"
    TUESDAY = 1, "Tuesday"
    WEDNESDAY = 2, "Wednesday"
    THURSDAY = 3, "Thursday"
    FRIDAY = 4, "Friday"
    SATURDAY = 5, "Saturday"
    SUNDAY = 6, "Sunday"


class ProfessionalQuerySet(models.QuerySet):
    def bookable(self):
        return self.filter(is_active=True, is_suspended=False)


def _default_duration() -> int:
    return int(getattr(settings, "DEFAULT_APPOINTMENT_DURATION_MINUTES", 30))


class Professional(TimeStampedModel):
    """A tenant of the platform whose public page accepts bookings."""

    slug = models.SlugField(unique=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(blank=True)
    timezone = models.CharField(max_length=64, default="America/Argentina/Buenos_Aires")
    is_active = models.BooleanField(default=True)
    is_suspended = models.BooleanField(default=False)
    deposit_enabled = models.BooleanField(default=False)
    deposit_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    appointment_duration_minutes = models.PositiveIntegerField(default=_default_duration)

    objects = ProfessionalQuerySet.as_manager()

    class Meta:
        ordering = ["last_name", "first_name"]

    def __str__(self) -> str:
        return self.full_name

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def requires_deposit(self) -> bool:
        return bool(self.deposit_enabled and self.deposit_amount)


class Availability(ToggleableModel):
    """Weekly working window; a weekday may have several numbered windows."""

    professional = models.ForeignKey(
        Professional, on_delete=models.CASCADE, related_name="availabilities"
    )
    day_of_week = models.PositiveSmallIntegerField(choices=WeekdayChoices.choices)
    slot_number = models.PositiveSmallIntegerField(default=1)
    start_time = models.TimeField()
    end_time = models.TimeField()

    class Meta:
        unique_together = ("professional", "day_of_week", "slot_number")
        ordering = ["professional_id", "day_of_week", "slot_number"]

    def __str__(self) -> str:
        return (
            f"{self.professional} {self.get_day_of_week_display()} "
            f"{self.start_time}-{self.end_time}"
        )


class BlockedDate(TimeStampedModel):
    """A whole day on which the professional takes no bookings."""

    professional = models.ForeignKey(
        Professional, on_delete=models.CASCADE, related_name="blocked_dates"
    )
    date = models.DateField()
    reason = models.CharField(max_length=255, blank=True)

    class Meta:
        unique_together = ("professional", "date")
        ordering = ["date"]


class CustomFieldType(models.TextChoices):
    TEXT = "TEXT", "Text"
    TEXTAREA = "TEXTAREA", "Text area"
    SELECT = "SELECT", "Select"
    CHECKBOX = "CHECKBOX", "Checkbox"


class CustomFormField(ToggleableModel):
    """Extra question the professional adds to the public booking form."""

    professional = models.ForeignKey(
        Professional, on_delete=models.CASCADE, related_name="custom_fields"
    )
    field_name = models.CharField(max_length=100)
    field_type = models.CharField(
        max_length=16, choices=CustomFieldType.choices, default=CustomFieldType.TEXT
    )
    is_required = models.BooleanField(default=False)
    display_order = models.PositiveSmallIntegerField(default=0)
    options = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["professional_id", "display_order"]

    def __str__(self) -> str:
        return self.field_name
