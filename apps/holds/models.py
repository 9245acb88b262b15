"""Domain models for temporary slot holds."""

from django.db import models

from apps.common.utils import is_expired, now_utc
from apps.professionals.models import Professional


class SlotHoldQuerySet(models.QuerySet):
    def for_key(self, professional, date_value, start_time):
        return self.filter(professional=professional, date=date_value, start_time=start_time)

    def active(self, now=None):
        return self.filter(expires_at__gt=now or now_utc())

    def expired(self, now=None):
        return self.filter(expires_at__lte=now or now_utc())


class SlotHold(models.Model):
    """Session-scoped advisory reservation of a (professional, date, time) slot."""

    professional = models.ForeignKey(
        Professional, on_delete=models.CASCADE, related_name="slot_holds"
    )
    date = models.DateField()
    start_time = models.TimeField()
    session_id = models.CharField(max_length=100)
    renewals = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField(db_index=True)

    objects = SlotHoldQuerySet.as_manager()

    class Meta:
        ordering = ["date", "start_time"]
        constraints = [
            models.UniqueConstraint(
                fields=["professional", "date", "start_time"],
                name="unique_slot_hold_per_key",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.professional_id}:{self.date}:{self.start_time} ({self.session_id})"

    def is_expired(self, now=None) -> bool:
        return is_expired(self.expires_at, now=now)
