"""Domain models for the patients module."""

from django.db import models

from apps.common.models import TimeStampedModel
from apps.professionals.models import Professional


class Patient(TimeStampedModel):
    """Contact record of someone who booked with a professional."""

    professional = models.ForeignKey(
        Professional, on_delete=models.CASCADE, related_name="patients"
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(blank=True)
    country_code = models.CharField(max_length=5, blank=True)
    whatsapp_number = models.CharField(max_length=32, db_index=True)

    class Meta:
        unique_together = ("professional", "whatsapp_number")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.full_name

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
