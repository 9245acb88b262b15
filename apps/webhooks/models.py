"""Domain models for the webhooks module."""

from django.db import models
from django.utils import timezone


class WebhookEventStatus(models.TextChoices):
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


class WebhookEvent(models.Model):
    """Outcome of one payment notification delivery, keyed by payment and request id.

    Written once, together with the business changes it describes, and never
    updated afterwards: a redelivery with the same key replays ``response_body``.
    """

    payment_id = models.CharField(max_length=100)
    request_id = models.CharField(max_length=255)
    event_type = models.CharField(max_length=50)
    status = models.CharField(max_length=16, choices=WebhookEventStatus.choices)
    request_body = models.JSONField(default=dict)
    request_headers = models.JSONField(default=dict)
    response_body = models.JSONField(null=True, blank=True)
    error_message = models.TextField(blank=True)
    processed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-processed_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["payment_id", "request_id"], name="unique_webhook_delivery"
            ),
        ]

    def __str__(self) -> str:
        return f"{self.event_type}:{self.payment_id}:{self.request_id} ({self.status})"
