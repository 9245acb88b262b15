"""Delivery backends for calendar sync and WhatsApp messages.

The configured classes are loaded from settings with ``import_string``;
the logging implementations are used in development and tests.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class NotificationBackendError(RuntimeError):
    """Raised when a provider rejects or cannot receive a message."""


class LoggingCalendarBackend:
    def create_event(self, appointment) -> str:
        logger.info(
            "calendar.event_created",
            extra={"appointment_id": appointment.id, "reference": appointment.booking_reference},
        )
        return f"local-{appointment.booking_reference}"

    def delete_event(self, appointment) -> None:
        logger.info("calendar.event_deleted", extra={"appointment_id": appointment.id})


class LoggingWhatsAppBackend:
    def send_template(self, to: str, template: str, variables: dict) -> str:
        logger.info(
            "whatsapp.sent",
            extra={"template": template, "variables": sorted(variables)},
        )
        return f"simulated-{template}"


@lru_cache(maxsize=None)
def get_calendar_backend():
    return import_string(
        getattr(settings, "CALENDAR_SYNC_BACKEND", "apps.notifications.backends.LoggingCalendarBackend")
    )()


@lru_cache(maxsize=None)
def get_whatsapp_backend():
    return import_string(
        getattr(settings, "WHATSAPP_BACKEND", "apps.notifications.backends.LoggingWhatsAppBackend")
    )()
