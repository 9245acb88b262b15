"""Real-time event publisher.

A publisher is an object with ``start()``, ``stop()`` and
``publish(channel, event, payload)``. The instance configured by
``REALTIME_PUBLISHER`` is created on first use and may be replaced with
``set_publisher`` (tests install an in-memory recorder).
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Tuple

from django.conf import settings
from django.db import transaction
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_publisher: "Publisher | None" = None


class Publisher:
    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass

    def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class LoggingPublisher(Publisher):
    def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        logger.info("realtime.publish", extra={"channel": channel, "event": event})


class MemoryPublisher(Publisher):
    """Keeps published events in a list; useful in tests."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []
        self.started = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((channel, event, payload))


def get_publisher() -> Publisher:
    global _publisher
    with _lock:
        if _publisher is None:
            path = getattr(
                settings, "REALTIME_PUBLISHER", "apps.notifications.publishers.LoggingPublisher"
            )
            _publisher = import_string(path)()
            _publisher.start()
        return _publisher


def set_publisher(publisher: Publisher | None) -> Publisher | None:
    """Install ``publisher`` and return the previous one (stopped)."""

    global _publisher
    with _lock:
        previous, _publisher = _publisher, publisher
    if previous is not None:
        previous.stop()
    if publisher is not None:
        publisher.start()
    return previous


def professional_channel(professional) -> str:
    return f"professional:{professional.id}"


def publish_after_commit(professional, event: str, payload: Dict[str, Any]) -> None:
    """Publish once the surrounding transaction commits; failures are logged."""

    channel = professional_channel(professional)

    def _publish() -> None:
        try:
            get_publisher().publish(channel, event, payload)
        except Exception:  # pragma: no cover - best-effort side effect
            logger.exception("realtime.publish_failed", extra={"channel": channel, "event": event})

    transaction.on_commit(_publish)
