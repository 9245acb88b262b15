"""Slot hold manager.

Holds give a patient a short, exclusive claim on a slot while the booking
form is filled in. They are advisory: the booking coordinator re-checks the
appointment table inside its own transaction and never trusts a hold as
proof of availability.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from django.conf import settings
from django.db import IntegrityError, transaction

from apps.appointments.models import Appointment
from apps.common.errors import SlotContested, SlotTaken
from apps.common.utils import expires_at, format_hhmm, now_utc
from apps.holds.models import SlotHold
from apps.notifications.publishers import publish_after_commit
from apps.professionals.models import Professional

logger = logging.getLogger(__name__)

SLOT_HOLD_TTL_SECONDS = int(getattr(settings, "SLOT_HOLD_TTL_SECONDS", 300))
SLOT_HOLD_MAX_RENEWALS = getattr(settings, "SLOT_HOLD_MAX_RENEWALS", None)


@dataclass(frozen=True)
class HoldResult:
    hold_id: int
    expires_at: datetime
    renewed: bool = False


@dataclass(frozen=True)
class HoldStatus:
    is_held: bool
    is_held_by_current_session: bool
    expires_at: datetime | None = None


@dataclass(frozen=True)
class HeldSlot:
    time: str
    is_held_by_current_session: bool


def create_hold(
    professional: Professional, date_value: date, start_time: time, session_id: str
) -> HoldResult:
    """Create or refresh the caller's hold on a slot.

    Raises ``SlotContested`` when another session holds the slot (or the
    renewal limit is reached) and ``SlotTaken`` when it is already booked.
    """

    cleanup_expired_holds()
    now = now_utc()
    expiry = expires_at(SLOT_HOLD_TTL_SECONDS, now=now)

    try:
        with transaction.atomic():
            hold = (
                SlotHold.objects.select_for_update()
                .for_key(professional, date_value, start_time)
                .first()
            )
            if hold is not None and hold.is_expired(now):
                hold.delete()
                hold = None
            if hold is not None and hold.session_id != session_id:
                logger.info(
                    "slot_hold.contested",
                    extra={"professional_id": professional.id, "date": str(date_value), "time": format_hhmm(start_time)},
                )
                raise SlotContested()

            if _slot_booked(professional, date_value, start_time):
                raise SlotTaken()

            if hold is not None:
                if SLOT_HOLD_MAX_RENEWALS is not None and hold.renewals >= SLOT_HOLD_MAX_RENEWALS:
                    logger.info(
                        "slot_hold.renewal_limit",
                        extra={"hold_id": hold.id, "renewals": hold.renewals},
                    )
                    raise SlotContested()
                hold.expires_at = expiry
                hold.renewals += 1
                hold.save(update_fields=["expires_at", "renewals"])
                renewed = True
            else:
                hold = SlotHold.objects.create(
                    professional=professional,
                    date=date_value,
                    start_time=start_time,
                    session_id=session_id,
                    expires_at=expiry,
                )
                renewed = False
            publish_after_commit(
                professional,
                "slot.held",
                {"date": date_value.isoformat(), "time": format_hhmm(start_time)},
            )
    except IntegrityError:
        # A concurrent request inserted the first hold for this key.
        raise SlotContested()

    logger.info(
        "slot_hold.created",
        extra={"hold_id": hold.id, "renewed": renewed, "expires_at": hold.expires_at.isoformat()},
    )
    return HoldResult(hold_id=hold.id, expires_at=hold.expires_at, renewed=renewed)


def release_hold(
    professional: Professional, date_value: date, start_time: time, session_id: str
) -> bool:
    """Delete the caller's hold; absent or foreign holds are left untouched."""

    deleted, _ = (
        SlotHold.objects.for_key(professional, date_value, start_time)
        .filter(session_id=session_id)
        .delete()
    )
    if deleted:
        publish_after_commit(
            professional,
            "slot.released",
            {"date": date_value.isoformat(), "time": format_hhmm(start_time)},
        )
    return deleted > 0


def check_hold(
    professional: Professional,
    date_value: date,
    start_time: time,
    session_id: str | None = None,
) -> HoldStatus:
    hold = SlotHold.objects.for_key(professional, date_value, start_time).active().first()
    if hold is None:
        return HoldStatus(is_held=False, is_held_by_current_session=False)
    return HoldStatus(
        is_held=True,
        is_held_by_current_session=bool(session_id) and hold.session_id == session_id,
        expires_at=hold.expires_at,
    )


def get_held_slots_for_date(
    professional: Professional, date_value: date, session_id: str | None = None
) -> list[HeldSlot]:
    holds = SlotHold.objects.filter(professional=professional, date=date_value).active()
    return [
        HeldSlot(
            time=format_hhmm(hold.start_time),
            is_held_by_current_session=bool(session_id) and hold.session_id == session_id,
        )
        for hold in holds
    ]


def cleanup_expired_holds() -> int:
    """Delete every expired hold. Safe to run concurrently."""

    deleted, _ = SlotHold.objects.expired().delete()
    if deleted:
        logger.info("slot_hold.cleanup", extra={"deleted": deleted})
    return deleted


def validate_hold_for_booking(
    professional: Professional, date_value: date, start_time: time, session_id: str
) -> bool:
    """Return False only when a different session holds the slot right now.

    No hold, or an expired one, lets the booking proceed to the full
    availability re-check.
    """

    now = now_utc()
    hold = SlotHold.objects.for_key(professional, date_value, start_time).first()
    if hold is None:
        return True
    if hold.is_expired(now):
        SlotHold.objects.filter(id=hold.id, expires_at__lte=now).delete()
        return True
    return hold.session_id == session_id


def consume_hold(
    professional: Professional, date_value: date, start_time: time, session_id: str
) -> None:
    """Drop the caller's hold after a committed booking; never raises."""

    try:
        SlotHold.objects.for_key(professional, date_value, start_time).filter(
            session_id=session_id
        ).delete()
    except Exception:  # pragma: no cover - post-commit best effort
        logger.exception(
            "slot_hold.consume_failed",
            extra={"professional_id": professional.id, "date": str(date_value)},
        )


def _slot_booked(professional: Professional, date_value: date, start_time: time) -> bool:
    """True when any live appointment overlaps the slot starting at ``start_time``."""

    start = datetime.combine(date_value, start_time)
    end = start + timedelta(minutes=professional.appointment_duration_minutes)
    end_time = end.time() if end.date() == date_value else time.max
    return Appointment.objects.overlapping(
        professional, date_value, start_time, end_time
    ).exists()
