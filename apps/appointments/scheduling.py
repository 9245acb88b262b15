from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import List
from zoneinfo import ZoneInfo

from django.utils import timezone

from apps.appointments.models import Appointment
from apps.common.utils import format_hhmm
from apps.holds.services import get_held_slots_for_date
from apps.professionals.models import Professional


@dataclass
class SlotOption:
    time: str
    available: bool


@dataclass
class DaySchedule:
    date: date
    is_blocked: bool = False
    appointment_duration: int | None = None
    slots: List[SlotOption] = field(default_factory=list)


def available_slots(
    professional: Professional, date_value: date, session_id: str | None = None
) -> DaySchedule:
    """Build the bookable grid for one day.

    Slots held by the caller's own session stay available to them; slots
    that already started today are omitted.
    """

    if professional.blocked_dates.filter(date=date_value).exists():
        return DaySchedule(date=date_value, is_blocked=True)

    windows = professional.availabilities.active().filter(
        day_of_week=date_value.weekday()
    ).order_by("slot_number", "start_time")
    if not windows:
        return DaySchedule(date=date_value)

    duration = timedelta(minutes=professional.appointment_duration_minutes)
    tz = ZoneInfo(professional.timezone or "UTC")
    now = timezone.now().astimezone(tz)

    booked = list(
        Appointment.objects.active()
        .for_day(professional, date_value)
        .values_list("start_time", "end_time")
    )
    held_by_others = {
        held.time
        for held in get_held_slots_for_date(professional, date_value, session_id)
        if not held.is_held_by_current_session
    }

    schedule = DaySchedule(
        date=date_value, appointment_duration=professional.appointment_duration_minutes
    )
    for window in windows:
        slot_start = datetime.combine(date_value, window.start_time, tzinfo=tz)
        window_end = datetime.combine(date_value, window.end_time, tzinfo=tz)
        while slot_start + duration <= window_end:
            slot_end = slot_start + duration
            if slot_start > now:
                label = format_hhmm(slot_start)
                taken = _overlaps(booked, slot_start.time(), slot_end.time())
                schedule.slots.append(
                    SlotOption(time=label, available=not taken and label not in held_by_others)
                )
            slot_start = slot_end
    return schedule


def _overlaps(booked, start: time, end: time) -> bool:
    return any(start < booked_end and end > booked_start for booked_start, booked_end in booked)
