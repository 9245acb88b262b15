from datetime import date, datetime, time, timedelta

from apps.appointments.models import Appointment, AppointmentStatus
from apps.patients.models import Patient

_counter = {"value": 0}


def _next() -> int:
    _counter["value"] += 1
    return _counter["value"]


def make_patient(professional, **overrides) -> Patient:
    number = _next()
    defaults = {
        "first_name": "Paciente",
        "last_name": f"N{number}",
        "email": f"paciente{number}@example.com",
        "country_code": "+54",
        "whatsapp_number": f"+54911000{number:05d}",
    }
    defaults.update(overrides)
    return Patient.objects.create(professional=professional, **defaults)


def make_appointment(
    professional,
    date_value: date,
    start_time: time,
    *,
    status: str = AppointmentStatus.PENDING,
    patient: Patient | None = None,
    **overrides,
) -> Appointment:
    end = (datetime.combine(date_value, start_time) + timedelta(
        minutes=professional.appointment_duration_minutes
    )).time()
    return Appointment.objects.create(
        professional=professional,
        patient=patient or make_patient(professional),
        date=date_value,
        start_time=start_time,
        end_time=end,
        status=status,
        booking_reference=overrides.pop("booking_reference", f"T{_next():05d}"),
        **overrides,
    )
