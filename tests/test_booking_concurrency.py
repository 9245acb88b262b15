import os
import threading
from datetime import time

import pytest
from django.db import connection

from apps.appointments.booking import BookingResult, create_appointment
from apps.appointments.models import Appointment, AppointmentStatus
from apps.common.errors import SlotTaken
from apps.patients.models import Patient
from apps.patients.services import PatientInfo
from tests.factories import make_appointment

TEN = time(10, 0)
CONTENDERS = 6


def _patient(number: int) -> PatientInfo:
    return PatientInfo(
        first_name="Paciente",
        last_name=str(number),
        email=f"paciente{number}@example.com",
        whatsapp_number=f"11555501{number:02d}",
        country_code="+54",
    )


@pytest.mark.skipif(
    not os.environ.get("DB_NAME"),
    reason="row locks need PostgreSQL (set the DB_* variables)",
)
@pytest.mark.django_db(transaction=True)
def test_concurrent_bookings_sell_the_slot_once(professional, availability, booking_date):
    barrier = threading.Barrier(CONTENDERS)
    outcomes = []
    lock = threading.Lock()

    def book(number):
        try:
            barrier.wait()
            result = create_appointment(professional.slug, _patient(number), booking_date, TEN)
        except Exception as exc:
            result = exc
        finally:
            connection.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=book, args=(n,)) for n in range(CONTENDERS)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    booked = [item for item in outcomes if isinstance(item, BookingResult)]
    taken = [item for item in outcomes if isinstance(item, SlotTaken)]
    assert len(booked) == 1
    assert len(taken) == CONTENDERS - 1
    assert Appointment.objects.filter(date=booking_date, start_time=TEN).count() == 1
    assert Patient.objects.count() == 1


@pytest.mark.django_db
def test_slot_constraint_violation_is_reported_as_slot_taken(
    professional, availability, booking_date, patient_info, monkeypatch
):
    make_appointment(professional, booking_date, TEN, status=AppointmentStatus.CONFIRMED)
    # Let the insert reach the database so the partial unique index decides.
    monkeypatch.setattr(
        Appointment.objects, "overlapping", lambda *args, **kwargs: Appointment.objects.none()
    )

    with pytest.raises(SlotTaken):
        create_appointment(professional.slug, patient_info, booking_date, TEN)

    assert Appointment.objects.filter(date=booking_date, start_time=TEN).count() == 1
    assert not Patient.objects.filter(email=patient_info.email).exists()
