import hashlib
import hmac
from datetime import time, timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone

from apps.billing.models import SubscriptionPlan
from apps.notifications.publishers import MemoryPublisher, set_publisher
from apps.patients.services import PatientInfo
from apps.professionals.models import Availability, Professional
from config.celery import app as celery_app


@pytest.fixture(autouse=True)
def _isolated_side_effects():
    cache.clear()
    celery_app.conf.CELERY_TASK_ALWAYS_EAGER = True
    yield
    celery_app.conf.CELERY_TASK_ALWAYS_EAGER = False


@pytest.fixture
def publisher():
    recorder = MemoryPublisher()
    set_publisher(recorder)
    yield recorder
    set_publisher(None)


@pytest.fixture
def professional(db):
    return Professional.objects.create(
        slug="dra-gomez",
        first_name="Lucía",
        last_name="Gómez",
        email="lucia@example.com",
        timezone="America/Argentina/Buenos_Aires",
        appointment_duration_minutes=30,
    )


@pytest.fixture
def deposit_professional(db):
    return Professional.objects.create(
        slug="dr-deposito",
        first_name="Mario",
        last_name="Pérez",
        timezone="America/Argentina/Buenos_Aires",
        appointment_duration_minutes=30,
        deposit_enabled=True,
        deposit_amount=Decimal("5000.00"),
    )


def _open_every_day(professional):
    for weekday in range(7):
        Availability.objects.create(
            professional=professional,
            day_of_week=weekday,
            slot_number=1,
            start_time=time(9, 0),
            end_time=time(17, 0),
        )


@pytest.fixture
def availability(professional):
    _open_every_day(professional)
    return professional.availabilities.all()


@pytest.fixture
def deposit_availability(deposit_professional):
    _open_every_day(deposit_professional)
    return deposit_professional.availabilities.all()


@pytest.fixture
def booking_date():
    return timezone.localdate() + timedelta(days=7)


@pytest.fixture
def patient_info():
    return PatientInfo(
        first_name="Ana",
        last_name="López",
        email="ana@example.com",
        whatsapp_number="1155550100",
        country_code="+54",
    )


@pytest.fixture
def plan(db):
    return SubscriptionPlan.objects.create(
        name="Profesional",
        price_monthly=Decimal("19999.00"),
        price_annual=Decimal("199990.00"),
    )


@pytest.fixture
def mp_signature():
    def _sign(secret: str, data_id: str, request_id: str, ts: str = "1700000000") -> str:
        manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
        digest = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
        return f"ts={ts},v1={digest}"

    return _sign
