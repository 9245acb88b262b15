from io import StringIO

import pytest
from django.conf import settings
from django.core.management import CommandError, call_command

from apps.billing.models import SubscriptionPlan
from apps.professionals.models import Availability, BlockedDate, CustomFormField, Professional

pytestmark = pytest.mark.django_db

SEEDS = settings.BASE_DIR / "seeds"


def _seed():
    out = StringIO()
    call_command(
        "seed_data",
        professionals_file=str(SEEDS / "professionals_seed.json"),
        plans_file=str(SEEDS / "plans.yaml"),
        stdout=out,
    )
    return out.getvalue()


def test_seed_data_imports_professionals_and_plans():
    output = _seed()

    assert "2 professionals, 2 plans" in output
    gomez = Professional.objects.get(slug="dra-gomez")
    assert gomez.deposit_enabled is True
    assert gomez.appointment_duration_minutes == 45
    assert Availability.objects.filter(professional=gomez).count() == 4
    assert BlockedDate.objects.filter(professional=gomez).count() == 1
    assert CustomFormField.objects.filter(professional=gomez).count() == 2
    assert set(SubscriptionPlan.objects.values_list("name", flat=True)) == {"Básico", "Profesional"}


def test_seed_data_is_idempotent():
    _seed()
    _seed()

    assert Professional.objects.count() == 2
    assert Availability.objects.count() == 6
    assert SubscriptionPlan.objects.count() == 2


def test_seed_data_rejects_missing_file(tmp_path):
    with pytest.raises(CommandError):
        call_command(
            "seed_data",
            professionals_file=str(tmp_path / "missing.json"),
            plans_file=str(SEEDS / "plans.yaml"),
        )
