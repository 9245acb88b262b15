"""Patient upsert used by the booking transaction."""

from __future__ import annotations

from dataclasses import dataclass

from apps.patients.models import Patient
from apps.patients.utils import whatsapp_key
from apps.professionals.models import Professional


@dataclass(frozen=True)
class PatientInfo:
    first_name: str
    last_name: str
    email: str
    whatsapp_number: str
    country_code: str = "+54"

    @property
    def contact_key(self) -> str:
        return whatsapp_key(self.country_code, self.whatsapp_number)


def upsert_patient(professional: Professional, info: PatientInfo) -> Patient:
    """Match on professional + WhatsApp number, refreshing name and email.

    Must run inside the caller's transaction; the row is locked so two
    bookings by the same patient do not overwrite each other's profile.
    """

    patient = (
        Patient.objects.select_for_update()
        .filter(professional=professional, whatsapp_number=info.contact_key)
        .first()
    )
    if patient is None:
        return Patient.objects.create(
            professional=professional,
            first_name=info.first_name,
            last_name=info.last_name,
            email=info.email,
            country_code=info.country_code,
            whatsapp_number=info.contact_key,
        )

    patient.first_name = info.first_name
    patient.last_name = info.last_name
    patient.email = info.email
    patient.save(update_fields=["first_name", "last_name", "email", "updated_at"])
    return patient
