"""Public booking endpoints: slot grid, booking, lookup, cancellation, deposit."""

from __future__ import annotations

import re
from typing import Any, Dict

from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.utils import timezone
from rest_framework import status
from rest_framework.views import APIView

from apps.appointments.booking import (
    cancel_appointment_by_patient,
    create_appointment,
    create_deposit_payment,
    get_appointment_by_reference,
    get_bookable_professional,
)
from apps.appointments.models import Appointment
from apps.appointments.scheduling import available_slots
from apps.common.api import WriteRateThrottle, ok_response, request_payload
from apps.common.errors import InvalidRequest
from apps.common.utils import format_hhmm, parse_date, parse_hhmm
from apps.patients.services import PatientInfo

PHONE_RE = re.compile(r"^\d{6,15}$")
COUNTRY_CODE_RE = re.compile(r"^\+\d{1,4}$")


class AvailableSlotsView(APIView):
    def get(self, request, slug: str):
        date_value = parse_date(request.query_params.get("date"))
        professional = get_bookable_professional(slug)
        if date_value < timezone.localdate():
            raise InvalidRequest("No se pueden reservar fechas pasadas.")
        schedule = available_slots(
            professional, date_value, request.query_params.get("sessionId") or None
        )
        return ok_response(
            {
                "date": schedule.date.isoformat(),
                "isBlocked": schedule.is_blocked,
                "appointmentDuration": schedule.appointment_duration,
                "slots": [{"time": slot.time, "available": slot.available} for slot in schedule.slots],
            }
        )


class BookingCreateView(APIView):
    """Book a slot on a professional's public page."""

    throttle_classes = [WriteRateThrottle]

    def post(self, request, slug: str):
        payload = request_payload(request)
        patient = _parse_patient(payload)
        date_value = parse_date(payload.get("date"))
        start_time = parse_hhmm(payload.get("time"))
        if date_value < timezone.localdate():
            raise InvalidRequest("La fecha debe ser hoy o posterior.")
        session_id = str(payload.get("sessionId") or "").strip() or None
        if session_id and len(session_id) > 100:
            raise InvalidRequest()
        custom_fields = payload.get("customFieldValues") or {}
        if not isinstance(custom_fields, dict):
            raise InvalidRequest()

        result = create_appointment(
            slug,
            patient,
            date_value,
            start_time,
            session_id=session_id,
            custom_field_values=custom_fields,
        )
        data = serialize_appointment(result.appointment)
        data["requiresDeposit"] = result.requires_deposit
        return ok_response(data, status_code=status.HTTP_201_CREATED)


class BookingDetailView(APIView):
    def get(self, request, reference: str):
        email = request.query_params.get("email")
        if not email:
            raise InvalidRequest()
        appointment = get_appointment_by_reference(reference, email)
        return ok_response(serialize_appointment(appointment))


class BookingCancelView(APIView):
    throttle_classes = [WriteRateThrottle]

    def post(self, request, reference: str):
        payload = request_payload(request)
        email = str(payload.get("email") or "").strip()
        reason = str(payload.get("reason") or payload.get("cancellationReason") or "").strip()
        if not email or len(reason) > 500:
            raise InvalidRequest()
        appointment = cancel_appointment_by_patient(reference, email, reason)
        return ok_response(serialize_appointment(appointment))


class BookingDepositView(APIView):
    throttle_classes = [WriteRateThrottle]

    def post(self, request, reference: str):
        email = str(request_payload(request).get("email") or "").strip()
        if not email:
            raise InvalidRequest()
        return ok_response(create_deposit_payment(reference, email))


def _parse_patient(payload: Dict[str, Any]) -> PatientInfo:
    first_name = str(payload.get("firstName") or "").strip()
    last_name = str(payload.get("lastName") or "").strip()
    email = str(payload.get("email") or "").strip().lower()
    whatsapp = re.sub(r"\D", "", str(payload.get("whatsappNumber") or ""))
    country_code = str(payload.get("countryCode") or "+54").strip()

    if not first_name or not last_name or len(first_name) > 100 or len(last_name) > 100:
        raise InvalidRequest()
    try:
        validate_email(email)
    except ValidationError:
        raise InvalidRequest()
    if not PHONE_RE.match(whatsapp) or not COUNTRY_CODE_RE.match(country_code):
        raise InvalidRequest()
    return PatientInfo(
        first_name=first_name,
        last_name=last_name,
        email=email,
        whatsapp_number=whatsapp,
        country_code=country_code,
    )


def serialize_appointment(appointment: Appointment) -> Dict[str, Any]:
    professional = appointment.professional
    return {
        "bookingReference": appointment.booking_reference,
        "status": appointment.status,
        "date": appointment.date.isoformat(),
        "startTime": format_hhmm(appointment.start_time),
        "endTime": format_hhmm(appointment.end_time),
        "professional": {"slug": professional.slug, "name": professional.full_name},
        "patient": {
            "firstName": appointment.patient.first_name,
            "lastName": appointment.patient.last_name,
        },
        "depositRequired": appointment.deposit_required,
        "depositAmount": str(appointment.deposit_amount) if appointment.deposit_amount is not None else None,
        "depositPaid": appointment.deposit_paid,
        "cancellable": appointment.is_cancellable,
    }
