"""Error taxonomy shared by the booking endpoints."""

from __future__ import annotations

from django.utils.translation import gettext_lazy as _


class BookingError(Exception):
    """Base class for failures reported to booking clients.

    ``code`` is the stable machine-readable identifier placed in the
    ``error`` field of the response envelope; ``message`` is the localized
    text shown to the patient.
    """

    code = "INTERNAL"
    status_code = 500
    default_message = _("No pudimos completar la solicitud. Intenta nuevamente.")

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(str(self.message))


class NotFound(BookingError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = _("Profesional no encontrado.")


class InvalidRequest(BookingError):
    code = "INVALID_REQUEST"
    status_code = 400
    default_message = _("Faltan datos requeridos o tienen un formato inválido.")


class InvalidCustomField(InvalidRequest):
    code = "INVALID_CUSTOM_FIELD"
    default_message = _("Uno de los campos del formulario no es válido.")


class SlotContested(BookingError):
    code = "SLOT_CONTESTED"
    status_code = 409
    default_message = _(
        "Este horario está siendo reservado por otra persona. Por favor selecciona otro."
    )


class SlotTaken(BookingError):
    code = "SLOT_TAKEN"
    status_code = 409
    default_message = _("Este horario ya no está disponible. Por favor selecciona otro.")


class DateBlocked(BookingError):
    code = "DATE_BLOCKED"
    status_code = 409
    default_message = _("Esta fecha no está disponible para reservas.")


class NoAvailability(BookingError):
    code = "NO_AVAILABILITY"
    status_code = 409
    default_message = _("No hay disponibilidad para este día.")


class NotCancellable(BookingError):
    code = "NOT_CANCELLABLE"
    status_code = 400
    default_message = _("Esta reserva no puede ser cancelada.")


class DepositNotPayable(BookingError):
    code = "DEPOSIT_NOT_PAYABLE"
    status_code = 400
    default_message = _("Esta reserva no puede recibir pagos en su estado actual.")


class ReferenceExhausted(BookingError):
    code = "INTERNAL"
    status_code = 500
    default_message = _("Error al generar la referencia de reserva. Intenta nuevamente.")


class Internal(BookingError):
    """Unexpected failure; detail is logged, never returned."""
