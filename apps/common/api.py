"""Common DRF helpers."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable

from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import SimpleRateThrottle
from rest_framework.views import exception_handler as drf_exception_handler

from apps.common.errors import BookingError, Internal, InvalidRequest

logger = logging.getLogger(__name__)


def ok_response(data: Dict[str, Any] | Iterable[Any], status_code: int = status.HTTP_200_OK) -> Response:
    """Return a standardized success envelope."""

    return Response({"ok": True, "data": data}, status=status_code)


def error_response(
    code: str,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    message: str | None = None,
) -> Response:
    """Return a standardized error envelope."""

    body: Dict[str, Any] = {"ok": False, "error": code}
    if message:
        body["message"] = str(message)
    return Response(body, status=status_code)


def booking_error_response(exc: BookingError) -> Response:
    return error_response(exc.code, status_code=exc.status_code, message=exc.message)


def request_payload(request) -> Dict[str, Any]:
    """Return the JSON body as a dict; any other shape is an invalid request."""

    data = request.data
    if data in (None, ""):
        return {}
    if not isinstance(data, dict):
        raise InvalidRequest()
    return data


def exception_handler(exc, context):
    """Ensure every error follows the {ok:false,error:...} contract."""

    if isinstance(exc, BookingError):
        return booking_error_response(exc)

    response = drf_exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.exception(
            "api.unhandled_error",
            extra={"view": view.__class__.__name__ if view else None},
        )
        return booking_error_response(Internal())
    data = response.data
    message: Any
    if isinstance(data, dict):
        message = data.get("detail") or data.get("message") or "ERROR"
    else:
        message = "ERROR"
    response.data = {"ok": False, "error": str(message)}
    return response


class WriteRateThrottle(SimpleRateThrottle):
    """Limit write requests per client IP."""

    scope = "write"

    def get_cache_key(self, request, view):
        if request.method in ("GET", "HEAD", "OPTIONS"):
            return None
        ident = self.get_ident(request)
        if ident is None:
            return None
        return self.cache_format % {"scope": self.scope, "ident": ident}
