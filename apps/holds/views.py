"""Public slot hold endpoints."""

from __future__ import annotations

from rest_framework.views import APIView

from apps.appointments.booking import get_bookable_professional
from apps.common.api import WriteRateThrottle, ok_response, request_payload
from apps.common.errors import InvalidRequest
from apps.common.utils import parse_date, parse_hhmm
from apps.holds.services import cleanup_expired_holds, create_hold, release_hold


def _slot_key(payload):
    session_id = str(payload.get("sessionId") or "").strip()
    if not session_id or len(session_id) > 100:
        raise InvalidRequest()
    return parse_date(payload.get("date")), parse_hhmm(payload.get("time")), session_id


class SlotHoldView(APIView):
    """Claim a slot for the caller's browser session."""

    throttle_classes = [WriteRateThrottle]

    def post(self, request, slug: str):
        date_value, start_time, session_id = _slot_key(request_payload(request))
        professional = get_bookable_professional(slug)
        result = create_hold(professional, date_value, start_time, session_id)
        return ok_response(
            {
                "holdId": result.hold_id,
                "expiresAt": result.expires_at.isoformat(),
                "renewed": result.renewed,
            }
        )


class SlotReleaseView(APIView):
    throttle_classes = [WriteRateThrottle]

    def post(self, request, slug: str):
        date_value, start_time, session_id = _slot_key(request_payload(request))
        professional = get_bookable_professional(slug)
        released = release_hold(professional, date_value, start_time, session_id)
        return ok_response({"released": released})


class CleanupHoldsView(APIView):
    throttle_classes = [WriteRateThrottle]

    def post(self, request):
        return ok_response({"cleanedUp": cleanup_expired_holds()})
