"""Payment intents carried in the gateway's ``external_reference`` field.

The reference is a JSON object whose ``type`` selects the intent:

* ``{"type": "subscription", "professionalId", "planId", "billingPeriod"}``
* ``{"type": "deposit", "appointmentId", "professionalId", "bookingReference"}``
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Union

SUBSCRIPTION = "subscription"
DEPOSIT = "deposit"


class MalformedReference(ValueError):
    """``external_reference`` is not a JSON object."""


@dataclass(frozen=True)
class SubscriptionIntent:
    professional_id: Any
    plan_id: Any
    billing_period: str

    def to_reference(self) -> str:
        return json.dumps(
            {
                "type": SUBSCRIPTION,
                "professionalId": self.professional_id,
                "planId": self.plan_id,
                "billingPeriod": self.billing_period,
            }
        )


@dataclass(frozen=True)
class DepositIntent:
    appointment_id: Any
    professional_id: Any
    booking_reference: str

    def to_reference(self) -> str:
        return json.dumps(
            {
                "type": DEPOSIT,
                "appointmentId": self.appointment_id,
                "professionalId": self.professional_id,
                "bookingReference": self.booking_reference,
            }
        )


@dataclass(frozen=True)
class UnknownIntent:
    type: Any
    raw: Dict[str, Any]


Intent = Union[SubscriptionIntent, DepositIntent, UnknownIntent]


def parse_reference(raw: str) -> Intent:
    """Decode an ``external_reference``; never evaluates anything but JSON."""

    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedReference(str(exc)) from exc
    if not isinstance(data, dict):
        raise MalformedReference("expected a JSON object")

    intent_type = data.get("type")
    if intent_type == SUBSCRIPTION:
        return SubscriptionIntent(
            professional_id=data.get("professionalId"),
            plan_id=data.get("planId"),
            billing_period=str(data.get("billingPeriod") or "MONTHLY").upper(),
        )
    if intent_type == DEPOSIT:
        return DepositIntent(
            appointment_id=data.get("appointmentId"),
            professional_id=data.get("professionalId"),
            booking_reference=str(data.get("bookingReference") or ""),
        )
    return UnknownIntent(type=intent_type, raw=data)
