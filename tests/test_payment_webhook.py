import json
from datetime import time

import pytest
from django.db import IntegrityError

from apps.appointments.booking import create_appointment
from apps.appointments.models import AppointmentStatus
from apps.billing.gateway import MercadoPagoClient, MercadoPagoError
from apps.billing.intents import DepositIntent, SubscriptionIntent
from apps.billing.models import Payment, PaymentType, Subscription, SubscriptionStatus
from apps.webhooks import services as webhook_services
from apps.webhooks.models import WebhookEvent, WebhookEventStatus
from apps.webhooks.services import WebhookPersistenceError, handle_payment_webhook

pytestmark = pytest.mark.django_db


class FakeGateway:
    def __init__(self, payment=None, error=None):
        self.payment = payment
        self.error = error
        self.calls = []

    def get_payment(self, payment_id):
        self.calls.append(payment_id)
        if self.error is not None:
            raise self.error
        return self.payment


def _notification(payment_id="123456"):
    return {"type": "payment", "action": "payment.updated", "data": {"id": payment_id}}


def _headers(request_id="req-1"):
    return {"X-Request-Id": request_id, "X-Signature": "ts=1,v1=abc", "User-Agent": "MercadoPago"}


def _payment(reference, status="approved", amount=19999):
    return {
        "id": 123456,
        "status": status,
        "transaction_amount": amount,
        "currency_id": "ARS",
        "external_reference": reference,
    }


def test_non_payment_notifications_are_ignored():
    gateway = FakeGateway()

    result = handle_payment_webhook({"type": "merchant_order"}, _headers(), gateway=gateway)

    assert result == {"success": True, "message": "Ignored non-payment webhook"}
    assert gateway.calls == []
    assert not WebhookEvent.objects.exists()


def test_missing_identifiers_are_not_recorded():
    gateway = FakeGateway()

    without_request = handle_payment_webhook(_notification(), {}, gateway=gateway)
    without_payment = handle_payment_webhook({"type": "payment", "data": {}}, _headers(), gateway=gateway)

    assert without_request == {"success": False, "error": "Missing required identifiers"}
    assert without_payment == without_request
    assert gateway.calls == []
    assert not WebhookEvent.objects.exists()


def test_subscription_activation_scenario(professional, plan):
    reference = SubscriptionIntent(professional.id, plan.id, "MONTHLY").to_reference()
    gateway = FakeGateway(payment=_payment(reference))

    result = handle_payment_webhook(_notification(), _headers(), gateway=gateway)

    assert result == {"success": True, "message": "Subscription activated"}
    subscription = Subscription.objects.get(professional=professional)
    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.plan == plan
    assert subscription.next_billing_date.month != subscription.start_date.month
    payment = Payment.objects.get()
    assert payment.payment_type == PaymentType.SUBSCRIPTION
    assert payment.status == "COMPLETED"
    assert payment.gateway_payment_id == "123456"
    event = WebhookEvent.objects.get()
    assert event.status == WebhookEventStatus.PROCESSED
    assert event.response_body == result
    assert event.request_headers["x-request-id"] == "req-1"


def test_duplicate_delivery_replays_without_gateway_call(professional, plan):
    reference = SubscriptionIntent(professional.id, plan.id, "ANNUAL").to_reference()
    gateway = FakeGateway(payment=_payment(reference))

    first = handle_payment_webhook(_notification(), _headers(), gateway=gateway)
    second = handle_payment_webhook(_notification(), _headers(), gateway=gateway)

    assert second == first
    assert gateway.calls == ["123456"]
    assert Payment.objects.count() == 1
    assert WebhookEvent.objects.count() == 1


def test_new_request_id_is_processed_again(professional, plan):
    reference = SubscriptionIntent(professional.id, plan.id, "MONTHLY").to_reference()
    gateway = FakeGateway(payment=_payment(reference))

    handle_payment_webhook(_notification(), _headers("req-1"), gateway=gateway)
    handle_payment_webhook(_notification(), _headers("req-2"), gateway=gateway)

    assert gateway.calls == ["123456", "123456"]
    assert Subscription.objects.count() == 1
    assert WebhookEvent.objects.count() == 2


def test_failed_outcome_is_replayed_too():
    gateway = FakeGateway(payment=None)

    first = handle_payment_webhook(_notification(), _headers(), gateway=gateway)
    second = handle_payment_webhook(_notification(), _headers(), gateway=gateway)

    assert first == {"success": False, "error": "Payment not found in Mercado Pago"}
    assert second == first
    assert gateway.calls == ["123456"]
    assert WebhookEvent.objects.get().status == WebhookEventStatus.FAILED


def test_gateway_outage_is_recorded_as_failure():
    gateway = FakeGateway(error=MercadoPagoError("timeout"))

    result = handle_payment_webhook(_notification(), _headers(), gateway=gateway)

    assert result == {"success": False, "error": "Payment gateway unavailable"}
    assert WebhookEvent.objects.get().error_message == "timeout"


def test_missing_external_reference():
    gateway = FakeGateway(payment=_payment(None))

    result = handle_payment_webhook(_notification(), _headers(), gateway=gateway)

    assert result == {"success": False, "error": "Payment has no external_reference"}


def test_malformed_external_reference_is_recorded_safely():
    gateway = FakeGateway(payment=_payment("{not json"))

    result = handle_payment_webhook(_notification(), _headers(), gateway=gateway)

    assert result == {"success": False, "error": "Invalid external reference format"}
    event = WebhookEvent.objects.get()
    assert event.status == WebhookEventStatus.FAILED
    assert event.error_message.startswith("Invalid JSON in external_reference")


def test_unknown_intent_type_fails():
    gateway = FakeGateway(payment=_payment(json.dumps({"type": "gift"})))

    result = handle_payment_webhook(_notification(), _headers(), gateway=gateway)

    assert result == {"success": False, "error": "Unknown payment type"}
    assert WebhookEvent.objects.get().status == WebhookEventStatus.FAILED


def test_missing_plan_fails_without_side_effects(professional):
    reference = SubscriptionIntent(professional.id, 987654, "MONTHLY").to_reference()
    gateway = FakeGateway(payment=_payment(reference))

    result = handle_payment_webhook(_notification(), _headers(), gateway=gateway)

    assert result == {"success": False, "error": "Plan not found"}
    assert not Subscription.objects.exists()
    assert WebhookEvent.objects.get().status == WebhookEventStatus.FAILED


def test_pending_payment_status_is_reported(professional, plan):
    reference = SubscriptionIntent(professional.id, plan.id, "MONTHLY").to_reference()
    gateway = FakeGateway(payment=_payment(reference, status="in_process"))

    result = handle_payment_webhook(_notification(), _headers(), gateway=gateway)

    assert result == {"success": True, "message": "Payment status: in_process"}
    assert not Subscription.objects.exists()


def _deposit_booking(deposit_professional, booking_date, patient_info):
    return create_appointment(deposit_professional.slug, patient_info, booking_date, time(10, 0))


def test_deposit_confirms_appointment(deposit_professional, deposit_availability, booking_date, patient_info):
    booking = _deposit_booking(deposit_professional, booking_date, patient_info)
    reference = DepositIntent(
        booking.appointment.id, deposit_professional.id, booking.booking_reference
    ).to_reference()
    gateway = FakeGateway(payment=_payment(reference, amount=5000))

    result = handle_payment_webhook(_notification(), _headers(), gateway=gateway)

    assert result == {"success": True, "message": "Deposit paid"}
    appointment = booking.appointment
    appointment.refresh_from_db()
    assert appointment.deposit_paid is True
    assert appointment.status == AppointmentStatus.CONFIRMED
    assert Payment.objects.get().payment_type == PaymentType.DEPOSIT


def test_deposit_falls_back_to_booking_reference(deposit_professional, deposit_availability, booking_date, patient_info):
    booking = _deposit_booking(deposit_professional, booking_date, patient_info)
    reference = DepositIntent("missing-id", deposit_professional.id, booking.booking_reference).to_reference()
    gateway = FakeGateway(payment=_payment(reference, amount=5000))

    result = handle_payment_webhook(_notification(), _headers(), gateway=gateway)

    assert result["message"] == "Deposit paid"


def test_deposit_for_cancelled_appointment_keeps_status(
    deposit_professional, deposit_availability, booking_date, patient_info
):
    booking = _deposit_booking(deposit_professional, booking_date, patient_info)
    booking.appointment.status = AppointmentStatus.CANCELLED
    booking.appointment.save()
    reference = DepositIntent(
        booking.appointment.id, deposit_professional.id, booking.booking_reference
    ).to_reference()

    handle_payment_webhook(_notification(), _headers(), gateway=FakeGateway(payment=_payment(reference)))

    booking.appointment.refresh_from_db()
    assert booking.appointment.status == AppointmentStatus.CANCELLED
    assert booking.appointment.deposit_paid is True


def test_concurrent_duplicate_returns_winner_response(professional, plan, monkeypatch):
    reference = SubscriptionIntent(professional.id, plan.id, "MONTHLY").to_reference()
    winner = WebhookEvent.objects.create(
        payment_id="123456",
        request_id="req-1",
        event_type="payment",
        status=WebhookEventStatus.PROCESSED,
        response_body={"success": True, "message": "Subscription activated"},
    )
    lookups = iter([None, winner])
    monkeypatch.setattr(webhook_services.store, "find_event", lambda *args: next(lookups))

    result = handle_payment_webhook(
        _notification(), _headers(), gateway=FakeGateway(payment=_payment(reference))
    )

    assert result == winner.response_body
    assert not Subscription.objects.exists()
    assert not Payment.objects.exists()


def test_unrecordable_failure_raises_persistence_error(monkeypatch):
    def _fail(**kwargs):
        raise IntegrityError("boom")

    monkeypatch.setattr(webhook_services.store, "record_event", _fail)

    with pytest.raises(WebhookPersistenceError):
        handle_payment_webhook(_notification(), _headers(), gateway=FakeGateway(payment=None))


class StubResponse:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self.body = body
        self.text = text

    def json(self):
        if self.body is None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.body


class StubSession:
    def __init__(self, response):
        self.response = response

    def get(self, *args, **kwargs):
        return self.response


@pytest.mark.parametrize(
    "response",
    [
        StubResponse(text="<html>maintenance</html>"),
        StubResponse(body=[]),
    ],
)
def test_gateway_rejects_unusable_payment_body(response):
    client = MercadoPagoClient(access_token="token", session=StubSession(response))

    with pytest.raises(MercadoPagoError):
        client.get_payment("123456")


@pytest.mark.parametrize(
    "response",
    [
        StubResponse(text="<html>maintenance</html>"),
        StubResponse(body=[]),
    ],
)
def test_unusable_gateway_body_is_recorded(response):
    gateway = MercadoPagoClient(access_token="token", session=StubSession(response))

    result = handle_payment_webhook(_notification(), _headers(), gateway=gateway)

    assert result == {"success": False, "error": "Payment gateway unavailable"}
    assert WebhookEvent.objects.get().status == WebhookEventStatus.FAILED


def test_unexpected_processing_error_is_recorded():
    gateway = FakeGateway(payment=["not", "a", "payment"])

    result = handle_payment_webhook(_notification(), _headers(), gateway=gateway)

    assert result == {"success": False, "error": "Webhook processing error"}
    event = WebhookEvent.objects.get()
    assert event.status == WebhookEventStatus.FAILED
    assert "attribute" in event.error_message

    replay = handle_payment_webhook(_notification(), _headers(), gateway=gateway)
    assert replay == result
    assert gateway.calls == ["123456"]


def test_error_while_applying_rolls_back_and_is_recorded(professional, plan, monkeypatch):
    reference = SubscriptionIntent(professional.id, plan.id, "MONTHLY").to_reference()

    def _explode(*args, **kwargs):
        raise ValueError("bad amount")

    monkeypatch.setattr(webhook_services, "activate_subscription", _explode)

    result = handle_payment_webhook(
        _notification(), _headers(), gateway=FakeGateway(payment=_payment(reference))
    )

    assert result == {"success": False, "error": "Webhook processing error"}
    assert not Subscription.objects.exists()
    assert WebhookEvent.objects.get().error_message == "bad amount"


def test_replayed_deposit_delivery_is_applied_once(
    deposit_professional, deposit_availability, booking_date, patient_info
):
    booking = _deposit_booking(deposit_professional, booking_date, patient_info)
    reference = DepositIntent(
        booking.appointment.id, deposit_professional.id, booking.booking_reference
    ).to_reference()
    gateway = FakeGateway(payment=_payment(reference, amount=5000))

    first = handle_payment_webhook(_notification(), _headers("req-dep"), gateway=gateway)
    appointment = booking.appointment
    appointment.refresh_from_db()
    paid_at = appointment.deposit_paid_at

    second = handle_payment_webhook(_notification(), _headers("req-dep"), gateway=gateway)

    assert second == first == {"success": True, "message": "Deposit paid"}
    assert gateway.calls == ["123456"]
    assert Payment.objects.filter(payment_type=PaymentType.DEPOSIT).count() == 1
    assert WebhookEvent.objects.count() == 1
    appointment.refresh_from_db()
    assert paid_at is not None
    assert appointment.deposit_paid_at == paid_at
