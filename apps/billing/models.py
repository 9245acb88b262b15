"""Subscription plans, subscriptions and recorded gateway payments."""

from django.db import models

from apps.appointments.models import Appointment
from apps.common.models import TimeStampedModel
from apps.professionals.models import Professional


class BillingPeriod(models.TextChoices):
    MONTHLY = "MONTHLY", "Monthly"
    ANNUAL = "ANNUAL", "Annual"


class SubscriptionStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    CANCELLED = "cancelled", "Cancelled"
    EXPIRED = "expired", "Expired"
    PAST_DUE = "past_due", "Past due"


class PaymentType(models.TextChoices):
    SUBSCRIPTION = "SUBSCRIPTION", "Subscription"
    DEPOSIT = "DEPOSIT", "Deposit"


class PaymentStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    COMPLETED = "COMPLETED", "Completed"
    FAILED = "FAILED", "Failed"
    REFUNDED = "REFUNDED", "Refunded"


class SubscriptionPlan(TimeStampedModel):
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    price_monthly = models.DecimalField(max_digits=10, decimal_places=2)
    price_annual = models.DecimalField(max_digits=10, decimal_places=2)
    is_active = models.BooleanField(default=True)
    display_order = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ["display_order", "name"]

    def __str__(self) -> str:
        return self.name

    def price_for(self, period: str):
        return self.price_annual if period == BillingPeriod.ANNUAL else self.price_monthly


class Subscription(TimeStampedModel):
    """The single subscription a professional holds."""

    professional = models.OneToOneField(
        Professional, on_delete=models.CASCADE, related_name="subscription"
    )
    plan = models.ForeignKey(
        SubscriptionPlan, on_delete=models.PROTECT, related_name="subscriptions"
    )
    billing_period = models.CharField(
        max_length=10, choices=BillingPeriod.choices, default=BillingPeriod.MONTHLY
    )
    status = models.CharField(
        max_length=16, choices=SubscriptionStatus.choices, default=SubscriptionStatus.ACTIVE
    )
    start_date = models.DateTimeField()
    next_billing_date = models.DateTimeField(null=True, blank=True)
    gateway_payment_id = models.CharField(max_length=100, blank=True)


class Payment(TimeStampedModel):
    """A gateway payment applied to a subscription or an appointment deposit."""

    professional = models.ForeignKey(
        Professional, on_delete=models.CASCADE, related_name="payments"
    )
    payment_type = models.CharField(max_length=16, choices=PaymentType.choices)
    status = models.CharField(
        max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default="ARS")
    gateway_payment_id = models.CharField(max_length=100, db_index=True)
    subscription = models.ForeignKey(
        Subscription, on_delete=models.SET_NULL, null=True, blank=True, related_name="payments"
    )
    appointment = models.ForeignKey(
        Appointment, on_delete=models.SET_NULL, null=True, blank=True, related_name="payments"
    )
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
