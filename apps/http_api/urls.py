from django.urls import path

from apps.appointments.views import (
    AvailableSlotsView,
    BookingCancelView,
    BookingCreateView,
    BookingDepositView,
    BookingDetailView,
)
from apps.holds.views import CleanupHoldsView, SlotHoldView, SlotReleaseView
from apps.webhooks.views import mercadopago_webhook

urlpatterns = [
    path('booking/cleanup-holds', CleanupHoldsView.as_view(), name='booking-cleanup-holds'),
    path('booking/appointments/<str:reference>', BookingDetailView.as_view(), name='booking-detail'),
    path('booking/appointments/<str:reference>/cancel', BookingCancelView.as_view(), name='booking-cancel'),
    path('booking/appointments/<str:reference>/deposit', BookingDepositView.as_view(), name='booking-deposit'),
    path('booking/<slug:slug>/slots', AvailableSlotsView.as_view(), name='booking-slots'),
    path('booking/<slug:slug>/hold', SlotHoldView.as_view(), name='booking-hold'),
    path('booking/<slug:slug>/release', SlotReleaseView.as_view(), name='booking-release'),
    path('booking/<slug:slug>/appointments', BookingCreateView.as_view(), name='booking-create'),
    path('webhooks/mercadopago', mercadopago_webhook, name='mercadopago-webhook'),
]
