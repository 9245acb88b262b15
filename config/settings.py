"""Django settings for the booking backend.

Every deployment-specific value is read from the environment so the same
module serves local development, the test suite and production.
"""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.environ.get(name)
    if raw in (None, ""):
        return default
    return int(raw)


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-insecure-secret-key")
DEBUG = _env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [
    host.strip()
    for host in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")
    if host.strip()
]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "django.contrib.sessions",
    "django.contrib.messages",
    "rest_framework",
    "apps.common",
    "apps.professionals",
    "apps.patients",
    "apps.holds",
    "apps.appointments",
    "apps.billing",
    "apps.webhooks",
    "apps.notifications",
    "apps.workers",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.locale.LocaleMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {"context_processors": []},
    }
]

if os.environ.get("DB_NAME"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ["DB_NAME"],
            "USER": os.environ.get("DB_USER", "postgres"),
            "PASSWORD": os.environ.get("DB_PASSWORD", ""),
            "HOST": os.environ.get("DB_HOST", "localhost"),
            "PORT": os.environ.get("DB_PORT", "5432"),
            "ATOMIC_REQUESTS": False,
            "CONN_MAX_AGE": _env_int("DB_CONN_MAX_AGE", 60),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = os.environ.get("DJANGO_LANGUAGE_CODE", "es")
LANGUAGES = [("es", "Spanish"), ("en", "English")]
TIME_ZONE = os.environ.get("DJANGO_TIME_ZONE", "America/Argentina/Buenos_Aires")
USE_I18N = True
USE_TZ = True

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "EXCEPTION_HANDLER": "apps.common.api.exception_handler",
    "DEFAULT_THROTTLE_RATES": {
        "write": os.environ.get("THROTTLE_WRITE_RATE", "60/min"),
    },
    "UNAUTHENTICATED_USER": None,
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "booking-default",
    }
}

EMAIL_BACKEND = os.environ.get(
    "EMAIL_BACKEND", "django.core.mail.backends.console.EmailBackend"
)
DEFAULT_FROM_EMAIL = os.environ.get("DEFAULT_FROM_EMAIL", "reservas@example.com")

# Slot holds
SLOT_HOLD_TTL_SECONDS = _env_int("SLOT_HOLD_TTL_SECONDS", 300)
SLOT_HOLD_MAX_RENEWALS = _env_int("SLOT_HOLD_MAX_RENEWALS", None)
SLOT_HOLD_CLEANUP_SECONDS = _env_int("SLOT_HOLD_CLEANUP_SECONDS", 60)

# Booking
BOOKING_REFERENCE_LENGTH = _env_int("BOOKING_REFERENCE_LENGTH", 6)
BOOKING_REFERENCE_MAX_ATTEMPTS = _env_int("BOOKING_REFERENCE_MAX_ATTEMPTS", 10)
DEFAULT_APPOINTMENT_DURATION_MINUTES = _env_int("DEFAULT_APPOINTMENT_DURATION_MINUTES", 30)

# Payments (Mercado Pago)
MERCADOPAGO_ACCESS_TOKEN = os.environ.get("MERCADOPAGO_ACCESS_TOKEN", "")
MERCADOPAGO_WEBHOOK_SECRET = os.environ.get("MERCADOPAGO_WEBHOOK_SECRET", "")
MERCADOPAGO_API_URL = os.environ.get("MERCADOPAGO_API_URL", "https://api.mercadopago.com")
MERCADOPAGO_CURRENCY = os.environ.get("MERCADOPAGO_CURRENCY", "ARS")
MERCADOPAGO_TIMEOUT_SECONDS = _env_int("MERCADOPAGO_TIMEOUT_SECONDS", 15)
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:5173")
BACKEND_URL = os.environ.get("BACKEND_URL", "http://localhost:8000")

# Side effects
CALENDAR_SYNC_BACKEND = os.environ.get(
    "CALENDAR_SYNC_BACKEND", "apps.notifications.backends.LoggingCalendarBackend"
)
WHATSAPP_BACKEND = os.environ.get(
    "WHATSAPP_BACKEND", "apps.notifications.backends.LoggingWhatsAppBackend"
)
REALTIME_PUBLISHER = os.environ.get(
    "REALTIME_PUBLISHER", "apps.notifications.publishers.LoggingPublisher"
)
NOTIFICATION_MAX_RETRIES = _env_int("NOTIFICATION_MAX_RETRIES", 3)
REMINDER_DISPATCH_BATCH_SIZE = _env_int("REMINDER_DISPATCH_BATCH_SIZE", 50)
REMINDER_BACKOFF_MAX_SECONDS = _env_int("REMINDER_BACKOFF_MAX_SECONDS", 300)
REMINDER_DISPATCH_SECONDS = _env_int("REMINDER_DISPATCH_SECONDS", 30)
REMINDER_LEASE_SECONDS = _env_int("REMINDER_LEASE_SECONDS", 600)
DEPOSIT_TIME_LIMIT_MINUTES = _env_int("DEPOSIT_TIME_LIMIT_MINUTES", 30)
DEPOSIT_RELEASE_SECONDS = _env_int("DEPOSIT_RELEASE_SECONDS", 60)

# Celery
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", None)
CELERY_TASK_ALWAYS_EAGER = _env_bool("CELERY_TASK_ALWAYS_EAGER", False)
CELERY_TASK_EAGER_PROPAGATES = False
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULE = {
    "cleanup-expired-slot-holds": {
        "task": "apps.workers.tasks.cleanup_expired_slot_holds",
        "schedule": timedelta(seconds=SLOT_HOLD_CLEANUP_SECONDS),
    },
    "dispatch-due-reminders": {
        "task": "apps.workers.tasks.dispatch_due_reminders",
        "schedule": timedelta(seconds=REMINDER_DISPATCH_SECONDS),
    },
    "release-unpaid-deposits": {
        "task": "apps.workers.tasks.release_unpaid_deposits",
        "schedule": timedelta(seconds=DEPOSIT_RELEASE_SECONDS),
    },
}

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        "apps": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}
