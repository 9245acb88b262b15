from datetime import timedelta

from django.conf import settings


def test_hold_cleanup_schedule_registered():
    schedule = settings.CELERY_BEAT_SCHEDULE
    assert "cleanup-expired-slot-holds" in schedule
    entry = schedule["cleanup-expired-slot-holds"]
    assert entry["task"] == "apps.workers.tasks.cleanup_expired_slot_holds"
    assert isinstance(entry["schedule"], timedelta)
    assert entry["schedule"].total_seconds() == settings.SLOT_HOLD_CLEANUP_SECONDS


def test_reminder_and_deposit_schedules_registered():
    schedule = settings.CELERY_BEAT_SCHEDULE
    assert schedule["dispatch-due-reminders"]["task"] == "apps.workers.tasks.dispatch_due_reminders"
    assert schedule["release-unpaid-deposits"]["task"] == "apps.workers.tasks.release_unpaid_deposits"


def test_scheduled_tasks_are_registered_with_celery():
    import apps.workers.tasks  # noqa: F401
    from config.celery import app

    for entry in settings.CELERY_BEAT_SCHEDULE.values():
        assert entry["task"] in app.tasks
