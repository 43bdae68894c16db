# slotkeeper/tasks/beat_schedule.py
"""
Celery Beat schedule for Slotkeeper.

Crontab entries are evaluated in the business timezone configured on the
Celery app, so "20:00" is the provider's evening.
"""

from typing import Any

from celery.schedules import crontab

from slotkeeper.core.constants import DAILY_AGENDA_HOUR, SLOT_SWEEP_INTERVAL_HOURS

CELERYBEAT_SCHEDULE = {
    # Safety net for missed write-triggered invalidations and day rollover
    "recalculate-expired-slots": {
        "task": "availability.recalculate_expired_slots",
        "schedule": crontab(minute=0, hour=f"*/{SLOT_SWEEP_INTERVAL_HOURS}"),
        "options": {"queue": "availability", "priority": 5},
    },
    "send-booking-reminders": {
        "task": "notifications.send_booking_reminders",
        "schedule": crontab(minute=0),
        "options": {"queue": "notifications", "priority": 7},
    },
    "send-daily-agenda-summary": {
        "task": "notifications.send_daily_agenda_summary",
        "schedule": crontab(hour=DAILY_AGENDA_HOUR, minute=0),
        "options": {"queue": "notifications", "priority": 5},
    },
}

# Environment-specific overrides
SCHEDULE_CONFIG: dict[str, dict[str, dict[str, Any]]] = {
    "development": {
        "recalculate-expired-slots": {
            "task": "availability.recalculate_expired_slots",
            "schedule": crontab(minute="*/15"),
            "options": {"queue": "availability"},
        },
    },
}


def get_beat_schedule(environment: str = "production") -> dict[str, dict[str, Any]]:
    """
    Get the beat schedule for the specified environment.

    Args:
        environment: The environment name (production, development, test)

    Returns:
        Mapping of task name to Celery beat configuration dict
    """
    base: dict[str, dict[str, Any]] = dict(CELERYBEAT_SCHEDULE)
    overrides = SCHEDULE_CONFIG.get(environment)
    if overrides:
        base.update(overrides)
    return base
