from datetime import datetime, timedelta

import pytest
import pytz

from slotkeeper.core.enums import AppointmentStatus
from slotkeeper.events.appointment_events import AppointmentSnapshot, from_snapshots
from slotkeeper.models import NotificationDelivery, Provider
from slotkeeper.tasks import availability_tasks, notification_tasks
from slotkeeper.tasks.beat_schedule import get_beat_schedule
from slotkeeper.tasks.celery_app import celery_app
from tests.factories import create_appointment, create_member, create_provider, set_weekly


@pytest.fixture(autouse=True)
def task_sessions(monkeypatch, session_factory):
    monkeypatch.setattr(availability_tasks, "session_factory", session_factory)
    monkeypatch.setattr(notification_tasks, "session_factory", session_factory)


def test_tasks_are_registered_under_their_queue_names():
    for name in (
        "availability.recalculate_expired_slots",
        "availability.invalidate_on_write",
        "availability.recalculate_provider_slot",
        "notifications.dispatch_booking_event",
        "notifications.send_booking_reminders",
        "notifications.send_daily_agenda_summary",
    ):
        assert name in celery_app.tasks


def test_beat_schedule():
    schedule = get_beat_schedule("production")
    assert schedule["recalculate-expired-slots"]["task"] == "availability.recalculate_expired_slots"
    assert schedule["send-booking-reminders"]["task"] == "notifications.send_booking_reminders"
    agenda = schedule["send-daily-agenda-summary"]["schedule"]
    assert agenda.hour == {20}
    assert agenda.minute == {0}
    assert celery_app.conf.timezone == "Europe/Paris"


def test_recalculate_expired_slots_task(db):
    provider = create_provider(db)
    set_weekly(db, create_member(db, provider), open_days=range(7))
    db.commit()

    result = availability_tasks.recalculate_expired_slots.run()

    assert result["candidates"] == 1
    assert result["updated"] == 1
    db.expire_all()
    assert db.get(Provider, provider.id).next_available_slot is not None


def test_invalidate_on_write_task(db):
    provider = create_provider(db)
    member = create_member(db, provider)
    set_weekly(db, member, open_days=range(7))
    appointment = create_appointment(db, provider, member, datetime.now(pytz.UTC) + timedelta(days=1))
    db.commit()

    event = from_snapshots(None, AppointmentSnapshot.from_model(appointment))
    assert availability_tasks.invalidate_on_write.run(event.to_dict()) == "recomputed"


def test_dispatch_booking_event_task(db):
    provider = create_provider(db)
    appointment = create_appointment(
        db,
        provider,
        create_member(db, provider),
        datetime.now(pytz.UTC) + timedelta(days=1),
        status=AppointmentStatus.PENDING,
    )
    db.commit()
    payload = from_snapshots(None, AppointmentSnapshot.from_model(appointment)).to_dict()

    first = notification_tasks.dispatch_booking_event.run(payload)
    second = notification_tasks.dispatch_booking_event.run(payload)

    # No push tokens and no email key: every delivery is skipped, but still claimed once
    assert first["skipped"] == 3
    assert second["duplicates"] == 3
    assert db.query(NotificationDelivery).count() == 3


def test_scheduled_notification_tasks_return_summaries():
    assert notification_tasks.send_booking_reminders.run()["found"] == 0
    assert notification_tasks.send_daily_agenda_summary.run()["providers"] == 0
