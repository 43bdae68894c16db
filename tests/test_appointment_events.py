from datetime import datetime, timedelta

import pytest
import pytz
from sqlalchemy.orm import sessionmaker

from slotkeeper.core.enums import AppointmentStatus
from slotkeeper.events.appointment_events import (
    AppointmentCreated,
    AppointmentDeleted,
    AppointmentSnapshot,
    AppointmentUpdated,
    from_snapshots,
    parse_event,
)
from slotkeeper.events.listeners import install_appointment_listeners
from slotkeeper.events.publisher import DISPATCH_TASK, INVALIDATE_TASK, AppointmentEventPublisher
from tests.factories import create_appointment, create_member, create_provider

START = datetime(2026, 1, 6, 9, 0, tzinfo=pytz.UTC)


def snapshot(**overrides):
    data = {
        "id": "appt-1",
        "provider_id": "prov-1",
        "status": AppointmentStatus.PENDING,
        "start_at": START,
        "end_at": START + timedelta(hours=1),
    }
    data.update(overrides)
    return AppointmentSnapshot(**data)


def test_from_snapshots_picks_the_variant():
    assert isinstance(from_snapshots(None, snapshot()), AppointmentCreated)
    assert isinstance(from_snapshots(snapshot(), snapshot()), AppointmentUpdated)
    assert isinstance(from_snapshots(snapshot(), None), AppointmentDeleted)
    with pytest.raises(ValueError):
        from_snapshots(None, None)


def test_payload_round_trips_through_json_task_args():
    event = from_snapshots(snapshot(), snapshot(status=AppointmentStatus.CONFIRMED, start_at=START + timedelta(days=1)))
    parsed = parse_event(event.to_dict())

    assert parsed == event
    assert parsed.status_changed
    assert parsed.start_changed
    assert parsed.provider_id == "prov-1"


def test_naive_datetimes_are_read_as_utc():
    assert snapshot(start_at=datetime(2026, 1, 6, 9, 0)).start_at == START


class RecordingPublisher(AppointmentEventPublisher):
    def __init__(self):
        self.calls = []
        super().__init__(enqueue=lambda task, payload: self.calls.append((task, payload)))

    @property
    def events(self):
        return [parse_event(payload) for task, payload in self.calls if task == DISPATCH_TASK]


@pytest.fixture
def listened_session(engine):
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    publisher = RecordingPublisher()
    install_appointment_listeners(factory, publisher)
    session = factory()
    yield session, publisher
    session.close()


def test_each_event_goes_to_both_consumers():
    publisher = RecordingPublisher()
    assert publisher.publish(from_snapshots(None, snapshot())) == 2
    assert [task for task, _ in publisher.calls] == [INVALIDATE_TASK, DISPATCH_TASK]


def test_enqueue_failure_for_one_consumer_does_not_block_the_other():
    calls = []

    def enqueue(task, payload):
        if task == INVALIDATE_TASK:
            raise ConnectionError("broker down")
        calls.append(task)

    assert AppointmentEventPublisher(enqueue=enqueue).publish(from_snapshots(None, snapshot())) == 1
    assert calls == [DISPATCH_TASK]


def test_writes_publish_after_commit(listened_session):
    session, publisher = listened_session
    provider = create_provider(session)
    member = create_member(session, provider)
    appointment = create_appointment(session, provider, member, START, status=AppointmentStatus.PENDING)
    assert publisher.calls == []

    session.commit()
    created = publisher.events
    assert len(created) == 1
    assert isinstance(created[0], AppointmentCreated)
    assert created[0].after.id == appointment.id

    appointment.status = AppointmentStatus.CONFIRMED.value
    session.commit()
    updated = publisher.events[-1]
    assert isinstance(updated, AppointmentUpdated)
    assert updated.before.status == AppointmentStatus.PENDING
    assert updated.after.status == AppointmentStatus.CONFIRMED

    session.delete(appointment)
    session.commit()
    assert isinstance(publisher.events[-1], AppointmentDeleted)


def test_rolled_back_writes_are_not_published(listened_session):
    session, publisher = listened_session
    provider = create_provider(session)
    member = create_member(session, provider)
    create_appointment(session, provider, member, START)

    session.rollback()
    session.commit()

    assert publisher.calls == []


def test_reminder_ledger_writes_are_not_lifecycle_events(listened_session):
    session, publisher = listened_session
    provider = create_provider(session)
    appointment = create_appointment(session, provider, create_member(session, provider), START)
    session.commit()
    published = len(publisher.calls)

    appointment.reminders_sent = ["2026-01-05T09:00:00+00:00"]
    session.commit()

    assert len(publisher.calls) == published
