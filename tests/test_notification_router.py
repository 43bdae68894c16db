from datetime import datetime, timedelta

import pytest
import pytz

from slotkeeper.core.enums import AppointmentStatus, Channel, NotificationKind, Recipient
from slotkeeper.events.appointment_events import AppointmentSnapshot, from_snapshots
from slotkeeper.services.notification_router import (
    PlannedDelivery,
    classify_email_update,
    classify_update,
    plan_deliveries,
    plan_email_deliveries,
    plan_push_deliveries,
)

START = datetime(2026, 1, 5, 10, 0, tzinfo=pytz.UTC)


def snapshot(**overrides):
    data = {
        "id": "appt-1",
        "provider_id": "prov-1",
        "member_id": "mem-1",
        "client_id": "user-1",
        "service_name": "Haircut",
        "status": AppointmentStatus.PENDING,
        "start_at": START,
        "end_at": START + timedelta(hours=1),
    }
    data.update(overrides)
    return AppointmentSnapshot(**data)


def update(before, after):
    return from_snapshots(snapshot(**before), snapshot(**after))


@pytest.mark.parametrize(
    "before, after, expected",
    [
        ({}, {"status": AppointmentStatus.CONFIRMED}, (NotificationKind.CONFIRMED, Recipient.CLIENT)),
        (
            {"status": AppointmentStatus.CONFIRMED},
            {"status": AppointmentStatus.CANCELLED, "cancelled_by": "client"},
            (NotificationKind.CANCELLED_BY_CLIENT, Recipient.PROVIDER),
        ),
        (
            {},
            {"status": AppointmentStatus.CANCELLED, "cancelled_by": "provider"},
            (NotificationKind.CANCELLED_BY_PROVIDER, Recipient.CLIENT),
        ),
        ({}, {"status": AppointmentStatus.CANCELLED}, None),
        ({}, {"start_at": START + timedelta(days=1)}, (NotificationKind.RESCHEDULED, Recipient.CLIENT)),
        (
            {"status": AppointmentStatus.CANCELLED},
            {"status": AppointmentStatus.CANCELLED, "start_at": START + timedelta(days=1)},
            None,
        ),
        ({}, {"client_name": "Jamie"}, None),
        ({"status": AppointmentStatus.CONFIRMED}, {"status": AppointmentStatus.COMPLETED}, None),
    ],
)
def test_update_transition_table(before, after, expected):
    assert classify_update(update(before, after)) == expected


def test_confirmation_wins_over_reschedule():
    event = update({}, {"status": AppointmentStatus.CONFIRMED, "start_at": START + timedelta(hours=2)})
    assert classify_update(event) == (NotificationKind.CONFIRMED, Recipient.CLIENT)


def test_cancellation_wins_over_reschedule():
    event = update(
        {"status": AppointmentStatus.CONFIRMED},
        {
            "status": AppointmentStatus.CANCELLED,
            "cancelled_by": "provider",
            "start_at": START + timedelta(hours=2),
        },
    )
    assert classify_update(event) == (NotificationKind.CANCELLED_BY_PROVIDER, Recipient.CLIENT)


def test_confirmation_is_push_only():
    event = update({}, {"status": AppointmentStatus.CONFIRMED})

    assert plan_push_deliveries(event) == [
        PlannedDelivery(NotificationKind.CONFIRMED, Recipient.CLIENT, Channel.PUSH)
    ]
    assert plan_email_deliveries(event) == []


def test_confirmed_reschedule_still_emails_the_client():
    event = update({}, {"status": AppointmentStatus.CONFIRMED, "start_at": START + timedelta(hours=2)})

    assert classify_email_update(event) == (NotificationKind.RESCHEDULED, Recipient.CLIENT)
    assert plan_email_deliveries(event) == [
        PlannedDelivery(NotificationKind.RESCHEDULED, Recipient.CLIENT, Channel.EMAIL)
    ]


def test_cancellation_email_goes_to_the_other_party():
    event = update(
        {"status": AppointmentStatus.CONFIRMED},
        {"status": AppointmentStatus.CANCELLED, "cancelled_by": "client"},
    )
    assert plan_email_deliveries(event) == [
        PlannedDelivery(NotificationKind.CANCELLED_BY_CLIENT, Recipient.PROVIDER, Channel.EMAIL)
    ]


def test_created_booking_notifies_provider_and_acknowledges_client():
    event = from_snapshots(None, snapshot())

    assert plan_push_deliveries(event) == [
        PlannedDelivery(NotificationKind.NEW_BOOKING, Recipient.PROVIDER, Channel.PUSH)
    ]
    assert plan_email_deliveries(event) == [
        PlannedDelivery(NotificationKind.BOOKING_RECEIVED, Recipient.CLIENT, Channel.EMAIL),
        PlannedDelivery(NotificationKind.NEW_BOOKING, Recipient.PROVIDER, Channel.EMAIL),
    ]


def test_created_cancelled_booking_sends_nothing():
    assert plan_deliveries(from_snapshots(None, snapshot(status=AppointmentStatus.CANCELLED))) == []


def test_delete_sends_nothing():
    assert plan_deliveries(from_snapshots(snapshot(), None)) == []


def test_idempotency_key_is_stable_per_event_and_delivery():
    delivery = PlannedDelivery(NotificationKind.CONFIRMED, Recipient.CLIENT, Channel.EMAIL)
    assert delivery.idempotency_key("evt-1") == "evt-1:booking_confirmed:client:email"
    assert delivery.idempotency_key("evt-1") != delivery.idempotency_key("evt-2")
