from datetime import date, datetime

import pytz

from slotkeeper.core.enums import AppointmentStatus
from slotkeeper.services.agenda_summary import AgendaSummaryService
from slotkeeper.services.email_service import EmailService
from tests.factories import create_appointment, create_member, create_provider, create_user

PARIS = pytz.timezone("Europe/Paris")
# 20:00 in Paris on Monday 2026-01-05
NOW = datetime(2026, 1, 5, 19, 0, tzinfo=pytz.UTC)


def paris(day, hour, minute=0):
    return PARIS.localize(datetime(2026, 1, day, hour, minute)).astimezone(pytz.UTC)


def run(db, session_factory, email_sender, **kwargs):
    return AgendaSummaryService(
        db, session_factory, email_service=EmailService(sender=email_sender), max_concurrency=2
    ).run(now=NOW, **kwargs)


def test_owner_and_members_receive_tomorrows_agenda(db, session_factory, email_sender):
    owner = create_user(db, email="owner@lumen.example", name="Owner")
    team = create_provider(db, business_name="Studio Lumen", owner=owner)
    alice = create_member(db, team, name="Alice", email="alice@lumen.example")
    bob = create_member(db, team, name="Bob", email="bob@lumen.example", is_default=False)
    carol = create_member(db, team, name="Carol", email=None, is_default=False)
    create_member(db, team, name="Dan", email="dan@lumen.example", is_default=False)
    create_appointment(db, team, alice, paris(6, 9))
    create_appointment(db, team, alice, paris(6, 23, 30), status=AppointmentStatus.PENDING)
    create_appointment(db, team, bob, paris(6, 14))
    create_appointment(db, team, carol, paris(6, 15))
    create_appointment(db, team, bob, paris(6, 16), status=AppointmentStatus.CANCELLED)
    create_appointment(db, team, alice, paris(7, 0, 30))

    solo = create_provider(db, business_name="Solo Cuts")
    solo_member = create_member(db, solo, name="Solo", email="solo.member@example.com")
    create_appointment(db, solo, solo_member, paris(6, 10))

    quiet = create_provider(db, business_name="Quiet Place")
    create_member(db, quiet)

    draft = create_provider(db, business_name="Draft", is_published=False)
    create_appointment(db, draft, create_member(db, draft), paris(6, 10))
    db.commit()

    summary = run(db, session_factory, email_sender)

    assert summary.day == date(2026, 1, 6)
    assert summary.providers == 3
    assert summary.providers_processed == 3
    assert summary.errors == 0
    assert sorted(email_sender.sent_to()) == [
        "alice@lumen.example",
        "bob@lumen.example",
        "owner@lumen.example",
        "solo.cuts@example.com",
    ]
    assert summary.emails_sent == 4

    by_recipient = {payload["to"][0]: payload for payload in email_sender.payloads}
    assert "4 appointments" in by_recipient["owner@lumen.example"]["subject"]
    assert "2 appointments" in by_recipient["alice@lumen.example"]["subject"]
    assert "1 appointments" in by_recipient["bob@lumen.example"]["subject"]
    assert "10:00" in by_recipient["solo.cuts@example.com"]["html"]

    per_provider = {result.business_name: result for result in summary.results}
    assert per_provider["Quiet Place"].appointments == 0
    assert per_provider["Studio Lumen"].appointments == 4


def test_email_failures_are_counted(db, session_factory):
    provider = create_provider(db, business_name="Solo Cuts")
    create_appointment(db, provider, create_member(db, provider), paris(6, 10))
    db.commit()
    failing = _failing_sender()

    summary = run(db, session_factory, failing)

    assert summary.providers_processed == 1
    assert summary.emails_sent == 0
    assert summary.errors == 1


def test_provider_filter(db, session_factory, email_sender):
    first = create_provider(db, business_name="First")
    second = create_provider(db, business_name="Second")
    for provider in (first, second):
        create_appointment(db, provider, create_member(db, provider), paris(6, 11))
    db.commit()

    summary = run(db, session_factory, email_sender, provider_id=second.id)

    assert summary.providers == 1
    assert email_sender.sent_to() == ["second@example.com"]


def _failing_sender():
    def send(payload):
        raise RuntimeError("smtp down")

    return send
