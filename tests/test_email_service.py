from datetime import datetime, timedelta

import pytz

from slotkeeper.core.exceptions import DeliveryException
from slotkeeper.services.email_service import (
    CalendarEvent,
    EmailService,
    escape_ics,
    fold_ics_line,
    is_valid_email,
)
from slotkeeper.services.template_registry import TemplateRegistry

START = datetime(2026, 1, 6, 9, 0, tzinfo=pytz.UTC)


def test_email_validation():
    assert is_valid_email("jamie@example.com")
    assert is_valid_email(" jamie@example.com ")
    assert not is_valid_email("jamie@")
    assert not is_valid_email("")
    assert not is_valid_email(None)


def test_ics_escaping_and_line_endings():
    event = CalendarEvent(
        uid="appt-1",
        start_at=START,
        end_at=START + timedelta(hours=1),
        summary="Cut, colour; style",
        location="12 Rue de Rivoli\nParis",
    )
    ics = event.to_ics(stamp=START)

    assert "\r\nDTSTART:20260106T090000Z\r\n" in ics
    assert "DTEND:20260106T100000Z" in ics
    assert "SUMMARY:Cut\\, colour\\; style" in ics
    assert "LOCATION:12 Rue de Rivoli\\nParis" in ics
    assert escape_ics("a\\b") == "a\\\\b"
    assert bytes(event.to_attachment()["content"]).decode().startswith("BEGIN:VCALENDAR")


def test_long_content_lines_are_folded():
    event = CalendarEvent(
        uid="appt-2",
        start_at=START,
        end_at=START + timedelta(hours=1),
        summary="Balayage " * 20,
        location="Île de la Cité " * 10,
    )
    ics = event.to_ics(stamp=START)

    physical_lines = ics.split("\r\n")
    assert all(len(line.encode("utf-8")) <= 75 for line in physical_lines)
    unfolded = ics.replace("\r\n ", "")
    assert f"SUMMARY:{'Balayage ' * 20}" in unfolded
    assert f"LOCATION:{'Île de la Cité ' * 10}" in unfolded


def test_fold_keeps_multibyte_characters_whole():
    line = "SUMMARY:" + "é" * 60
    folded = fold_ics_line(line)

    first, second = folded.split("\r\n")
    assert len(first.encode("utf-8")) == 74
    assert second.startswith(" é")
    assert folded.replace("\r\n ", "") == line
    assert fold_ics_line("SUMMARY:short") == "SUMMARY:short"


def test_skips_invalid_recipients(email_sender):
    service = EmailService(sender=email_sender)
    assert service.send_email("nope", "Subject", TemplateRegistry.BOOKING_RECEIVED_CLIENT, {}) is False
    assert email_sender.payloads == []


def test_skips_when_not_configured():
    service = EmailService()
    assert not service.is_configured
    assert service.send_email("jamie@example.com", "Subject", TemplateRegistry.BOOKING_RECEIVED_CLIENT, {}) is False


def test_renders_template_into_html_and_text(email_sender):
    service = EmailService(sender=email_sender)
    sent = service.send_email(
        "jamie@example.com",
        "Your booking - Haircut",
        TemplateRegistry.BOOKING_RECEIVED_CLIENT,
        {"client_name": "Jamie", "service_name": "Haircut", "business_name": "Studio Lumen", "date": "Tuesday"},
    )

    assert sent
    payload = email_sender.payloads[0]
    assert payload["to"] == ["jamie@example.com"]
    assert "Haircut" in payload["html"]
    assert "<" not in payload["text"]


def test_provider_errors_raise_delivery_exception():
    def sender(payload):
        raise RuntimeError("rejected")

    service = EmailService(sender=sender)
    try:
        service.send_email("jamie@example.com", "Subject", TemplateRegistry.BOOKING_RECEIVED_CLIENT, {})
    except DeliveryException as exc:
        assert "rejected" in exc.message
    else:
        raise AssertionError("DeliveryException not raised")
