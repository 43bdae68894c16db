"""
Template registry for strongly-typed access to Jinja templates.
"""

from enum import Enum


class TemplateRegistry(str, Enum):
    BOOKING_RECEIVED_CLIENT = "email/booking/received_client.html"
    BOOKING_NEW_PROVIDER = "email/booking/new_booking_provider.html"
    BOOKING_CANCELLED_CLIENT = "email/booking/cancelled_client.html"
    BOOKING_CANCELLED_PROVIDER = "email/booking/cancelled_provider.html"
    BOOKING_RESCHEDULED_CLIENT = "email/booking/rescheduled_client.html"
    BOOKING_REMINDER_CLIENT = "email/booking/reminder_client.html"
    AGENDA_SUMMARY = "email/agenda/daily_summary.html"
