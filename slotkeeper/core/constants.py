"""Application-wide constants for the slot engine and its scheduled runs."""

BRAND_NAME = "Slotkeeper"

# Availability calculator
DEFAULT_HORIZON_DAYS = 60
LATE_BOOKING_CUTOFF_HOUR = 18  # local hour after which today is no longer bookable
MIN_SERVICE_DURATION_MINUTES = 30

DEFAULT_BUSINESS_TIMEZONE = "Europe/Paris"

# Scheduled runs
SWEEP_MAX_CONCURRENCY = 10
SCHEDULED_RUN_TIME_LIMIT_SECONDS = 300
SLOT_SWEEP_INTERVAL_HOURS = 2
DAILY_AGENDA_HOUR = 20

# Reminders
REMINDER_WINDOW_HOURS = 25
SHORT_REMINDER_MAX_HOURS = 3

# Email
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

# Expo push API limits
EXPO_MAX_MESSAGES_PER_REQUEST = 100
