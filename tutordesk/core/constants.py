"""Common application-wide constants."""

from datetime import timedelta

# Default window for POST /recurring-sessions/{id}/generate without ``until``
DEFAULT_GENERATION_WINDOW = timedelta(days=90)

# Pending requests for sessions starting within this window get a reminder
PENDING_REQUEST_REMINDER_WINDOW = timedelta(hours=24)

DISPLAY_DATE_FORMAT = "%d/%m/%Y"
DISPLAY_TIME_FORMAT = "%H:%M"


__all__ = [
    "DEFAULT_GENERATION_WINDOW",
    "PENDING_REQUEST_REMINDER_WINDOW",
    "DISPLAY_DATE_FORMAT",
    "DISPLAY_TIME_FORMAT",
]
