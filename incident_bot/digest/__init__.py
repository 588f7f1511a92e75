"""Weekday digest of incidents that still have no owner."""

from .messages import build_daily_digest_message, format_days_open
from .queries import UnassignedIncident, list_unassigned_incidents
from .service import send_daily_digest, start_digest_scheduler, today_in

__all__ = [
    "UnassignedIncident",
    "build_daily_digest_message",
    "format_days_open",
    "list_unassigned_incidents",
    "send_daily_digest",
    "start_digest_scheduler",
    "today_in",
]
