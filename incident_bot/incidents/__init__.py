"""Incident domain: modal, submission parsing, Notion records and messages."""

from .models import (  # noqa: F401
    Area,
    Destination,
    IncidentFormData,
    PostedMessage,
    Severity,
    ThreadMessage,
    ThreadMessagesResult,
    TriggerContext,
    TriggerSource,
)

__all__ = [
    "Area",
    "Destination",
    "IncidentFormData",
    "PostedMessage",
    "Severity",
    "ThreadMessage",
    "ThreadMessagesResult",
    "TriggerContext",
    "TriggerSource",
]
