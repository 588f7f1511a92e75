"""Pydantic models and value types describing an incident submission."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class Severity(str, Enum):
    ASAP = "ASAP"
    HIGH = "High"
    NORMAL = "Normal"
    LOW = "Low"


class Area(str, Enum):
    CLIENT = "Client"
    INTERNAL = "Internal"
    PROCESS = "Process"
    PEOPLE = "People"
    CLIENT_COMMUNICATION = "Client Communication"


class TriggerSource(str, Enum):
    SLASH_COMMAND = "slash_command"
    MESSAGE_ACTION = "message_action"


SEVERITY_ORDER = (Severity.ASAP, Severity.HIGH, Severity.NORMAL, Severity.LOW)

SEVERITY_EMOJI = {
    Severity.ASAP: "⚡",
    Severity.HIGH: "🟠",
    Severity.NORMAL: "🟡",
    Severity.LOW: "🟢",
}


class IncidentFormData(BaseModel):
    """Everything captured for one incident, from the modal and from Slack."""

    title: str
    description: str
    severity: Severity
    area: Area
    created_by: str
    created_by_name: str = "Unknown"
    slack_channel_id: str
    trigger: TriggerSource = TriggerSource.SLASH_COMMAND
    reporter_notion_id: str | None = None
    happened_date: date | None = None
    discover_date: date | None = None
    due_date: date | None = None
    why_it_matters: str | None = None
    team_ids: List[str] = Field(default_factory=list)


@dataclass(frozen=True)
class TriggerContext:
    """Where the incident modal was launched from.

    Built from the modal's private metadata; an empty context means the modal
    came from the ``/incident`` slash command.
    """

    source_channel_id: str | None = None
    source_message_ts: str | None = None
    source_thread_ts: str | None = None

    @property
    def is_message_action(self) -> bool:
        return bool(self.source_channel_id)

    @property
    def thread_ts(self) -> str | None:
        return self.source_thread_ts or self.source_message_ts

    @property
    def source(self) -> TriggerSource:
        return TriggerSource.MESSAGE_ACTION if self.is_message_action else TriggerSource.SLASH_COMMAND


@dataclass(frozen=True)
class ThreadMessage:
    user: str
    user_name: str
    text: str
    timestamp: str
    formatted_time: str


@dataclass(frozen=True)
class ThreadMessagesResult:
    messages: List[ThreadMessage] = field(default_factory=list)
    total_count: int = 0
    has_more: bool = False


@dataclass(frozen=True)
class Destination:
    """Where the confirmation is posted."""

    channel: str
    thread_ts: str | None = None

    @property
    def is_channel_thread(self) -> bool:
        return self.thread_ts is not None


@dataclass(frozen=True)
class PostedMessage:
    channel: str
    ts: str
    thread_ts: str | None = None
