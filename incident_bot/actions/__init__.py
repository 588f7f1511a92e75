"""Utilities for handling Slack shortcut payloads and modal metadata."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping

from incident_bot.incidents.models import Destination, TriggerContext

SHARED_CHANNEL_PREFIX = "C"
MAX_PREFILL_TITLE_LENGTH = 200


@dataclass(frozen=True)
class ShortcutContext:
    """Parsed context of a "Report as Incident" message shortcut."""

    user_id: str
    trigger_id: str
    channel_id: str
    message_ts: str
    thread_ts: str
    text: str

    @property
    def initial_title(self) -> str:
        return self.text[:MAX_PREFILL_TITLE_LENGTH]

    def to_metadata(self) -> str:
        return build_trigger_metadata(
            channel_id=self.channel_id,
            message_ts=self.message_ts,
            thread_ts=self.thread_ts,
        )


def parse_message_shortcut(body: Mapping[str, Any]) -> ShortcutContext:
    """Parse a message shortcut payload into a structured context."""

    message = body.get("message") or {}
    channel = body.get("channel") or {}
    user = body.get("user") or {}

    channel_id = channel.get("id")
    message_ts = message.get("ts")
    trigger_id = body.get("trigger_id")
    user_id = user.get("id")

    if not isinstance(channel_id, str) or not channel_id:
        raise ValueError("Invalid shortcut payload.")
    if not isinstance(message_ts, str) or not message_ts:
        raise ValueError("Invalid shortcut payload.")
    if not isinstance(trigger_id, str) or not trigger_id:
        raise ValueError("Invalid shortcut payload.")
    if not isinstance(user_id, str) or not user_id:
        raise ValueError("Invalid shortcut payload.")

    return ShortcutContext(
        user_id=user_id,
        trigger_id=trigger_id,
        channel_id=channel_id,
        message_ts=message_ts,
        thread_ts=message.get("thread_ts") or message_ts,
        text=message.get("text") or "",
    )


def build_trigger_metadata(*, channel_id: str, message_ts: str, thread_ts: str | None = None) -> str:
    return json.dumps(
        {
            "sourceChannelId": channel_id,
            "sourceMessageTs": message_ts,
            "sourceThreadTs": thread_ts or message_ts,
        },
        separators=(",", ":"),
    )


def _optional_str(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_trigger_context(raw_metadata: str | None) -> TriggerContext:
    """Parse modal private metadata; anything unusable means "slash command"."""

    if not raw_metadata:
        return TriggerContext()
    try:
        payload = json.loads(raw_metadata)
    except (TypeError, ValueError):
        return TriggerContext()
    if not isinstance(payload, dict):
        return TriggerContext()

    channel_id = _optional_str(payload, "sourceChannelId")
    if channel_id is None:
        return TriggerContext()

    return TriggerContext(
        source_channel_id=channel_id,
        source_message_ts=_optional_str(payload, "sourceMessageTs"),
        source_thread_ts=_optional_str(payload, "sourceThreadTs"),
    )


def is_shared_channel(channel_id: str | None) -> bool:
    """Public and shared channel ids start with ``C``; DMs and groups do not."""

    return bool(channel_id) and channel_id.startswith(SHARED_CHANNEL_PREFIX)


def determine_destination(trigger: TriggerContext, user_id: str) -> Destination:
    """Reply in the source thread for channel messages, otherwise DM the user."""

    if trigger.is_message_action and is_shared_channel(trigger.source_channel_id) and trigger.thread_ts:
        return Destination(channel=trigger.source_channel_id, thread_ts=trigger.thread_ts)
    return Destination(channel=user_id)
