"""Fetch and format the Slack thread an incident was reported from."""

from __future__ import annotations

import threading
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable, Dict, List, Mapping

import structlog

from incident_bot.errors import describe_error

from .models import ThreadMessage, ThreadMessagesResult

DEFAULT_THREAD_LIMIT = 30
UNKNOWN_USER = "Unknown User"


class UserNameCache:
    """Process-lifetime memo of Slack user id to display name.

    Unbounded: the number of distinct authors a process sees is small. Failed
    lookups are not cached so a later call can retry.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._names: Dict[str, str] = {}

    def get(self, user_id: str, loader: Callable[[str], str]) -> str:
        with self._lock:
            cached = self._names.get(user_id)
        if cached is not None:
            return cached

        name = loader(user_id)
        with self._lock:
            return self._names.setdefault(user_id, name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)

    def clear(self) -> None:
        with self._lock:
            self._names.clear()


def display_name(user: Mapping[str, Any]) -> str | None:
    profile = user.get("profile") or {}
    return profile.get("display_name") or user.get("real_name") or profile.get("real_name") or None


def format_slack_time(ts: str, tz: tzinfo = timezone.utc) -> str:
    """Render a Slack ``1700000000.000100`` timestamp as ``10:13 PM``."""

    try:
        moment = datetime.fromtimestamp(float(ts), tz=tz)
    except (TypeError, ValueError, OverflowError):
        return ""
    return moment.strftime("%I:%M %p").lstrip("0")


class ThreadFetcher:
    """Load the replies of a Slack thread with resolved author names."""

    def __init__(
        self,
        slack,
        *,
        names: UserNameCache | None = None,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self._slack = slack
        self._names = names if names is not None else UserNameCache()
        self._tz = tz

    def _load_name(self, user_id: str) -> str:
        user = self._slack.user_info(user_id)
        name = display_name(user)
        if not name:
            raise LookupError(f"user {user_id} has no display name")
        return name

    def user_name(self, user_id: str | None) -> str:
        if not user_id:
            return UNKNOWN_USER
        try:
            return self._names.get(user_id, self._load_name)
        except Exception as exc:
            structlog.get_logger().warning("slack_user_lookup_failed", user_id=user_id, error=describe_error(exc))
            return UNKNOWN_USER

    def fetch(self, channel_id: str, thread_ts: str, limit: int = DEFAULT_THREAD_LIMIT) -> ThreadMessagesResult | None:
        """Return the thread's replies, oldest first, without the root message.

        Returns ``None`` when the thread cannot be read.
        """

        log = structlog.get_logger().bind(channel=channel_id, thread_ts=thread_ts)
        try:
            response = self._slack.conversation_replies(channel=channel_id, ts=thread_ts, limit=limit)
        except Exception as exc:
            log.error("thread_fetch_failed", error=describe_error(exc))
            return None

        raw_messages = response.get("messages")
        if not response.get("ok", True) or raw_messages is None:
            log.error("thread_fetch_failed", error=response.get("error") or "no_messages")
            return None

        replies = [message for message in raw_messages if message.get("ts") != thread_ts]
        if not replies:
            log.info("thread_has_no_replies")
            return ThreadMessagesResult()

        messages: List[ThreadMessage] = []
        for reply in replies:
            timestamp = reply.get("ts") or ""
            messages.append(
                ThreadMessage(
                    user=reply.get("user") or "unknown",
                    user_name=self.user_name(reply.get("user")),
                    text=reply.get("text") or "",
                    timestamp=timestamp,
                    formatted_time=format_slack_time(timestamp, self._tz),
                )
            )

        has_more = bool(response.get("has_more"))
        log.info("thread_fetched", message_count=len(messages), has_more=has_more)
        return ThreadMessagesResult(messages=messages, total_count=len(messages), has_more=has_more)
