"""Thin wrapper utilities around the Slack WebClient."""

from __future__ import annotations

from typing import Any, Mapping, Sequence
from urllib.error import URLError

from slack_sdk import WebClient

from incident_bot.errors import ExternalCallTimeout


class SlackClient:
    """Encapsulate Slack WebClient interactions for easier testing.

    Every call goes through :meth:`_call` so a socket timeout from the
    underlying client surfaces as :class:`ExternalCallTimeout`.
    """

    def __init__(
        self,
        *,
        token: str | None = None,
        client: WebClient | None = None,
        timeout: int | None = None,
    ) -> None:
        if client is None and token is None:
            raise ValueError("Either an instantiated client or a bot token must be provided.")

        if client is None:
            client = WebClient(token=token, timeout=timeout) if timeout else WebClient(token=token)
        self._client = client

    @property
    def client(self) -> WebClient:
        """Expose the underlying WebClient for advanced use cases."""

        return self._client

    def _call(self, operation: str, method: str, **kwargs: Any) -> Mapping[str, Any]:
        try:
            return getattr(self._client, method)(**kwargs)
        except TimeoutError as exc:
            raise ExternalCallTimeout("slack", operation) from exc
        except URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                raise ExternalCallTimeout("slack", operation) from exc
            raise

    def post_message(
        self,
        *,
        channel: str,
        text: str,
        blocks: Sequence[Mapping[str, Any]] | None = None,
        thread_ts: str | None = None,
    ) -> Mapping[str, Any]:
        """Post a message with Block Kit content, optionally as a thread reply."""

        kwargs: dict[str, Any] = {"channel": channel, "text": text}
        if blocks:
            kwargs["blocks"] = list(blocks)
        if thread_ts:
            kwargs["thread_ts"] = thread_ts
        return self._call("chat.postMessage", "chat_postMessage", **kwargs)

    def post_ephemeral(
        self,
        *,
        channel: str,
        user: str,
        text: str,
        blocks: Sequence[Mapping[str, Any]] | None = None,
        thread_ts: str | None = None,
    ) -> Mapping[str, Any]:
        """Post a message only *user* can see."""

        kwargs: dict[str, Any] = {"channel": channel, "user": user, "text": text}
        if blocks:
            kwargs["blocks"] = list(blocks)
        if thread_ts:
            kwargs["thread_ts"] = thread_ts
        return self._call("chat.postEphemeral", "chat_postEphemeral", **kwargs)

    def open_view(self, *, trigger_id: str, view: Mapping[str, Any]) -> Mapping[str, Any]:
        return self._call("views.open", "views_open", trigger_id=trigger_id, view=dict(view))

    def user_info(self, user_id: str) -> Mapping[str, Any]:
        """Return the ``user`` object for *user_id* (empty mapping when absent)."""

        response = self._call("users.info", "users_info", user=user_id)
        return response.get("user") or {}

    def conversation_replies(self, *, channel: str, ts: str, limit: int) -> Mapping[str, Any]:
        return self._call("conversations.replies", "conversations_replies", channel=channel, ts=ts, limit=limit)

    def auth_test(self) -> Mapping[str, Any]:
        return self._call("auth.test", "auth_test")
