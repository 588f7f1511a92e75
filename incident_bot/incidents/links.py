"""Backfill Slack links onto incident pages after the confirmation is posted."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Mapping
from urllib.parse import urlencode

import structlog

from incident_bot.errors import describe_error

from .models import PostedMessage
from .records import build_slack_link_properties
from .template import SLACK_THREAD_MARKER, build_slack_thread_bullet


def build_slack_message_url(
    channel_id: str,
    message_ts: str,
    *,
    workspace_domain: str | None = None,
    thread_ts: str | None = None,
) -> str:
    """Return a permalink-style URL for a Slack message.

    Without a workspace domain the ``app.slack.com`` host is used; Slack
    redirects it to the right workspace.
    """

    domain = workspace_domain or "app"
    url = f"https://{domain}.slack.com/archives/{channel_id}/p{message_ts.replace('.', '')}"
    if thread_ts and thread_ts != message_ts:
        url += "?" + urlencode({"thread_ts": thread_ts, "cid": channel_id})
    return url


def _is_slack_thread_bullet(block: Mapping[str, Any]) -> bool:
    if block.get("type") != "bulleted_list_item":
        return False
    rich_text = (block.get("bulleted_list_item") or {}).get("rich_text") or []
    if not rich_text:
        return False
    first = rich_text[0]
    content = first.get("plain_text") or (first.get("text") or {}).get("content") or ""
    return SLACK_THREAD_MARKER in content


def backfill_slack_link(
    store,
    *,
    page_id: str,
    message: PostedMessage,
    message_url: str,
    synced_at: datetime | None = None,
) -> bool:
    """Patch the page's Slack properties, then swap the placeholder bullet.

    The property patch raises on failure. The bullet update is secondary: a
    failure there is logged and reported by returning ``False``.
    """

    log = structlog.get_logger().bind(page_id=page_id, channel=message.channel)
    store.update_page(
        page_id,
        build_slack_link_properties(
            message_url=message_url,
            message_ts=message.ts,
            channel_id=message.channel,
            synced_at=synced_at or datetime.now(UTC),
        ),
    )
    log.info("slack_link_backfilled")

    try:
        blocks = store.list_blocks(page_id)
        bullet = next((block for block in blocks if _is_slack_thread_bullet(block)), None)
        if bullet is None:
            log.warning("slack_thread_bullet_missing")
            return False
        store.update_block(
            bullet["id"],
            bulleted_list_item=build_slack_thread_bullet(message_url)["bulleted_list_item"],
        )
    except Exception as exc:
        log.warning("slack_thread_bullet_update_failed", error=describe_error(exc))
        return False

    log.info("slack_thread_bullet_updated", block_id=bullet["id"])
    return True
