"""Notion block builders for the body of an incident page."""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from .models import ThreadMessage

SLACK_THREAD_PLACEHOLDER = "Slack thread (link will be added automatically)"
SLACK_THREAD_MARKER = "Slack thread"

RESOLUTION_CHECKLIST = (
    "Assign an Owner - designate who is responsible for driving resolution",
    "Confirm Accountable - clarify who oversees progress and ensures closure",
    "Identify Root Cause - quickly assess what triggered or caused the issue",
    "Immediate Actions - what is being done right now to mitigate impact",
    "Longer-term Fix - what will be changed to prevent this from happening again",
    "Communicate Updates - inform relevant stakeholders (client, team, leadership)",
    "Update Status in Notion - move to In Progress / Resolved as appropriate",
    "Follow-up Check - review results or verify improvement after a few days",
)

# Notion rejects rich text objects longer than this, counted in UTF-16 units.
MAX_RICH_TEXT_LENGTH = 2000


def utf16_length(content: str) -> int:
    return len(content.encode("utf-16-le")) // 2


def truncate_utf16(content: str, limit: int = MAX_RICH_TEXT_LENGTH) -> str:
    """Return the longest prefix of *content* that fits in *limit* UTF-16 units.

    The cut never lands inside a surrogate pair.
    """

    encoded = content.encode("utf-16-le")
    cut = limit * 2
    if len(encoded) <= cut:
        return content
    if 0xD800 <= int.from_bytes(encoded[cut - 2 : cut], "little") <= 0xDBFF:
        cut -= 2
    return encoded[:cut].decode("utf-16-le")


def text(content: str, *, link: str | None = None, **annotations: Any) -> Dict[str, Any]:
    item: Dict[str, Any] = {"type": "text", "text": {"content": content}}
    if link:
        item["text"]["link"] = {"url": link}
    if annotations:
        item["annotations"] = annotations
    return item


def chunked_text(content: str) -> List[Dict[str, Any]]:
    """Split *content* into rich text items Notion will accept."""

    items: List[Dict[str, Any]] = []
    rest = content
    while rest:
        chunk = truncate_utf16(rest)
        items.append(text(chunk))
        rest = rest[len(chunk) :]
    return items


def _block(block_type: str, **payload: Any) -> Dict[str, Any]:
    return {"object": "block", "type": block_type, block_type: payload}


def _heading(title: str) -> Dict[str, Any]:
    return _block("heading_1", rich_text=[text(title)])


def _guidance(content: str) -> Dict[str, Any]:
    return _block("quote", rich_text=[text(content, italic=True, color="gray")])


def _paragraph(content: str | None) -> Dict[str, Any]:
    return _block("paragraph", rich_text=chunked_text(content) if content else [])


def _divider() -> Dict[str, Any]:
    return _block("divider")


def build_slack_thread_bullet(thread_url: str | None = None) -> Dict[str, Any]:
    """Related-section bullet pointing at the Slack thread, or its placeholder."""

    if thread_url:
        rich_text = [
            text("Slack thread: "),
            text("View in Slack", link=thread_url, color="blue"),
        ]
    else:
        rich_text = [text(SLACK_THREAD_PLACEHOLDER, italic=True, color="gray")]
    return _block("bulleted_list_item", rich_text=rich_text)


def build_incident_page_blocks(
    *,
    description: str,
    why_it_matters: str | None = None,
    slack_thread_url: str | None = None,
) -> List[Dict[str, Any]]:
    """Return the five-section incident page body.

    The layout is fixed: What Happened, Why It Matters, Resolution Plan (eight
    unchecked to-dos), Postmortem, Related.
    """

    blocks: List[Dict[str, Any]] = [
        _heading("🧠 What Happened"),
        _guidance(
            "A short, factual summary of what occurred and how it was noticed.\n"
            "Stick to facts, avoid opinions or assigning blame."
        ),
        _paragraph(description),
        _divider(),
        _heading("🎯 Why It Matters"),
        _guidance(
            "Why is this important?\n"
            "What are the potential consequences for the team, client, or project?"
        ),
        _paragraph(why_it_matters),
        _divider(),
        _heading("🧰 Resolution Plan"),
        _guidance("Steps that will be taken to move this incident toward resolution:"),
    ]
    blocks.extend(_block("to_do", rich_text=[text(item)], checked=False) for item in RESOLUTION_CHECKLIST)
    blocks.extend(
        [
            _divider(),
            _heading("🧾 Postmortem"),
            _guidance(
                "What was the real underlying cause?\n"
                "What worked well in the response, and what did not?\n"
                "What lessons did we learn?\n"
                "What systemic changes can we make to avoid similar issues?"
            ),
            _paragraph(None),
            _divider(),
            _heading("🔗 Related"),
            build_slack_thread_bullet(slack_thread_url),
            _block("bulleted_list_item", rich_text=[text("Related incidents")]),
            _block("bulleted_list_item", rich_text=[text("Docs / playbooks / client notes")]),
        ]
    )
    return blocks


def thread_context_title(count: int) -> str:
    noun = "message" if count == 1 else "messages"
    return f"💬 Thread Context ({count} {noun})"


def build_thread_context_blocks(messages: Sequence[ThreadMessage]) -> List[Dict[str, Any]]:
    """Divider plus a collapsed toggle quoting each thread reply in order."""

    if not messages:
        return []

    quotes = [
        _block(
            "quote",
            rich_text=chunked_text(f"{message.user_name} • {message.formatted_time}\n{message.text}"),
            color="gray",
        )
        for message in messages
    ]
    toggle = _block(
        "toggle",
        rich_text=[text(thread_context_title(len(messages)), bold=True)],
        children=quotes,
    )
    return [_divider(), toggle]
