"""Block Kit message builders for incident notifications."""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from .models import SEVERITY_EMOJI, IncidentFormData

# Slack section text is capped at 3000 characters.
MAX_SECTION_TEXT = 2900
DIGEST_DESCRIPTION_LENGTH = 200
_UNKNOWN_SEVERITY_EMOJI = "⚪"


def _truncate(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    return value[:limit] + "..."


def _severity_label(form: IncidentFormData) -> str:
    return f"{SEVERITY_EMOJI.get(form.severity, _UNKNOWN_SEVERITY_EMOJI)} {form.severity.value}"


def _mrkdwn(value: str) -> Dict[str, Any]:
    return {"type": "mrkdwn", "text": value}


def _context(value: str) -> Dict[str, Any]:
    return {"type": "context", "elements": [_mrkdwn(value)]}


def build_confirmation_message(
    *,
    form: IncidentFormData,
    page_url: str,
    page_id: str,
    process_note_url: str | None = None,
) -> Dict[str, Any]:
    """Build the message announcing a newly created incident."""

    blocks: List[Dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "🚨 New Incident Reported", "emoji": True},
        },
        {
            "type": "section",
            "fields": [
                _mrkdwn(f"*Title:*\n{form.title}"),
                _mrkdwn(f"*Reported by:*\n<@{form.created_by}>"),
                _mrkdwn(f"*Severity:*\n{_severity_label(form)}"),
                _mrkdwn(f"*Area:*\n{form.area.value}"),
            ],
        },
        {
            "type": "section",
            "text": _mrkdwn(f"*Description:*\n{_truncate(form.description, MAX_SECTION_TEXT)}"),
        },
        {"type": "divider"},
        _context(f"📝 <{page_url}|View in Notion> • ID: {page_id.replace('-', '')[:8]}"),
    ]
    if process_note_url:
        blocks.append(
            _context(
                "ℹ️ *Process Note:* As the reporter, you will be asked to verify the fix when the "
                f"status changes to 'Ready for Review'. <{process_note_url}|Read about the resolution process>."
            )
        )

    return {
        "text": f"New incident reported: {form.title}",
        "blocks": blocks,
    }


def build_ephemeral_ack(*, form: IncidentFormData, page_url: str) -> Dict[str, Any]:
    """Short note shown only to the reporter when the confirmation went to a thread."""

    message = f"✅ Incident *{form.title}* was created and posted in this thread. <{page_url}|View in Notion>"
    return {
        "text": f"Incident created: {form.title}",
        "blocks": [{"type": "section", "text": _mrkdwn(message)}],
    }


def build_digest_announcement(
    *,
    form: IncidentFormData,
    page_url: str,
    team_names: Sequence[str] = (),
    slack_thread_url: str | None = None,
) -> Dict[str, Any]:
    """Compact summary of a new incident for the leadership digest channel."""

    team_info = ", ".join(team_names) if team_names else "No team assigned"
    links = [f"📝 <{page_url}|View in Notion>"]
    if slack_thread_url:
        links.append(f"💬 <{slack_thread_url}|Slack Thread>")

    return {
        "text": f"🚨 New Incident: {form.title}",
        "blocks": [
            {
                "type": "section",
                "text": _mrkdwn(
                    f"🚨 *New Incident: {form.title}*\n"
                    f"{_severity_label(form)} | Team: {team_info} | Reporter: <@{form.created_by}>"
                ),
            },
            {
                "type": "section",
                "text": _mrkdwn(f"*Description:*\n{_truncate(form.description, DIGEST_DESCRIPTION_LENGTH)}"),
            },
            _context(" • ".join(links)),
        ],
    }


def build_error_text(error: str) -> str:
    return f"Sorry, there was an error creating the incident: {error}"
