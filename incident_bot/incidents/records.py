"""Map incident form data onto the Notion incidents database schema."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict

from .models import IncidentFormData, TriggerSource
from .template import text, truncate_utf16

DESCRIPTION_PROPERTY_LIMIT = 2000
INITIAL_STATUS = "Open"
CREATED_FROM = "Automatic"

TRIGGER_LABELS = {
    TriggerSource.SLASH_COMMAND: "Slack /incident command",
    TriggerSource.MESSAGE_ACTION: "Slack message action",
}


def _rich_text(content: str) -> Dict[str, Any]:
    return {"rich_text": [text(content)]}


def _date(value: date | datetime) -> Dict[str, Any]:
    return {"date": {"start": value.isoformat()}}


def build_incident_properties(form: IncidentFormData) -> Dict[str, Any]:
    """Return Notion page properties for *form*.

    Optional properties are left out entirely when their value is absent.
    """

    properties: Dict[str, Any] = {
        "Title": {"title": [text(form.title)]},
        "Description": _rich_text(truncate_utf16(form.description, DESCRIPTION_PROPERTY_LIMIT)),
        "Status": {"status": {"name": INITIAL_STATUS}},
        "Severity": {"select": {"name": form.severity.value}},
        "Area": {"select": {"name": form.area.value}},
        "Created From": {"select": {"name": CREATED_FROM}},
        "Trigger": _rich_text(TRIGGER_LABELS[form.trigger]),
    }

    if form.reporter_notion_id:
        properties["Reporter"] = {"people": [{"id": form.reporter_notion_id}]}
    if form.happened_date:
        properties["Happened Date"] = _date(form.happened_date)
    if form.discover_date:
        properties["Discover Date"] = _date(form.discover_date)
    if form.due_date:
        properties["Due Date"] = _date(form.due_date)
    if form.team_ids:
        properties["Teams"] = {"relation": [{"id": team_id} for team_id in form.team_ids]}

    return properties


def build_slack_link_properties(
    *,
    message_url: str,
    message_ts: str,
    channel_id: str,
    synced_at: datetime,
) -> Dict[str, Any]:
    """Properties linking an incident page back to its Slack confirmation."""

    return {
        "Slack Message URL": {"url": message_url},
        "Slack Thread ID": _rich_text(message_ts),
        "Slack Channel ID": _rich_text(channel_id),
        "Last Synced": _date(synced_at),
    }
