"""Block Kit layout of the daily digest."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Mapping, Sequence

from incident_bot.incidents.models import SEVERITY_EMOJI, SEVERITY_ORDER

from .queries import UnassignedIncident


def format_days_open(days: int) -> str:
    if days <= 0:
        return "today"
    if days == 1:
        return "1 day ago"
    return f"{days} days ago"


def _attention_line(count: int) -> str:
    if count == 1:
        return "⚠️ *1 incident needs attention*"
    return f"⚠️ *{count} incidents need attention*"


def _incident_section(incident: UnassignedIncident, team_names: Sequence[str]) -> Dict[str, Any]:
    team_info = ", ".join(team_names) if team_names else "No team"
    return {
        "type": "section",
        "text": {
            "type": "mrkdwn",
            "text": (
                f"{SEVERITY_EMOJI[incident.severity]} *{incident.severity.value}* | "
                f"{format_days_open(incident.days_open)}\n"
                f"*{incident.title}*\n"
                f"Team: {team_info} | Area: {incident.area}\n"
                f"📝 <{incident.url}|View in Notion>"
            ),
        },
    }


def build_daily_digest_message(
    incidents: Sequence[UnassignedIncident],
    team_names: Mapping[str, Sequence[str]],
    today: date,
) -> Dict[str, Any]:
    """Group *incidents* by severity, most urgent first.

    ``team_names`` maps an incident id to the names of its teams.
    """

    heading = f"📋 Daily Incident Digest - {today.strftime('%B')} {today.day}, {today.year}"
    blocks: List[Dict[str, Any]] = [
        {"type": "header", "text": {"type": "plain_text", "text": heading}},
        {"type": "section", "text": {"type": "mrkdwn", "text": _attention_line(len(incidents))}},
        {"type": "divider"},
    ]

    for severity in SEVERITY_ORDER:
        for incident in incidents:
            if incident.severity is severity:
                blocks.append(_incident_section(incident, team_names.get(incident.id, ())))

    blocks.append({"type": "divider"})
    blocks.append(
        {
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": "💡 Assign owners in Notion to resolve these incidents"}],
        }
    )

    return {"text": f"{heading} ({len(incidents)} unassigned)", "blocks": blocks}
