"""Notion queries backing the daily digest."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, List, Mapping

import structlog

from incident_bot.incidents.models import Area, Severity
from incident_bot.notion_store import page_url

OPEN_STATUSES = ("Open", "In Progress", "Ready for Review")

UNASSIGNED_FILTER = {
    "and": [
        {"property": "Owner", "people": {"is_empty": True}},
        {"or": [{"property": "Status", "status": {"equals": status}} for status in OPEN_STATUSES]},
    ]
}
OLDEST_FIRST = [{"property": "Discover Date", "direction": "ascending"}]


@dataclass(frozen=True)
class UnassignedIncident:
    id: str
    url: str
    title: str
    severity: Severity
    status: str
    area: str
    discover_date: date | None
    days_open: int
    team_ids: List[str] = field(default_factory=list)


def _severity(raw: str | None) -> Severity:
    try:
        return Severity(raw)
    except ValueError:
        return Severity.NORMAL


def _parse_date(raw: str | None) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def parse_unassigned_incident(page: Mapping[str, Any], today: date) -> UnassignedIncident:
    """Flatten a Notion incident page into the fields the digest shows."""

    properties = page.get("properties") or {}
    title_parts = (properties.get("Title") or {}).get("title") or []
    severity = ((properties.get("Severity") or {}).get("select") or {}).get("name")
    status = ((properties.get("Status") or {}).get("status") or {}).get("name") or "Open"
    area = ((properties.get("Area") or {}).get("select") or {}).get("name") or Area.INTERNAL.value
    discovered = _parse_date(((properties.get("Discover Date") or {}).get("date") or {}).get("start"))
    relations = (properties.get("Teams") or {}).get("relation") or []

    return UnassignedIncident(
        id=page["id"],
        url=page_url(page["id"]),
        title=(title_parts[0].get("plain_text") if title_parts else None) or "Untitled",
        severity=_severity(severity),
        status=status,
        area=area,
        discover_date=discovered,
        days_open=max((today - discovered).days, 0) if discovered else 0,
        team_ids=[relation["id"] for relation in relations if relation.get("id")],
    )


def list_unassigned_incidents(store, today: date) -> List[UnassignedIncident]:
    """Return open incidents without an owner, oldest discovery first."""

    pages = store.query_database(store.incidents_db_id, filter=UNASSIGNED_FILTER, sorts=OLDEST_FIRST)
    incidents = [parse_unassigned_incident(page, today) for page in pages]
    structlog.get_logger().info("unassigned_incidents_fetched", count=len(incidents))
    return incidents
