"""Block Kit builder for the incident report modal."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Sequence

from .models import Area, Severity

INCIDENT_MODAL_CALLBACK_ID = "incident_modal"

TITLE_BLOCK_ID, TITLE_ACTION_ID = "title_block", "title_input"
DESCRIPTION_BLOCK_ID, DESCRIPTION_ACTION_ID = "description_block", "description_input"
SEVERITY_BLOCK_ID, SEVERITY_ACTION_ID = "severity_block", "severity_input"
AREA_BLOCK_ID, AREA_ACTION_ID = "area_block", "area_input"
HAPPENED_DATE_BLOCK_ID, HAPPENED_DATE_ACTION_ID = "happened_date_block", "happened_date_input"
DISCOVER_DATE_BLOCK_ID, DISCOVER_DATE_ACTION_ID = "discover_date_block", "discover_date_input"
DUE_DATE_BLOCK_ID, DUE_DATE_ACTION_ID = "due_date_block", "due_date_input"
WHY_BLOCK_ID, WHY_ACTION_ID = "why_it_matters_block", "why_it_matters_input"
TEAMS_BLOCK_ID, TEAMS_ACTION_ID = "teams_block", "teams_input"

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 3000
MAX_WHY_LENGTH = 1000
MAX_OPTION_LABEL_LENGTH = 75
MAX_SELECT_OPTIONS = 100

SEVERITY_LABELS = {
    Severity.ASAP: "ASAP - Urgent, needs attention now",
    Severity.HIGH: "High - Significant impact",
    Severity.NORMAL: "Normal - Regular priority",
    Severity.LOW: "Low - Minor issue",
}


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _plain(text: str) -> Dict[str, Any]:
    return {"type": "plain_text", "text": text, "emoji": True}


def _option(label: str, value: str) -> Dict[str, Any]:
    return {"text": _plain(_truncate(label, MAX_OPTION_LABEL_LENGTH)), "value": value}


def _input_block(
    block_id: str,
    label: str,
    element: Dict[str, Any],
    *,
    optional: bool = False,
    hint: str | None = None,
) -> Dict[str, Any]:
    block: Dict[str, Any] = {
        "type": "input",
        "block_id": block_id,
        "label": _plain(label),
        "element": element,
        "optional": optional,
    }
    if hint:
        block["hint"] = _plain(hint)
    return block


def _text_input(
    action_id: str,
    placeholder: str,
    *,
    max_length: int,
    multiline: bool = False,
    initial_value: str | None = None,
) -> Dict[str, Any]:
    element: Dict[str, Any] = {
        "type": "plain_text_input",
        "action_id": action_id,
        "placeholder": _plain(placeholder),
        "max_length": max_length,
    }
    if multiline:
        element["multiline"] = True
    if initial_value:
        element["initial_value"] = initial_value[:max_length]
    return element


def _date_picker(action_id: str, placeholder: str, initial_date: date | None = None) -> Dict[str, Any]:
    element: Dict[str, Any] = {
        "type": "datepicker",
        "action_id": action_id,
        "placeholder": _plain(placeholder),
    }
    if initial_date is not None:
        element["initial_date"] = initial_date.isoformat()
    return element


def build_incident_modal(
    *,
    teams: Sequence[Any] = (),
    today: date | None = None,
    initial_title: str | None = None,
    initial_description: str | None = None,
    private_metadata: str | None = None,
) -> Dict[str, Any]:
    """Build the incident modal.

    *teams* is the teams cache snapshot at render time; the team picker is left
    out when it is empty because Slack rejects selects without options.
    """

    blocks: List[Dict[str, Any]] = [
        _input_block(
            TITLE_BLOCK_ID,
            "Incident Title",
            _text_input(
                TITLE_ACTION_ID,
                "Brief description of the incident",
                max_length=MAX_TITLE_LENGTH,
                initial_value=initial_title,
            ),
        ),
        _input_block(
            DESCRIPTION_BLOCK_ID,
            "Description",
            _text_input(
                DESCRIPTION_ACTION_ID,
                "What happened, the impact, and any relevant context",
                max_length=MAX_DESCRIPTION_LENGTH,
                multiline=True,
                initial_value=initial_description,
            ),
        ),
        _input_block(
            SEVERITY_BLOCK_ID,
            "Severity",
            {
                "type": "static_select",
                "action_id": SEVERITY_ACTION_ID,
                "placeholder": _plain("Select severity level"),
                "options": [_option(SEVERITY_LABELS[severity], severity.value) for severity in Severity],
            },
        ),
        _input_block(
            AREA_BLOCK_ID,
            "Area",
            {
                "type": "static_select",
                "action_id": AREA_ACTION_ID,
                "placeholder": _plain("Select affected area"),
                "options": [_option(area.value, area.value) for area in Area],
            },
        ),
        _input_block(
            HAPPENED_DATE_BLOCK_ID,
            "Happened Date",
            _date_picker(HAPPENED_DATE_ACTION_ID, "When did it happen?"),
            optional=True,
        ),
        _input_block(
            DISCOVER_DATE_BLOCK_ID,
            "Discover Date",
            _date_picker(DISCOVER_DATE_ACTION_ID, "When was it discovered?", today or date.today()),
            optional=True,
        ),
        _input_block(
            DUE_DATE_BLOCK_ID,
            "Due Date",
            _date_picker(DUE_DATE_ACTION_ID, "When should it be resolved?"),
            optional=True,
        ),
        _input_block(
            WHY_BLOCK_ID,
            "Why It Matters",
            _text_input(
                WHY_ACTION_ID,
                "Potential consequences for the team, client, or project",
                max_length=MAX_WHY_LENGTH,
                multiline=True,
            ),
            optional=True,
        ),
    ]

    if teams:
        blocks.append(
            _input_block(
                TEAMS_BLOCK_ID,
                "Teams",
                {
                    "type": "multi_static_select",
                    "action_id": TEAMS_ACTION_ID,
                    "placeholder": _plain("Select affected teams"),
                    "options": [_option(team.name, team.id) for team in list(teams)[:MAX_SELECT_OPTIONS]],
                },
                optional=True,
            )
        )

    view: Dict[str, Any] = {
        "type": "modal",
        "callback_id": INCIDENT_MODAL_CALLBACK_ID,
        "title": _plain("Report Incident"),
        "submit": _plain("Submit"),
        "close": _plain("Cancel"),
        "blocks": blocks,
    }
    if private_metadata:
        view["private_metadata"] = private_metadata
    return view
