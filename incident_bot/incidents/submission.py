"""Utilities for extracting and validating incident modal submissions."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, ConfigDict, ValidationError

from incident_bot.errors import SubmissionValidationError

from . import modal
from .models import Area, IncidentFormData, Severity, TriggerContext


class SelectedOption(BaseModel):
    model_config = ConfigDict(extra="ignore")

    value: str | None = None


class SubmissionValue(BaseModel):
    """A single input element's state as Slack reports it."""

    model_config = ConfigDict(extra="ignore")

    value: str | None = None
    selected_option: SelectedOption | None = None
    selected_options: List[SelectedOption] | None = None
    selected_date: str | None = None


class SubmissionState(BaseModel):
    """Model to validate Slack modal state payloads."""

    values: Dict[str, Dict[str, SubmissionValue]]


def _element(state: SubmissionState, block_id: str, action_id: str) -> SubmissionValue:
    block = state.values.get(block_id) or {}
    if action_id in block:
        return block[action_id]
    return next(iter(block.values()), SubmissionValue())


def _text(value: SubmissionValue) -> str | None:
    if value.value is None:
        return None
    stripped = value.value.strip()
    return stripped or None


def _selected(value: SubmissionValue) -> str | None:
    if value.selected_option is None:
        return None
    return value.selected_option.value


def extract_form_fields(state_payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Pull raw field values out of modal state by their fixed ids.

    Missing fields come back as ``None`` (or an empty list for teams); nothing
    is validated here.
    """

    try:
        state = SubmissionState.model_validate(state_payload)
    except ValidationError as exc:
        raise ValueError("Invalid submission payload") from exc

    teams = _element(state, modal.TEAMS_BLOCK_ID, modal.TEAMS_ACTION_ID).selected_options or []
    return {
        "title": _text(_element(state, modal.TITLE_BLOCK_ID, modal.TITLE_ACTION_ID)),
        "description": _text(_element(state, modal.DESCRIPTION_BLOCK_ID, modal.DESCRIPTION_ACTION_ID)),
        "severity": _selected(_element(state, modal.SEVERITY_BLOCK_ID, modal.SEVERITY_ACTION_ID)),
        "area": _selected(_element(state, modal.AREA_BLOCK_ID, modal.AREA_ACTION_ID)),
        "happened_date": _element(state, modal.HAPPENED_DATE_BLOCK_ID, modal.HAPPENED_DATE_ACTION_ID).selected_date,
        "discover_date": _element(state, modal.DISCOVER_DATE_BLOCK_ID, modal.DISCOVER_DATE_ACTION_ID).selected_date,
        "due_date": _element(state, modal.DUE_DATE_BLOCK_ID, modal.DUE_DATE_ACTION_ID).selected_date,
        "why_it_matters": _text(_element(state, modal.WHY_BLOCK_ID, modal.WHY_ACTION_ID)),
        "team_ids": [option.value for option in teams if option.value],
    }


def _parse_date(raw: str | None, block_id: str, errors: Dict[str, str]) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        errors[block_id] = "Please pick a valid date."
        return None


def parse_incident_submission(
    state_payload: Mapping[str, Any],
    *,
    user_id: str,
    trigger: TriggerContext,
    channel_id: str,
) -> IncidentFormData:
    """Validate a modal submission and return the incident form data.

    Raises :class:`SubmissionValidationError` keyed by block id so the errors
    can be shown inline in the modal.
    """

    try:
        fields = extract_form_fields(state_payload)
    except ValueError as exc:
        raise SubmissionValidationError({"general": str(exc)}) from exc

    errors: Dict[str, str] = {}

    if not fields["title"]:
        errors[modal.TITLE_BLOCK_ID] = "Please enter a title."
    if not fields["description"]:
        errors[modal.DESCRIPTION_BLOCK_ID] = "Please describe what happened."

    severity: Severity | None = None
    try:
        severity = Severity(fields["severity"])
    except ValueError:
        errors[modal.SEVERITY_BLOCK_ID] = "Please select a severity."

    area: Area | None = None
    try:
        area = Area(fields["area"])
    except ValueError:
        errors[modal.AREA_BLOCK_ID] = "Please select an area."

    happened = _parse_date(fields["happened_date"], modal.HAPPENED_DATE_BLOCK_ID, errors)
    discovered = _parse_date(fields["discover_date"], modal.DISCOVER_DATE_BLOCK_ID, errors)
    due = _parse_date(fields["due_date"], modal.DUE_DATE_BLOCK_ID, errors)

    if errors:
        raise SubmissionValidationError(errors)

    return IncidentFormData(
        title=fields["title"],
        description=fields["description"],
        severity=severity,
        area=area,
        created_by=user_id,
        slack_channel_id=channel_id,
        trigger=trigger.source,
        happened_date=happened,
        discover_date=discovered,
        due_date=due,
        why_it_matters=fields["why_it_matters"],
        team_ids=fields["team_ids"],
    )
