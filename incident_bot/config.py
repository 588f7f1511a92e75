"""Pydantic-based configuration helpers for the incident bot."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Iterable, List, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, ValidationError, field_validator


class AppSettings(BaseModel):
    """Settings required to initialise the Slack bot and its Notion backend."""

    bot_token: str = Field(..., alias="SLACK_BOT_TOKEN")
    signing_secret: str = Field(..., alias="SLACK_SIGNING_SECRET")
    notion_token: str = Field(..., alias="NOTION_TOKEN")
    incidents_db_id: str = Field(..., alias="NOTION_DB_ID")
    teams_db_id: str | None = Field(None, alias="NOTION_TEAMS_DB_ID")
    digest_channel_id: str | None = Field(None, alias="SLACK_DIGEST_CHANNEL_ID")
    workspace_domain: str | None = Field(None, alias="SLACK_WORKSPACE_DOMAIN")
    cron_secret: str | None = Field(None, alias="CRON_SECRET")
    resolution_process_url: str | None = Field(None, alias="RESOLUTION_PROCESS_URL")
    app_env: Literal["development", "production", "test"] = Field("production", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    port: int = Field(3000, alias="PORT")
    thread_message_limit: int = Field(30, alias="THREAD_MESSAGE_LIMIT")
    teams_refresh_seconds: int = Field(300, alias="TEAMS_REFRESH_SECONDS")
    slack_timeout_seconds: int = Field(10, alias="SLACK_TIMEOUT_SECONDS")
    notion_timeout_ms: int = Field(15000, alias="NOTION_TIMEOUT_MS")
    display_timezone: str = Field("UTC", alias="DISPLAY_TIMEZONE")
    digest_hour: int = Field(9, alias="DIGEST_HOUR")
    background_workers: int = Field(4, alias="BACKGROUND_WORKERS")

    @field_validator(
        "teams_db_id",
        "digest_channel_id",
        "workspace_domain",
        "cron_secret",
        "resolution_process_url",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        trimmed = str(value).strip()
        return trimmed or None

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @field_validator(
        "port",
        "thread_message_limit",
        "teams_refresh_seconds",
        "slack_timeout_seconds",
        "notion_timeout_ms",
        "background_workers",
    )
    @classmethod
    def _ensure_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Value must be greater than zero")
        return value

    @field_validator("digest_hour")
    @classmethod
    def _ensure_hour(cls, value: int) -> int:
        if not 0 <= value <= 23:
            raise ValueError("DIGEST_HOUR must be between 0 and 23")
        return value

    @field_validator("display_timezone")
    @classmethod
    def _ensure_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone '{value}'") from exc
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.display_timezone)


def _format_missing(fields: Iterable[str]) -> str:
    """Return a human-friendly comma-separated list of missing env vars."""

    unique: List[str] = []
    for field in fields:
        if field not in unique:
            unique.append(field)
    return ", ".join(unique)


@lru_cache()
def get_settings() -> AppSettings:
    """Fetch and cache settings from environment variables."""

    try:
        return AppSettings.model_validate(os.environ)
    except ValidationError as exc:
        errors = exc.errors()
        missing = [str(error["loc"][0]) for error in errors if error["type"] == "missing"]
        if missing:
            message = (
                "Missing required environment variables: "
                f"{_format_missing(missing)}"
            )
        else:
            invalid = [str(error["loc"][0]) for error in errors]
            message = f"Invalid environment variables: {_format_missing(invalid)}"
        raise RuntimeError(message) from exc
