"""Send the weekday digest of unassigned incidents."""

from __future__ import annotations

from datetime import date, datetime, tzinfo
from typing import Callable

import structlog
from apscheduler.schedulers.background import BackgroundScheduler

from incident_bot.errors import describe_error

from .messages import build_daily_digest_message
from .queries import list_unassigned_incidents

DIGEST_JOB_ID = "daily_digest"


def send_daily_digest(
    *,
    slack,
    store,
    teams,
    channel_id: str | None,
    today: date | None = None,
) -> bool:
    """Post the digest to *channel_id*; return whether a message was sent.

    Never raises. Nothing is posted when no channel is configured or when
    every incident has an owner.
    """

    log = structlog.get_logger().bind(channel=channel_id)
    if not channel_id:
        log.info("daily_digest_skipped", reason="channel_not_configured")
        return False

    today = today or date.today()
    try:
        incidents = list_unassigned_incidents(store, today)
        if not incidents:
            log.info("daily_digest_skipped", reason="no_unassigned_incidents")
            return False

        team_names = {
            incident.id: teams.team_names(incident.team_ids)
            for incident in incidents
            if incident.team_ids
        }
        payload = build_daily_digest_message(incidents, team_names, today)
        slack.post_message(channel=channel_id, text=payload["text"], blocks=payload["blocks"])
    except Exception as exc:
        log.error("daily_digest_failed", error=describe_error(exc), exc_info=exc)
        return False

    log.info("daily_digest_sent", incident_count=len(incidents))
    return True


def start_digest_scheduler(
    job: Callable[[], object],
    *,
    hour: int,
    timezone: tzinfo,
) -> BackgroundScheduler:
    """Run *job* at ``hour``:00 Monday to Friday in *timezone*."""

    scheduler = BackgroundScheduler(timezone=timezone)
    scheduler.add_job(
        job,
        trigger="cron",
        day_of_week="mon-fri",
        hour=hour,
        minute=0,
        id=DIGEST_JOB_ID,
        replace_existing=True,
    )
    scheduler.start()
    structlog.get_logger().info("daily_digest_scheduled", hour=hour, timezone=str(timezone))
    return scheduler


def today_in(timezone: tzinfo) -> date:
    return datetime.now(timezone).date()
