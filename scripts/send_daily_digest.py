"""Send the daily digest of unassigned incidents once.

Usage:
    python scripts/send_daily_digest.py

Environment:
    Requires the same settings as the bot (SLACK_BOT_TOKEN, NOTION_TOKEN,
    NOTION_DB_ID, ...) plus SLACK_DIGEST_CHANNEL_ID. Team names are read
    from NOTION_TEAMS_DB_ID when it is set.
"""

from __future__ import annotations

import sys

from incident_bot.config import get_settings
from incident_bot.digest import send_daily_digest, today_in
from incident_bot.logging_config import configure_logging
from incident_bot.notion_store import NotionStore
from incident_bot.slack_client import SlackClient
from incident_bot.teams_cache import TeamsCache, fetch_active_teams


def main() -> int:
    settings = get_settings()
    configure_logging(settings.log_level, pretty=True)

    slack = SlackClient(token=settings.bot_token, timeout=settings.slack_timeout_seconds)
    store = NotionStore(
        incidents_db_id=settings.incidents_db_id,
        teams_db_id=settings.teams_db_id,
        token=settings.notion_token,
        timeout_ms=settings.notion_timeout_ms,
    )
    teams = TeamsCache(lambda: fetch_active_teams(store))
    teams.refresh()

    sent = send_daily_digest(
        slack=slack,
        store=store,
        teams=teams,
        channel_id=settings.digest_channel_id,
        today=today_in(settings.tzinfo),
    )
    print("Daily digest sent." if sent else "Daily digest not sent; see the log for the reason.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
