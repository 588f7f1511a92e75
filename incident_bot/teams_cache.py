"""Background-refreshed cache of the Notion teams used by the incident modal."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Iterable, List, Mapping, Sequence

import structlog

from incident_bot.errors import describe_error

DEFAULT_REFRESH_INTERVAL = timedelta(minutes=5)
UNNAMED_TEAM = "Unnamed Team"
_TITLE_PROPERTIES = ("Team", "Name", "Title")


@dataclass(frozen=True)
class Team:
    id: str
    name: str


@dataclass(frozen=True)
class TeamsSnapshot:
    teams: tuple[Team, ...] = field(default_factory=tuple)
    last_updated: datetime | None = None


def _team_name(page: Mapping[str, Any]) -> str:
    properties = page.get("properties") or {}
    for key in _TITLE_PROPERTIES:
        prop = properties.get(key)
        if not prop:
            continue
        title = prop.get("title") or []
        if title and title[0].get("plain_text"):
            return title[0]["plain_text"]
        break
    return UNNAMED_TEAM


def fetch_active_teams(store) -> List[Team]:
    """Return the active teams from the configured Notion teams database."""

    log = structlog.get_logger()
    if not store.teams_db_id:
        log.warning("teams_db_not_configured")
        return []

    pages = store.query_database(
        store.teams_db_id,
        filter={"property": "Active", "checkbox": {"equals": True}},
    )
    return [Team(id=page["id"], name=_team_name(page)) for page in pages]


class TeamsCache:
    """Read-only snapshot of teams, refreshed on a fixed interval.

    The refresh thread is the only writer and swaps in a new immutable
    :class:`TeamsSnapshot` with a single assignment, so readers always see
    either the complete old list or the complete new one.
    """

    def __init__(
        self,
        fetch: Callable[[], Sequence[Team]],
        *,
        interval: timedelta = DEFAULT_REFRESH_INTERVAL,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if interval.total_seconds() <= 0:
            raise ValueError("Refresh interval must be greater than zero seconds.")

        self._fetch = fetch
        self._interval = interval
        self._clock = clock or (lambda: datetime.now(UTC))
        self._snapshot = TeamsSnapshot()
        self._lifecycle_lock = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None

    def initialize(self) -> None:
        """Populate the cache once, then start the periodic refresh.

        Never raises: an empty cache is a valid starting state.
        """

        log = structlog.get_logger()
        log.info("teams_cache_initializing")
        self.refresh()

        with self._lifecycle_lock:
            self._stop_locked()
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(stop_event,),
                name="teams-cache-refresh",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
            thread.start()

        log.info("teams_cache_refresh_scheduled", interval_seconds=self._interval.total_seconds())

    def refresh(self) -> bool:
        """Fetch the full team list and swap it in; keep the old list on failure."""

        log = structlog.get_logger()
        started = self._clock()
        try:
            teams = tuple(self._fetch())
        except Exception as exc:
            log.error("teams_cache_refresh_failed", error=describe_error(exc))
            return False

        finished = self._clock()
        self._snapshot = TeamsSnapshot(teams=teams, last_updated=finished)
        log.info(
            "teams_cache_refreshed",
            teams_count=len(teams),
            duration_ms=int((finished - started).total_seconds() * 1000),
        )
        return True

    def read(self) -> tuple[Team, ...]:
        return self._snapshot.teams

    def snapshot(self) -> TeamsSnapshot:
        return self._snapshot

    def team_names(self, team_ids: Iterable[str]) -> List[str]:
        """Map *team_ids* to names, silently dropping ids missing from the cache."""

        by_id = {team.id: team.name for team in self._snapshot.teams}
        return [by_id[team_id] for team_id in team_ids if team_id in by_id]

    def stop(self) -> None:
        """Cancel the periodic refresh. Safe to call repeatedly or before start."""

        with self._lifecycle_lock:
            stopped = self._stop_locked()
        if stopped:
            structlog.get_logger().info("teams_cache_refresh_stopped")

    def _stop_locked(self) -> bool:
        if self._thread is None or self._stop_event is None:
            return False
        self._stop_event.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout=5)
        self._thread = None
        self._stop_event = None
        return True

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self._interval.total_seconds()):
            self.refresh()
