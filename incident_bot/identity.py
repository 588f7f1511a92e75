"""Map Slack users onto Notion workspace users."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

import structlog

from incident_bot.errors import describe_error


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class LookupResult:
    """Outcome of a directory lookup.

    ``NOT_FOUND`` means the directory was searched cleanly without a match;
    ``FAILED`` means the search itself broke. Callers currently treat both the
    same way, but tests and logs can tell them apart.
    """

    status: LookupStatus
    user_id: str | None = None
    strategy: str | None = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND

    @classmethod
    def hit(cls, user_id: str, strategy: str) -> "LookupResult":
        return cls(LookupStatus.FOUND, user_id, strategy)

    @classmethod
    def miss(cls, strategy: str | None = None) -> "LookupResult":
        return cls(LookupStatus.NOT_FOUND, None, strategy)

    @classmethod
    def failed(cls, strategy: str | None = None) -> "LookupResult":
        return cls(LookupStatus.FAILED, None, strategy)


NameMatcher = Callable[[str, Iterable[tuple[str, str]]], str | None]


def _person_users(users: Iterable[Mapping[str, Any]]) -> Iterable[Mapping[str, Any]]:
    for user in users:
        if user.get("type") == "person":
            yield user


def substring_name_match(query: str, candidates: Iterable[tuple[str, str]]) -> str | None:
    """Return the id of the first candidate whose name matches *query*.

    Within the batch an exact (case-insensitive) match wins; otherwise the first
    candidate whose name contains the query, or is contained in it, wins. There
    is no ranking between several partial matches, so common names can resolve
    to the wrong person.
    """

    needle = query.strip().lower()
    if not needle:
        return None

    partial: str | None = None
    for user_id, name in candidates:
        hay = name.strip().lower()
        if not hay:
            continue
        if hay == needle:
            return user_id
        if partial is None and (needle in hay or hay in needle):
            partial = user_id
    return partial


class IdentityResolver:
    """Resolve a Slack profile to a Notion user id by email, then by name."""

    def __init__(self, store, *, name_matcher: NameMatcher = substring_name_match) -> None:
        self._store = store
        self._name_matcher = name_matcher

    def resolve_by_email(self, email: str | None) -> LookupResult:
        if not email or not email.strip():
            return LookupResult.miss("email")

        target = email.strip().lower()
        log = structlog.get_logger().bind(strategy="email")
        try:
            for user in _person_users(self._iter_pages()):
                candidate = ((user.get("person") or {}).get("email") or "").lower()
                if candidate and candidate == target:
                    log.info("notion_user_found", notion_user_id=user["id"])
                    return LookupResult.hit(user["id"], "email")
        except Exception as exc:
            log.error("notion_user_lookup_failed", error=describe_error(exc))
            return LookupResult.failed("email")
        return LookupResult.miss("email")

    def resolve_by_name(self, name: str | None) -> LookupResult:
        if not name or not name.strip():
            return LookupResult.miss("name")

        log = structlog.get_logger().bind(strategy="name")
        try:
            for page in self._iter_user_pages():
                candidates = [
                    (user["id"], user.get("name") or "")
                    for user in _person_users(page)
                    if user.get("name")
                ]
                match = self._name_matcher(name, candidates)
                if match:
                    log.info("notion_user_found", notion_user_id=match)
                    return LookupResult.hit(match, "name")
        except Exception as exc:
            log.error("notion_user_lookup_failed", error=describe_error(exc))
            return LookupResult.failed("name")
        return LookupResult.miss("name")

    def resolve(self, *, email: str | None = None, name: str | None = None) -> LookupResult:
        """Try the email lookup first and fall back to the name lookup."""

        result = self.resolve_by_email(email)
        if result.found:
            return result
        if name:
            by_name = self.resolve_by_name(name)
            if by_name.found or result.status is not LookupStatus.FAILED:
                return by_name
        return result

    def _iter_pages(self):
        for page in self._iter_user_pages():
            yield from page

    def _iter_user_pages(self):
        cursor: str | None = None
        while True:
            response = self._store.list_users(cursor)
            yield response.get("results", [])
            cursor = response.get("next_cursor") if response.get("has_more") else None
            if not cursor:
                return
