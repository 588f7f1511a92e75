"""Tests for Slack to Notion identity resolution."""

from structlog.testing import capture_logs

from incident_bot.identity import IdentityResolver, LookupStatus, substring_name_match


def _person(user_id, name, email=None):
    return {"id": user_id, "type": "person", "name": name, "person": {"email": email} if email else {}}


class DummyStore:
    def __init__(self, pages, *, fail=False):
        self.pages = pages
        self.fail = fail
        self.cursors = []

    def list_users(self, start_cursor=None):
        self.cursors.append(start_cursor)
        if self.fail:
            raise RuntimeError("notion unavailable")
        index = 0 if start_cursor is None else int(start_cursor)
        has_more = index + 1 < len(self.pages)
        return {
            "results": self.pages[index],
            "has_more": has_more,
            "next_cursor": str(index + 1) if has_more else None,
        }


def test_email_lookup_is_case_insensitive_and_skips_bots():
    store = DummyStore(
        [
            [
                {"id": "bot-1", "type": "bot", "name": "Ada", "bot": {}},
                _person("u-1", "Ada Lovelace", "Ada@Example.com"),
            ]
        ]
    )

    result = IdentityResolver(store).resolve(email="ada@example.COM", name="Ada")

    assert result.status is LookupStatus.FOUND
    assert result.user_id == "u-1"
    assert result.strategy == "email"


def test_email_lookup_walks_every_page():
    store = DummyStore(
        [
            [_person("u-1", "Grace", "grace@example.com")],
            [_person("u-2", "Linus", "linus@example.com")],
        ]
    )

    result = IdentityResolver(store).resolve_by_email("linus@example.com")

    assert result.user_id == "u-2"
    assert store.cursors == [None, "1"]


def test_falls_back_to_name_when_email_missing():
    store = DummyStore([[_person("u-1", "Ada Lovelace")]])

    result = IdentityResolver(store).resolve(email=None, name="ada lovelace")

    assert result.found
    assert result.strategy == "name"


def test_ambiguous_short_name_does_not_match_longer_name():
    store = DummyStore([[_person("u-1", "Jonathan Smith")]])

    result = IdentityResolver(store).resolve(name="Jon Smith")

    assert result.status is LookupStatus.NOT_FOUND
    assert result.user_id is None


def test_exact_match_beats_earlier_partial_match():
    candidates = [("u-1", "Ann Lee-Smith"), ("u-2", "Ann Lee")]

    assert substring_name_match("ann lee", candidates) == "u-2"


def test_partial_match_in_either_direction():
    assert substring_name_match("Ada", [("u-1", "Ada Lovelace")]) == "u-1"
    assert substring_name_match("Ada Lovelace (she/her)", [("u-1", "Ada Lovelace")]) == "u-1"


def test_lookup_failure_is_distinguished_from_no_match():
    store = DummyStore([], fail=True)

    with capture_logs() as logs:
        result = IdentityResolver(store).resolve(email="ada@example.com", name="Ada")

    assert result.status is LookupStatus.FAILED
    assert not result.found
    assert any(log["event"] == "notion_user_lookup_failed" for log in logs)


def test_custom_name_matcher_is_used():
    store = DummyStore([[_person("u-1", "Ada Lovelace"), _person("u-2", "Ada King")]])

    def last_match(_query, candidates):
        matches = [user_id for user_id, _name in candidates]
        return matches[-1] if matches else None

    result = IdentityResolver(store, name_matcher=last_match).resolve_by_name("Ada")

    assert result.user_id == "u-2"
