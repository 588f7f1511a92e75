"""Tests for the Notion client wrapper."""

import pytest
from notion_client.errors import RequestTimeoutError

from incident_bot.errors import ExternalCallTimeout
from incident_bot.notion_store import NotionStore, page_url


class DummyEndpoint:
    def __init__(self, name, calls, responses=None):
        self.name = name
        self.calls = calls
        self.responses = list(responses or [])

    def __call__(self, **kwargs):
        self.calls.append((self.name, kwargs))
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return {}


class DummyNamespace:
    pass


class DummyNotionClient:
    def __init__(self, *, create=None, query=None, children=None):
        self.calls = []
        self.pages = DummyNamespace()
        self.pages.create = DummyEndpoint("pages.create", self.calls, create)
        self.pages.update = DummyEndpoint("pages.update", self.calls)
        self.databases = DummyNamespace()
        self.databases.query = DummyEndpoint("databases.query", self.calls, query)
        self.databases.retrieve = DummyEndpoint("databases.retrieve", self.calls)
        self.blocks = DummyNamespace()
        self.blocks.update = DummyEndpoint("blocks.update", self.calls)
        self.blocks.children = DummyNamespace()
        self.blocks.children.append = DummyEndpoint("blocks.children.append", self.calls)
        self.blocks.children.list = DummyEndpoint("blocks.children.list", self.calls, children)
        self.users = DummyNamespace()
        self.users.list = DummyEndpoint("users.list", self.calls)


def _store(client):
    return NotionStore(incidents_db_id="db-incidents", teams_db_id="db-teams", client=client)


def test_requires_token_or_client():
    with pytest.raises(ValueError):
        NotionStore(incidents_db_id="db")


def test_page_url_strips_dashes():
    assert page_url("1234-abcd-5678") == "https://notion.so/1234abcd5678"


def test_create_page_targets_incidents_database():
    client = DummyNotionClient(create=[{"id": "page-1", "url": "https://www.notion.so/page-1"}])
    store = _store(client)

    record = store.create_page(properties={"Title": {}}, children=[{"type": "divider"}])

    assert record.id == "page-1"
    assert record.url == "https://www.notion.so/page-1"
    assert client.calls == [
        (
            "pages.create",
            {
                "parent": {"database_id": "db-incidents"},
                "properties": {"Title": {}},
                "children": [{"type": "divider"}],
            },
        )
    ]


def test_create_page_falls_back_to_computed_url():
    store = _store(DummyNotionClient(create=[{"id": "ab-cd"}]))

    record = store.create_page(properties={})

    assert record.url == "https://notion.so/abcd"


def test_query_database_follows_pagination():
    client = DummyNotionClient(
        query=[
            {"results": [{"id": "p1"}], "has_more": True, "next_cursor": "c2"},
            {"results": [{"id": "p2"}], "has_more": False, "next_cursor": None},
        ]
    )
    store = _store(client)

    pages = store.query_database("db-teams", filter={"property": "Active"})

    assert [page["id"] for page in pages] == ["p1", "p2"]
    assert "start_cursor" not in client.calls[0][1]
    assert client.calls[1][1]["start_cursor"] == "c2"


def test_list_blocks_follows_pagination():
    client = DummyNotionClient(
        children=[
            {"results": [{"id": "b1"}], "has_more": True, "next_cursor": "c2"},
            {"results": [{"id": "b2"}], "has_more": False},
        ]
    )

    blocks = _store(client).list_blocks("page-1")

    assert [block["id"] for block in blocks] == ["b1", "b2"]


def test_retrieve_database_defaults_to_incidents_database():
    client = DummyNotionClient()

    _store(client).retrieve_database()

    assert client.calls == [("databases.retrieve", {"database_id": "db-incidents"})]


def test_timeouts_surface_as_external_call_timeout():
    client = DummyNotionClient(create=[RequestTimeoutError()])

    with pytest.raises(ExternalCallTimeout) as err:
        _store(client).create_page(properties={})

    assert err.value.service == "notion"
    assert err.value.operation == "pages.create"
