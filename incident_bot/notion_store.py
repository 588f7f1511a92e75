"""Thin wrapper around the Notion SDK client used as the incident store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence

from notion_client import Client
from notion_client.errors import RequestTimeoutError

from incident_bot.errors import ExternalCallTimeout

NOTION_PAGE_URL = "https://notion.so/{compact_id}"


@dataclass(frozen=True)
class CreatedRecord:
    """Identifiers assigned by Notion when an incident page is created."""

    id: str
    url: str


def page_url(page_id: str) -> str:
    return NOTION_PAGE_URL.format(compact_id=page_id.replace("-", ""))


class NotionStore:
    """Encapsulate Notion client interactions for easier testing."""

    def __init__(
        self,
        *,
        incidents_db_id: str,
        teams_db_id: str | None = None,
        token: str | None = None,
        client: Client | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        if client is None and token is None:
            raise ValueError("Either an instantiated client or a Notion token must be provided.")

        if client is None:
            options: Dict[str, Any] = {"auth": token}
            if timeout_ms:
                options["timeout_ms"] = timeout_ms
            client = Client(**options)
        self._client = client
        self.incidents_db_id = incidents_db_id
        self.teams_db_id = teams_db_id

    @property
    def client(self) -> Client:
        return self._client

    def _call(self, operation: str, func, **kwargs: Any) -> Any:
        try:
            return func(**kwargs)
        except RequestTimeoutError as exc:
            raise ExternalCallTimeout("notion", operation) from exc

    def create_page(
        self,
        *,
        properties: Mapping[str, Any],
        children: Sequence[Mapping[str, Any]] | None = None,
        database_id: str | None = None,
    ) -> CreatedRecord:
        """Create a page in the incidents database (or *database_id*)."""

        kwargs: Dict[str, Any] = {
            "parent": {"database_id": database_id or self.incidents_db_id},
            "properties": dict(properties),
        }
        if children:
            kwargs["children"] = list(children)
        response = self._call("pages.create", self._client.pages.create, **kwargs)
        page_id = response["id"]
        return CreatedRecord(id=page_id, url=response.get("url") or page_url(page_id))

    def update_page(self, page_id: str, properties: Mapping[str, Any]) -> Mapping[str, Any]:
        return self._call("pages.update", self._client.pages.update, page_id=page_id, properties=dict(properties))

    def append_blocks(self, block_id: str, children: Sequence[Mapping[str, Any]]) -> Mapping[str, Any]:
        return self._call(
            "blocks.children.append",
            self._client.blocks.children.append,
            block_id=block_id,
            children=list(children),
        )

    def list_blocks(self, block_id: str) -> List[Mapping[str, Any]]:
        """Return every direct child block of *block_id*, following pagination."""

        blocks: List[Mapping[str, Any]] = []
        cursor: str | None = None
        while True:
            kwargs: Dict[str, Any] = {"block_id": block_id}
            if cursor:
                kwargs["start_cursor"] = cursor
            response = self._call("blocks.children.list", self._client.blocks.children.list, **kwargs)
            blocks.extend(response.get("results", []))
            cursor = response.get("next_cursor") if response.get("has_more") else None
            if not cursor:
                return blocks

    def update_block(self, block_id: str, **content: Any) -> Mapping[str, Any]:
        return self._call("blocks.update", self._client.blocks.update, block_id=block_id, **content)

    def query_database(
        self,
        database_id: str,
        *,
        filter: Mapping[str, Any] | None = None,
        sorts: Sequence[Mapping[str, Any]] | None = None,
    ) -> List[Mapping[str, Any]]:
        """Return every page matching *filter*, following pagination."""

        pages: List[Mapping[str, Any]] = []
        cursor: str | None = None
        while True:
            kwargs: Dict[str, Any] = {"database_id": database_id}
            if filter:
                kwargs["filter"] = dict(filter)
            if sorts:
                kwargs["sorts"] = list(sorts)
            if cursor:
                kwargs["start_cursor"] = cursor
            response = self._call("databases.query", self._client.databases.query, **kwargs)
            pages.extend(response.get("results", []))
            cursor = response.get("next_cursor") if response.get("has_more") else None
            if not cursor:
                return pages

    def retrieve_database(self, database_id: str | None = None) -> Mapping[str, Any]:
        return self._call(
            "databases.retrieve",
            self._client.databases.retrieve,
            database_id=database_id or self.incidents_db_id,
        )

    def list_users(self, start_cursor: str | None = None) -> Mapping[str, Any]:
        """Return one page of workspace users."""

        kwargs: Dict[str, Any] = {}
        if start_cursor:
            kwargs["start_cursor"] = start_cursor
        return self._call("users.list", self._client.users.list, **kwargs)

