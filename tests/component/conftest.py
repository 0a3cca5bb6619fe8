"""In-memory Supabase client used to wire real services together."""

import itertools
from types import SimpleNamespace
from typing import Any

import pytest

from menu_display_service.services.admin_session import AdminSessionRegistry
from menu_display_service.services.change_feed import MenuChangeFeed
from menu_display_service.services.logo_storage import LogoStorage
from menu_display_service.services.menu_gateway import MenuGateway

OWNER_ID = "owner_1"
OWNER_TOKEN = "token-owner-1"


class FakeQuery:
    """Chainable query builder applying operations to ``FakeSupabaseClient`` tables."""

    def __init__(self, client: "FakeSupabaseClient", table: str) -> None:
        self.client = client
        self.table = table
        self.action = "select"
        self.payload: Any = None
        self.filters: list[tuple[str, Any]] = []
        self.row_limit: int | None = None

    def select(self, columns: str = "*") -> "FakeQuery":
        self.action = "select"
        return self

    def insert(self, rows: list[dict[str, Any]]) -> "FakeQuery":
        self.action = "insert"
        self.payload = rows
        return self

    def update(self, values: dict[str, Any]) -> "FakeQuery":
        self.action = "update"
        self.payload = values
        return self

    def delete(self) -> "FakeQuery":
        self.action = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append((column, value))
        return self

    def limit(self, count: int) -> "FakeQuery":
        self.row_limit = count
        return self

    def _matches(self, row: dict[str, Any]) -> bool:
        return all(row.get(column) == value for column, value in self.filters)

    async def execute(self) -> SimpleNamespace:
        self.client.executed.append((self.table, self.action))
        rows = self.client.tables[self.table]

        if self.action == "select":
            data = [self.client.compose(self.table, row) for row in rows if self._matches(row)]
            return SimpleNamespace(data=data[: self.row_limit] if self.row_limit else data)

        if self.action == "insert":
            created = []
            for values in self.payload:
                row = {"id": self.client.next_id(self.table), **values}
                rows.append(row)
                created.append(dict(row))
                self.client.notify(self.table, "INSERT", row, {})
            return SimpleNamespace(data=created)

        if self.action == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    old = dict(row)
                    row.update(self.payload)
                    updated.append(dict(row))
                    self.client.notify(self.table, "UPDATE", row, old)
            return SimpleNamespace(data=updated)

        deleted = [row for row in rows if self._matches(row)]
        self.client.tables[self.table] = [row for row in rows if not self._matches(row)]
        for row in deleted:
            self.client.notify(self.table, "DELETE", {}, row)
        return SimpleNamespace(data=deleted)


class FakeChannel:
    """Realtime channel recording its postgres change listeners."""

    def __init__(self, client: "FakeSupabaseClient", name: str) -> None:
        self.client = client
        self.name = name
        self.listeners: list[tuple[str, str, str, Any]] = []
        self.subscribed = False

    def on_postgres_changes(
        self, event: str, callback: Any, table: str = "*", schema: str = "public", filter: str | None = None
    ) -> "FakeChannel":
        column, _, value = (filter or "").partition("=eq.")
        self.listeners.append((table, column, value, callback))
        return self

    async def subscribe(self) -> "FakeChannel":
        self.subscribed = True
        self.client.channels.append(self)
        return self


class FakeBucket:
    def __init__(self, client: "FakeSupabaseClient", name: str) -> None:
        self.client = client
        self.name = name

    async def upload(self, path: str, content: bytes, file_options: dict[str, str] | None = None) -> None:
        self.client.objects[f"{self.name}/{path}"] = content

    async def get_public_url(self, path: str) -> str:
        return f"https://cdn.example/storage/v1/object/public/{self.name}/{path}"


class FakeStorage:
    def __init__(self, client: "FakeSupabaseClient") -> None:
        self.client = client

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self.client, bucket)


class FakeAuth:
    def __init__(self, tokens: dict[str, str]) -> None:
        self.tokens = tokens

    async def get_user(self, token: str) -> SimpleNamespace:
        user_id = self.tokens.get(token)
        return SimpleNamespace(user=SimpleNamespace(id=user_id) if user_id else None)


class FakeSupabaseClient:
    """Just enough of ``supabase.AsyncClient`` for the gateway, storage and change feed.

    Restaurant reads embed sections and items the way the composite select
    does, and every mutation is delivered to the Realtime listeners whose
    filter matches the new or old row.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            "restaurants": [],
            "menu_sections": [],
            "menu_items": [],
        }
        self.channels: list[FakeChannel] = []
        self.objects: dict[str, bytes] = {}
        self.executed: list[tuple[str, str]] = []
        self.storage = FakeStorage(self)
        self.auth = FakeAuth({OWNER_TOKEN: OWNER_ID})
        self._ids = itertools.count(1)

    def next_id(self, table: str) -> str:
        return f"{table}_{next(self._ids)}"

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def channel(self, name: str) -> FakeChannel:
        return FakeChannel(self, name)

    async def remove_channel(self, channel: FakeChannel) -> None:
        channel.subscribed = False
        if channel in self.channels:
            self.channels.remove(channel)

    def compose(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        if table != "restaurants":
            return dict(row)
        sections = []
        for section in self.tables["menu_sections"]:
            if section["restaurant_id"] != row["id"]:
                continue
            items = [dict(item) for item in self.tables["menu_items"] if item["section_id"] == section["id"]]
            sections.append({**section, "menu_items": items})
        return {**row, "menu_sections": sections}

    def notify(self, table: str, event: str, new: dict[str, Any], old: dict[str, Any]) -> None:
        payload = {"table": table, "eventType": event, "new": dict(new), "old": dict(old)}
        for channel in list(self.channels):
            for watched_table, column, value, callback in channel.listeners:
                if watched_table != table:
                    continue
                if str(new.get(column)) == value or str(old.get(column)) == value:
                    callback(payload)


@pytest.fixture
def fake_client() -> FakeSupabaseClient:
    """Fixture providing a store seeded with one restaurant and two sections."""
    client = FakeSupabaseClient()
    client.tables["restaurants"].append(
        {
            "id": "rest_1",
            "owner_id": OWNER_ID,
            "name": "Cafe Aurora",
            "slug": "cafe-aurora",
            "logo_path": None,
            "theme": None,
            "mode": "dark",
            "brand_background": None,
            "brand_text": None,
        }
    )
    client.tables["menu_sections"].extend(
        [
            {"id": "sec_food", "restaurant_id": "rest_1", "title": "Food", "position": 1, "visible": True},
            {"id": "sec_drinks", "restaurant_id": "rest_1", "title": "Drinks", "position": 2, "visible": True},
        ]
    )
    client.tables["menu_items"].append(
        {
            "id": "item_toast",
            "section_id": "sec_food",
            "name": "Toast",
            "price": 3,
            "description": None,
            "tags": ["warm"],
            "is_featured": False,
            "is_trending": False,
            "visible": True,
        }
    )
    return client


@pytest.fixture
def gateway(fake_client: FakeSupabaseClient) -> MenuGateway:
    return MenuGateway(fake_client)


@pytest.fixture
def change_feed(fake_client: FakeSupabaseClient) -> MenuChangeFeed:
    return MenuChangeFeed(fake_client)


@pytest.fixture
def admin_registry(fake_client: FakeSupabaseClient, gateway: MenuGateway) -> AdminSessionRegistry:
    return AdminSessionRegistry(gateway=gateway, logo_storage=LogoStorage(fake_client))
