"""Change notifications for a restaurant menu over Supabase Realtime."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from supabase import AsyncClient

from menu_display_service.services.menu_gateway import (
    ITEMS_TABLE,
    RESTAURANTS_TABLE,
    SECTIONS_TABLE,
)

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[dict[str, Any]], None]


@dataclass(frozen=True)
class ChangeFilter:
    """One table-and-filter pair watched for changes.

    Attributes:
        table: Watched table name
        column: Column the filter matches on
        value: Value the column must equal
    """

    table: str
    column: str
    value: str

    @property
    def expression(self) -> str:
        return f"{self.column}=eq.{self.value}"


def menu_change_filters(slug: str, restaurant_id: str, section_ids: list[str]) -> list[ChangeFilter]:
    """List the filters that cover one restaurant's menu.

    Items are only watched for the section ids passed in. A section created
    later has no item filter until a new subscription is opened.
    """
    filters = [
        ChangeFilter(RESTAURANTS_TABLE, "slug", slug),
        ChangeFilter(SECTIONS_TABLE, "restaurant_id", restaurant_id),
    ]
    filters.extend(ChangeFilter(ITEMS_TABLE, "section_id", section_id) for section_id in section_ids)
    return filters


class ChangeSubscription:
    """Handle for an open Realtime channel. Closing is idempotent."""

    def __init__(self, client: AsyncClient, channel: Any, filters: list[ChangeFilter]) -> None:
        self.client = client
        self.channel = channel
        self.filters = filters
        self.closed = False

    @property
    def section_ids(self) -> frozenset[str]:
        return frozenset(f.value for f in self.filters if f.table == ITEMS_TABLE)

    async def close(self) -> None:
        """Remove the channel from the Realtime client."""
        if self.closed:
            return
        self.closed = True
        await self.client.remove_channel(self.channel)


class MenuChangeFeed:
    """Opens Realtime subscriptions scoped to one restaurant's menu."""

    def __init__(self, client: AsyncClient, schema: str = "public") -> None:
        self.client = client
        self.schema = schema

    async def subscribe(
        self,
        slug: str,
        restaurant_id: str,
        section_ids: list[str],
        on_change: ChangeCallback,
    ) -> ChangeSubscription:
        """Open one channel listening to every filter of the menu.

        Args:
            slug: Public slug of the restaurant
            restaurant_id: Restaurant id, used for the section filter
            section_ids: Sections whose items are watched
            on_change: Called with the raw payload of every change

        Returns:
            ChangeSubscription to close on teardown
        """
        filters = menu_change_filters(slug, restaurant_id, section_ids)
        channel = self.client.channel(f"realtime-{slug}")

        for change_filter in filters:
            channel.on_postgres_changes(
                event="*",
                schema=self.schema,
                table=change_filter.table,
                filter=change_filter.expression,
                callback=on_change,
            )

        await channel.subscribe()
        logger.info(f"Subscribed to {len(filters)} change filters for menu {slug}")
        return ChangeSubscription(self.client, channel, filters)
