"""Gateway for menu reads and mutations against the Supabase data store."""

import logging
from typing import Any

import httpx
from pydantic import ValidationError
from supabase import AsyncClient, AuthError, PostgrestAPIError

from menu_display_service.models.menu_models import (
    MenuItem,
    MenuItemFields,
    MenuSection,
    RestaurantMenu,
    RestaurantSettings,
    SectionUpdate,
    ThemeUpdate,
    normalize_menu,
)
from menu_display_service.observability import traced
from menu_display_service.services.exceptions import (
    AuthenticationRequiredError,
    MenuGatewayError,
    MenuNotFoundError,
)

logger = logging.getLogger(__name__)

RESTAURANTS_TABLE = "restaurants"
SECTIONS_TABLE = "menu_sections"
ITEMS_TABLE = "menu_items"

# Composite read: restaurant, its sections and their items in one request.
MENU_COLUMNS = """
    id, name, slug, logo_path, theme,
    mode,
    brand_background,
    brand_text,
    menu_sections (
        id, title, position, visible,
        menu_items (
            id, section_id, name, price, description, tags, is_featured, is_trending, visible
        )
    )
"""

_REMOTE_ERRORS = (PostgrestAPIError, httpx.HTTPError)


class MenuGateway:
    """Typed wrapper around the restaurant, section and item tables.

    Reads are scoped either by owner (admin) or by public slug (display).
    Nothing is cached and nothing is retried: every failure surfaces as a
    ``MenuGatewayError`` subclass. Creates carry no idempotency key, so a
    repeated request inserts a second row.
    """

    def __init__(self, client: AsyncClient) -> None:
        """Initialize the gateway.

        Args:
            client: Supabase async client (service role or anon key)
        """
        self.client = client

    @traced("gateway.get_user_id")
    async def get_user_id(self, access_token: str) -> str:
        """Resolve the operator id behind an access token.

        Args:
            access_token: Bearer token issued by Supabase Auth

        Returns:
            The authenticated user's id

        Raises:
            AuthenticationRequiredError: If the token is missing, expired or invalid
        """
        if not access_token:
            raise AuthenticationRequiredError("Missing access token")

        try:
            response = await self.client.auth.get_user(access_token)
        except (AuthError, httpx.HTTPError) as e:
            raise AuthenticationRequiredError(f"Invalid session: {e}") from e

        if response is None or response.user is None:
            raise AuthenticationRequiredError("No user for access token")
        return response.user.id

    @traced("gateway.fetch_menu_by_owner", attributes={"db.table": RESTAURANTS_TABLE})
    async def fetch_menu_by_owner(self, owner_id: str) -> RestaurantMenu:
        """Fetch the full menu of the restaurant owned by an operator.

        Raises:
            MenuNotFoundError: If the operator owns no restaurant
            MenuGatewayError: On any remote failure
        """
        return await self._fetch_menu("owner_id", owner_id)

    @traced("gateway.fetch_menu_by_slug", attributes={"db.table": RESTAURANTS_TABLE})
    async def fetch_menu_by_slug(self, slug: str) -> RestaurantMenu:
        """Fetch the full menu of the restaurant published under a slug.

        Raises:
            MenuNotFoundError: If no restaurant uses the slug
            MenuGatewayError: On any remote failure
        """
        return await self._fetch_menu("slug", slug)

    async def _fetch_menu(self, column: str, value: str) -> RestaurantMenu:
        try:
            response = await (
                self.client.table(RESTAURANTS_TABLE)
                .select(MENU_COLUMNS)
                .eq(column, value)
                .limit(1)
                .execute()
            )
        except _REMOTE_ERRORS as e:
            raise MenuGatewayError(f"Failed to fetch menu where {column}={value}: {e}") from e

        if not response.data:
            raise MenuNotFoundError(f"No restaurant where {column}={value}")
        try:
            return normalize_menu(response.data[0])
        except (ValidationError, AttributeError, TypeError) as e:
            raise MenuGatewayError(f"Malformed menu where {column}={value}: {e}") from e

    @traced("gateway.create_section", attributes={"db.table": SECTIONS_TABLE})
    async def create_section(self, restaurant_id: str, title: str, position: int) -> MenuSection:
        """Insert a visible, empty section.

        Args:
            restaurant_id: Owning restaurant
            title: Section title
            position: Display position

        Returns:
            The created section as stored
        """
        rows = await self._execute(
            self.client.table(SECTIONS_TABLE).insert(
                [{"title": title, "position": position, "visible": True, "restaurant_id": restaurant_id}]
            ),
            f"create section in restaurant {restaurant_id}",
        )
        if not rows:
            raise MenuGatewayError("Section insert returned no row")
        return MenuSection(**{**rows[0], "menu_items": []})

    @traced("gateway.update_section", attributes={"db.table": SECTIONS_TABLE})
    async def update_section(self, section_id: str, updates: SectionUpdate) -> list[MenuSection]:
        """Apply a partial update to a section.

        Returns:
            The updated rows (empty if the id matched nothing)
        """
        rows = await self._execute(
            self.client.table(SECTIONS_TABLE).update(updates.to_record()).eq("id", section_id),
            f"update section {section_id}",
        )
        return [MenuSection(**{**row, "menu_items": []}) for row in rows]

    @traced("gateway.delete_section", attributes={"db.table": SECTIONS_TABLE})
    async def delete_section(self, section_id: str) -> None:
        await self._execute(
            self.client.table(SECTIONS_TABLE).delete().eq("id", section_id),
            f"delete section {section_id}",
        )

    @traced("gateway.create_item", attributes={"db.table": ITEMS_TABLE})
    async def create_item(self, section_id: str, fields: MenuItemFields) -> MenuItem:
        """Insert an item into a section.

        Returns:
            The created item as stored
        """
        rows = await self._execute(
            self.client.table(ITEMS_TABLE).insert([{"section_id": section_id, **fields.to_record()}]),
            f"create item in section {section_id}",
        )
        if not rows:
            raise MenuGatewayError("Item insert returned no row")
        return MenuItem(**rows[0])

    @traced("gateway.update_item", attributes={"db.table": ITEMS_TABLE})
    async def update_item(self, item_id: str, fields: MenuItemFields) -> list[MenuItem]:
        rows = await self._execute(
            self.client.table(ITEMS_TABLE).update(fields.to_record()).eq("id", item_id),
            f"update item {item_id}",
        )
        return [MenuItem(**row) for row in rows]

    @traced("gateway.delete_item", attributes={"db.table": ITEMS_TABLE})
    async def delete_item(self, item_id: str) -> None:
        await self._execute(
            self.client.table(ITEMS_TABLE).delete().eq("id", item_id),
            f"delete item {item_id}",
        )

    @traced("gateway.update_logo", attributes={"db.table": RESTAURANTS_TABLE})
    async def update_logo(self, restaurant_id: str, logo_url: str) -> RestaurantSettings | None:
        """Point the restaurant logo at a new public URL.

        Returns:
            The updated restaurant settings, None if the id matched nothing
        """
        rows = await self._execute(
            self.client.table(RESTAURANTS_TABLE)
            .update({"logo_path": logo_url})
            .eq("id", restaurant_id),
            f"update logo of restaurant {restaurant_id}",
        )
        return RestaurantSettings(**rows[0]) if rows else None

    @traced("gateway.update_theme", attributes={"db.table": RESTAURANTS_TABLE})
    async def update_theme(self, restaurant_id: str, theme: ThemeUpdate) -> RestaurantSettings | None:
        """Change theme mode and, when given, the brand colours.

        Returns:
            The updated restaurant settings, None if the id matched nothing
        """
        rows = await self._execute(
            self.client.table(RESTAURANTS_TABLE)
            .update(theme.to_record())
            .eq("id", restaurant_id),
            f"update theme of restaurant {restaurant_id}",
        )
        return RestaurantSettings(**rows[0]) if rows else None

    async def _execute(self, query: Any, description: str) -> list[dict[str, Any]]:
        try:
            response = await query.execute()
        except _REMOTE_ERRORS as e:
            logger.error(f"Failed to {description}: {e}")
            raise MenuGatewayError(f"Failed to {description}: {e}") from e
        return list(response.data or [])
