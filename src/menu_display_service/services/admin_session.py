"""Admin editing session holding one operator's authoritative menu."""

import asyncio
import logging
from collections.abc import Callable
from decimal import Decimal
from typing import Any

from menu_display_service.models.menu_models import (
    MenuItemFields,
    MenuSection,
    RestaurantMenu,
    SectionUpdate,
    ThemeMode,
    ThemeUpdate,
    parse_price,
)
from menu_display_service.observability.metrics import record_admin_mutation
from menu_display_service.services.exceptions import (
    MenuGatewayError,
    MenuNotFoundError,
    MenuValidationError,
)
from menu_display_service.services.logo_storage import LogoStorage
from menu_display_service.services.menu_gateway import MenuGateway

logger = logging.getLogger(__name__)

MenuListener = Callable[[RestaurantMenu], None]


def _require_text(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise MenuValidationError(f"{field} must not be empty")
    return value


def _checked_price(raw: Any) -> Decimal:
    price = parse_price(raw)
    if price < 0:
        raise MenuValidationError("price must not be negative")
    return price


class AdminMenuSession:
    """Authoritative in-memory menu for one authenticated operator.

    Each mutation validates its input, calls the gateway and, on success,
    updates the local snapshot with a fixed per-operation policy:

    - create section: append the returned row to the snapshot
    - update/delete section, create/update/delete item: full re-fetch
    - logo and theme: patch the returned fields into the snapshot

    Listeners fire after every successful local update; the live preview
    keys its refresh off that signal. On gateway failure the snapshot is
    left untouched, the error is logged and the operation returns None or
    False. Validation failures raise ``MenuValidationError`` before any
    remote call.
    """

    def __init__(self, gateway: MenuGateway, logo_storage: LogoStorage, owner_id: str) -> None:
        """Initialize the session.

        Args:
            gateway: Gateway for reads and mutations
            logo_storage: Object storage for logo uploads
            owner_id: Authenticated operator id used to scope the menu read
        """
        self.gateway = gateway
        self.logo_storage = logo_storage
        self.owner_id = owner_id
        self.menu: RestaurantMenu | None = None
        self.last_error: Exception | None = None
        self._listeners: list[MenuListener] = []
        self._lock = asyncio.Lock()

    @property
    def display_path(self) -> str | None:
        """Public display route embedded by the live preview."""
        return f"/display/{self.menu.slug}" if self.menu else None

    def add_listener(self, listener: MenuListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: MenuListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def load(self) -> RestaurantMenu | None:
        """Fetch the operator's full menu, replacing the local snapshot.

        Returns:
            The new snapshot, or the previous one if the fetch failed

        Raises:
            MenuNotFoundError: If the operator owns no restaurant
        """
        try:
            menu = await self.gateway.fetch_menu_by_owner(self.owner_id)
        except MenuNotFoundError:
            raise
        except MenuGatewayError as e:
            self.last_error = e
            logger.error(f"Failed to load menu for owner {self.owner_id}: {e}")
            return self.menu

        self.last_error = None
        self._replace(menu)
        return menu

    async def add_section(self, title: str) -> MenuSection | None:
        """Create a visible section at the end of the menu.

        The returned row is appended locally without a re-fetch.

        Returns:
            The created section, None if the gateway call failed
        """
        _require_text(title, "title")
        menu = self._require_menu()

        try:
            section = await self.gateway.create_section(menu.id, title, len(menu.menu_sections) + 1)
        except MenuGatewayError as e:
            self._failed("create_section", e)
            return None

        record_admin_mutation("create_section", True)
        current = self._require_menu()
        self._replace(current.model_copy(update={"menu_sections": [*current.menu_sections, section]}))
        return section

    async def update_section(self, section_id: str, updates: SectionUpdate) -> bool:
        if updates.title is not None:
            _require_text(updates.title, "title")
        self._require_menu()

        try:
            await self.gateway.update_section(section_id, updates)
        except MenuGatewayError as e:
            self._failed("update_section", e)
            return False

        return await self._refetch_after("update_section")

    async def delete_section(self, section_id: str) -> bool:
        self._require_menu()

        try:
            await self.gateway.delete_section(section_id)
        except MenuGatewayError as e:
            self._failed("delete_section", e)
            return False

        return await self._refetch_after("delete_section")

    async def add_item(
        self,
        section_id: str,
        name: str,
        price: Any = None,
        description: str | None = None,
        tags: list[str] | None = None,
        is_featured: bool = False,
        is_trending: bool = False,
        visible: bool = True,
    ) -> bool:
        """Create an item in a section.

        Args:
            section_id: Target section
            name: Item name, must not be empty
            price: Raw price input; unparseable values become 0
            description: Optional description
            tags: Tags in display order
            is_featured: Featured flag
            is_trending: Trending flag
            visible: Whether the item shows on the public display

        Returns:
            True if the item was created and the snapshot re-fetched
        """
        _require_text(name, "name")
        fields = MenuItemFields(
            name=name,
            price=_checked_price(price),
            description=description,
            tags=tags or [],
            is_featured=is_featured,
            is_trending=is_trending,
            visible=visible,
        )
        self._require_menu()

        try:
            await self.gateway.create_item(section_id, fields)
        except MenuGatewayError as e:
            self._failed("create_item", e)
            return False

        return await self._refetch_after("create_item")

    async def update_item(self, item_id: str, fields: MenuItemFields) -> bool:
        """Apply a partial update to an item.

        A provided name must not be empty; a provided price is re-parsed.
        """
        if fields.name is not None:
            _require_text(fields.name, "name")
        if fields.price is not None:
            fields = fields.model_copy(update={"price": _checked_price(fields.price)})
        self._require_menu()

        try:
            await self.gateway.update_item(item_id, fields)
        except MenuGatewayError as e:
            self._failed("update_item", e)
            return False

        return await self._refetch_after("update_item")

    async def delete_item(self, item_id: str) -> bool:
        self._require_menu()

        try:
            await self.gateway.delete_item(item_id)
        except MenuGatewayError as e:
            self._failed("delete_item", e)
            return False

        return await self._refetch_after("delete_item")

    async def update_logo(self, filename: str, content: bytes, content_type: str | None = None) -> str | None:
        """Upload a new logo and point the restaurant at it.

        Returns:
            The public logo URL, None if the upload or update failed
        """
        if not content:
            raise MenuValidationError("logo file must not be empty")
        menu = self._require_menu()

        try:
            logo_url = await self.logo_storage.upload(menu.id, filename, content, content_type)
            settings = await self.gateway.update_logo(menu.id, logo_url)
        except MenuGatewayError as e:
            self._failed("update_logo", e)
            return None

        if settings is None:
            self._failed("update_logo", MenuGatewayError(f"Logo update for restaurant {menu.id} returned no row"))
            return None

        record_admin_mutation("update_logo", True)
        self._replace(self._require_menu().model_copy(update={"logo_path": logo_url}))
        return logo_url

    async def update_theme(
        self,
        mode: ThemeMode,
        brand_background: str | None = None,
        brand_text: str | None = None,
    ) -> bool:
        """Change the display theme.

        The mode and brand colours echoed back by the store are patched into
        the snapshot.
        """
        menu = self._require_menu()
        theme = ThemeUpdate(mode=mode, brand_background=brand_background, brand_text=brand_text)

        try:
            settings = await self.gateway.update_theme(menu.id, theme)
        except MenuGatewayError as e:
            self._failed("update_theme", e)
            return False

        if settings is None:
            self._failed("update_theme", MenuGatewayError(f"Theme update for restaurant {menu.id} returned no row"))
            return False

        record_admin_mutation("update_theme", True)
        self._replace(
            self._require_menu().model_copy(
                update={
                    "mode": settings.mode,
                    "brand_background": settings.brand_background,
                    "brand_text": settings.brand_text,
                }
            )
        )
        return True

    async def _refetch_after(self, operation: str) -> bool:
        record_admin_mutation(operation, True)
        async with self._lock:
            try:
                menu = await self.gateway.fetch_menu_by_owner(self.owner_id)
            except MenuGatewayError as e:
                self.last_error = e
                logger.error(f"Re-fetch after {operation} failed for owner {self.owner_id}: {e}")
                return False
            self._replace(menu)
        return True

    def _failed(self, operation: str, error: MenuGatewayError) -> None:
        record_admin_mutation(operation, False)
        self.last_error = error
        logger.error(f"Admin {operation} failed for owner {self.owner_id}: {error}")

    def _require_menu(self) -> RestaurantMenu:
        if self.menu is None:
            raise MenuNotFoundError(f"No menu loaded for owner {self.owner_id}")
        return self.menu

    def _replace(self, menu: RestaurantMenu) -> None:
        self.menu = menu
        for listener in list(self._listeners):
            listener(menu)


class AdminSessionRegistry:
    """One editing session per operator, created and loaded on first use."""

    def __init__(self, gateway: MenuGateway, logo_storage: LogoStorage) -> None:
        self.gateway = gateway
        self.logo_storage = logo_storage
        self._sessions: dict[str, AdminMenuSession] = {}

    async def get_session(self, owner_id: str) -> AdminMenuSession:
        """Return the operator's session, loading its menu if needed.

        Raises:
            MenuNotFoundError: If the operator owns no restaurant
        """
        session = self._sessions.get(owner_id)
        if session is None:
            session = AdminMenuSession(self.gateway, self.logo_storage, owner_id)
            self._sessions[owner_id] = session

        if session.menu is None:
            await session.load()
        return session

    def end_session(self, owner_id: str) -> bool:
        """Drop an operator's session. Returns False if none was open."""
        return self._sessions.pop(owner_id, None) is not None
