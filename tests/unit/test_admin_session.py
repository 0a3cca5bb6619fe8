"""Unit tests for AdminMenuSession and AdminSessionRegistry."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio

from menu_display_service.models.menu_models import (
    MenuItemFields,
    MenuSection,
    RestaurantMenu,
    RestaurantSettings,
    SectionUpdate,
    ThemeMode,
)
from menu_display_service.services.admin_session import AdminMenuSession, AdminSessionRegistry
from menu_display_service.services.exceptions import (
    MenuGatewayError,
    MenuNotFoundError,
    MenuValidationError,
)
from menu_display_service.services.logo_storage import LogoStorage
from menu_display_service.services.menu_gateway import MenuGateway


@pytest.fixture
def empty_menu() -> RestaurantMenu:
    """Fixture providing a restaurant with no sections."""
    return RestaurantMenu(id="rest_1", name="Cafe Aurora", slug="cafe-aurora")


@pytest.fixture
def mock_gateway(sample_menu: RestaurantMenu) -> MenuGateway:
    """Create a mock gateway whose owner read returns the sample menu."""
    gateway = MagicMock(spec=MenuGateway)
    gateway.fetch_menu_by_owner = AsyncMock(return_value=sample_menu)
    return gateway


@pytest.fixture
def mock_storage() -> LogoStorage:
    storage = MagicMock(spec=LogoStorage)
    storage.upload = AsyncMock(return_value="https://cdn.example/logos/rest_1/1.png")
    return storage


@pytest_asyncio.fixture
async def session(mock_gateway: MenuGateway, mock_storage: LogoStorage, mock_owner_id: str) -> AdminMenuSession:
    """Create a session with its menu already loaded."""
    admin_session = AdminMenuSession(mock_gateway, mock_storage, mock_owner_id)
    await admin_session.load()
    mock_gateway.fetch_menu_by_owner.reset_mock()
    return admin_session


@pytest.mark.unit
class TestLoad:
    """Test suite for loading the operator's menu."""

    @pytest.mark.asyncio
    async def test_load_scopes_by_owner(
        self, mock_gateway: MenuGateway, mock_storage: LogoStorage, sample_menu: RestaurantMenu
    ) -> None:
        admin_session = AdminMenuSession(mock_gateway, mock_storage, "user_123")

        menu = await admin_session.load()

        mock_gateway.fetch_menu_by_owner.assert_awaited_once_with("user_123")
        assert menu == sample_menu
        assert admin_session.display_path == "/display/cafe-aurora"

    @pytest.mark.asyncio
    async def test_load_not_found_propagates(self, mock_gateway: MenuGateway, mock_storage: LogoStorage) -> None:
        mock_gateway.fetch_menu_by_owner.side_effect = MenuNotFoundError("no restaurant")
        admin_session = AdminMenuSession(mock_gateway, mock_storage, "user_123")

        with pytest.raises(MenuNotFoundError):
            await admin_session.load()

    @pytest.mark.asyncio
    async def test_load_failure_keeps_previous_menu(
        self, session: AdminMenuSession, mock_gateway: MenuGateway, sample_menu: RestaurantMenu
    ) -> None:
        mock_gateway.fetch_menu_by_owner.side_effect = MenuGatewayError("timeout")

        assert await session.load() == sample_menu
        assert isinstance(session.last_error, MenuGatewayError)

    @pytest.mark.asyncio
    async def test_mutation_before_load_raises(self, mock_gateway: MenuGateway, mock_storage: LogoStorage) -> None:
        admin_session = AdminMenuSession(mock_gateway, mock_storage, "user_123")

        with pytest.raises(MenuNotFoundError):
            await admin_session.delete_item("item_1")

        assert admin_session.display_path is None


@pytest.mark.unit
class TestSectionOperations:
    """Test suite for section mutations and their local update policy."""

    @pytest.mark.asyncio
    async def test_create_section_round_trip(
        self, mock_gateway: MenuGateway, mock_storage: LogoStorage, empty_menu: RestaurantMenu
    ) -> None:
        """Test creating "Drinks" yields exactly one visible, empty section."""
        mock_gateway.fetch_menu_by_owner.return_value = empty_menu
        mock_gateway.create_section = AsyncMock(
            return_value=MenuSection(id="sec_new", restaurant_id="rest_1", title="Drinks", position=1)
        )
        admin_session = AdminMenuSession(mock_gateway, mock_storage, "user_123")
        await admin_session.load()

        section = await admin_session.add_section("Drinks")

        mock_gateway.create_section.assert_awaited_once_with("rest_1", "Drinks", 1)
        assert section.id == "sec_new"
        sections = admin_session.menu.menu_sections
        assert len(sections) == 1
        assert sections[0].title == "Drinks"
        assert sections[0].visible is True
        assert sections[0].menu_items == []

    @pytest.mark.asyncio
    async def test_create_section_appends_without_refetch(
        self, session: AdminMenuSession, mock_gateway: MenuGateway
    ) -> None:
        """Test section creation patches the snapshot locally."""
        mock_gateway.create_section = AsyncMock(
            return_value=MenuSection(id="sec_new", restaurant_id="rest_1", title="Desserts", position=4)
        )

        await session.add_section("Desserts")

        mock_gateway.create_section.assert_awaited_once_with("rest_1", "Desserts", 4)
        mock_gateway.fetch_menu_by_owner.assert_not_called()
        assert session.menu.menu_sections[-1].id == "sec_new"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title", ["", "   "])
    async def test_create_section_rejects_empty_title(
        self, session: AdminMenuSession, mock_gateway: MenuGateway, title: str
    ) -> None:
        """Test validation fails before any remote call."""
        mock_gateway.create_section = AsyncMock()

        with pytest.raises(MenuValidationError):
            await session.add_section(title)

        mock_gateway.create_section.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_section_failure_leaves_snapshot(
        self, session: AdminMenuSession, mock_gateway: MenuGateway, sample_menu: RestaurantMenu
    ) -> None:
        mock_gateway.create_section = AsyncMock(side_effect=MenuGatewayError("insert failed"))

        assert await session.add_section("Desserts") is None
        assert session.menu == sample_menu
        assert isinstance(session.last_error, MenuGatewayError)

    @pytest.mark.asyncio
    async def test_update_section_refetches(
        self, session: AdminMenuSession, mock_gateway: MenuGateway, sample_menu: RestaurantMenu
    ) -> None:
        """Test section updates replace the snapshot with a full re-fetch."""
        refreshed = sample_menu.model_copy(update={"name": "Refetched"})
        mock_gateway.update_section = AsyncMock(return_value=[])
        mock_gateway.fetch_menu_by_owner.return_value = refreshed

        assert await session.update_section("sec_food", SectionUpdate(visible=False)) is True

        mock_gateway.update_section.assert_awaited_once_with("sec_food", SectionUpdate(visible=False))
        mock_gateway.fetch_menu_by_owner.assert_awaited_once_with("user_123")
        assert session.menu.name == "Refetched"

    @pytest.mark.asyncio
    async def test_update_section_rejects_blank_title(
        self, session: AdminMenuSession, mock_gateway: MenuGateway
    ) -> None:
        mock_gateway.update_section = AsyncMock()

        with pytest.raises(MenuValidationError):
            await session.update_section("sec_food", SectionUpdate(title=" "))

        mock_gateway.update_section.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_section_failure_skips_refetch(
        self, session: AdminMenuSession, mock_gateway: MenuGateway, sample_menu: RestaurantMenu
    ) -> None:
        mock_gateway.delete_section = AsyncMock(side_effect=MenuGatewayError("delete failed"))

        assert await session.delete_section("sec_food") is False

        mock_gateway.fetch_menu_by_owner.assert_not_called()
        assert session.menu == sample_menu


@pytest.mark.unit
class TestItemOperations:
    """Test suite for item mutations."""

    @pytest.mark.asyncio
    async def test_add_item_parses_price_and_refetches(
        self, session: AdminMenuSession, mock_gateway: MenuGateway
    ) -> None:
        mock_gateway.create_item = AsyncMock()

        assert await session.add_item("sec_food", "Soup", price="6.5", tags=["hot"], is_trending=True) is True

        section_id, fields = mock_gateway.create_item.call_args.args
        assert section_id == "sec_food"
        assert fields.price == Decimal("6.5")
        assert fields.tags == ["hot"]
        assert fields.is_trending is True
        assert fields.visible is True
        mock_gateway.fetch_menu_by_owner.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_add_item_unparseable_price_becomes_zero(
        self, session: AdminMenuSession, mock_gateway: MenuGateway
    ) -> None:
        mock_gateway.create_item = AsyncMock()

        await session.add_item("sec_food", "Water", price="free")

        assert mock_gateway.create_item.call_args.args[1].price == Decimal("0")

    @pytest.mark.asyncio
    async def test_add_item_rejects_negative_price(
        self, session: AdminMenuSession, mock_gateway: MenuGateway
    ) -> None:
        mock_gateway.create_item = AsyncMock()

        with pytest.raises(MenuValidationError):
            await session.add_item("sec_food", "Refund", price=-2)

        mock_gateway.create_item.assert_not_called()

    @pytest.mark.asyncio
    async def test_add_item_rejects_empty_name(self, session: AdminMenuSession, mock_gateway: MenuGateway) -> None:
        mock_gateway.create_item = AsyncMock()

        with pytest.raises(MenuValidationError):
            await session.add_item("sec_food", "")

        mock_gateway.create_item.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_item_refetches(self, session: AdminMenuSession, mock_gateway: MenuGateway) -> None:
        mock_gateway.update_item = AsyncMock(return_value=[])

        assert await session.update_item("item_toast", MenuItemFields(is_featured=True)) is True

        mock_gateway.update_item.assert_awaited_once_with("item_toast", MenuItemFields(is_featured=True))
        mock_gateway.fetch_menu_by_owner.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_delete_item_refetch_failure_reports_false(
        self, session: AdminMenuSession, mock_gateway: MenuGateway, sample_menu: RestaurantMenu
    ) -> None:
        """Test a failed re-fetch after a successful delete keeps the old snapshot."""
        mock_gateway.delete_item = AsyncMock()
        mock_gateway.fetch_menu_by_owner.side_effect = MenuGatewayError("timeout")

        assert await session.delete_item("item_toast") is False
        assert session.menu == sample_menu


@pytest.mark.unit
class TestBrandingOperations:
    """Test suite for logo and theme updates."""

    @pytest.mark.asyncio
    async def test_update_logo_patches_snapshot(
        self, session: AdminMenuSession, mock_gateway: MenuGateway, mock_storage: LogoStorage
    ) -> None:
        mock_gateway.update_logo = AsyncMock(return_value=RestaurantSettings(id="rest_1"))

        url = await session.update_logo("logo.png", b"png-bytes", "image/png")

        mock_storage.upload.assert_awaited_once_with("rest_1", "logo.png", b"png-bytes", "image/png")
        mock_gateway.update_logo.assert_awaited_once_with("rest_1", url)
        mock_gateway.fetch_menu_by_owner.assert_not_called()
        assert session.menu.logo_path == url

    @pytest.mark.asyncio
    async def test_update_logo_rejects_empty_file(
        self, session: AdminMenuSession, mock_storage: LogoStorage
    ) -> None:
        with pytest.raises(MenuValidationError):
            await session.update_logo("logo.png", b"")

        mock_storage.upload.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_logo_upload_failure(
        self, session: AdminMenuSession, mock_gateway: MenuGateway, mock_storage: LogoStorage
    ) -> None:
        mock_storage.upload.side_effect = MenuGatewayError("bucket missing")
        mock_gateway.update_logo = AsyncMock()

        assert await session.update_logo("logo.png", b"data") is None

        mock_gateway.update_logo.assert_not_called()
        assert session.menu.logo_path is None

    @pytest.mark.asyncio
    async def test_update_theme_patches_mode_and_colors(
        self, session: AdminMenuSession, mock_gateway: MenuGateway
    ) -> None:
        mock_gateway.update_theme = AsyncMock(
            return_value=RestaurantSettings(
                id="rest_1", mode="dark", brand_background="#102030", brand_text="#f0e0d0"
            )
        )

        assert await session.update_theme(ThemeMode.DARK) is True

        assert session.menu.mode is ThemeMode.DARK
        mock_gateway.fetch_menu_by_owner.assert_not_called()

    @pytest.mark.asyncio
    @patch("menu_display_service.services.admin_session.record_admin_mutation")
    async def test_update_theme_no_row(
        self, mock_record: MagicMock, session: AdminMenuSession, mock_gateway: MenuGateway
    ) -> None:
        """Test an update matching no restaurant row counts as a failure."""
        mock_gateway.update_theme = AsyncMock(return_value=None)

        assert await session.update_theme(ThemeMode.LIGHT) is False

        assert session.menu.mode is ThemeMode.BRAND
        assert isinstance(session.last_error, MenuGatewayError)
        assert "no row" in str(session.last_error)
        mock_record.assert_called_once_with("update_theme", False)

    @pytest.mark.asyncio
    @patch("menu_display_service.services.admin_session.record_admin_mutation")
    async def test_update_logo_no_row(
        self, mock_record: MagicMock, session: AdminMenuSession, mock_gateway: MenuGateway
    ) -> None:
        mock_gateway.update_logo = AsyncMock(return_value=None)

        assert await session.update_logo("logo.png", b"data") is None

        assert session.menu.logo_path is None
        assert isinstance(session.last_error, MenuGatewayError)
        mock_record.assert_called_once_with("update_logo", False)


@pytest.mark.unit
class TestListeners:
    """Test suite for the success signal."""

    @pytest.mark.asyncio
    async def test_listener_fires_on_success_only(
        self, session: AdminMenuSession, mock_gateway: MenuGateway
    ) -> None:
        seen: list[RestaurantMenu] = []
        session.add_listener(seen.append)
        mock_gateway.delete_item = AsyncMock(side_effect=[MenuGatewayError("boom"), None])

        await session.delete_item("item_toast")
        assert seen == []

        await session.delete_item("item_toast")
        assert len(seen) == 1

        session.remove_listener(seen.append)
        await session.load()
        assert len(seen) == 1


@pytest.mark.unit
class TestAdminSessionRegistry:
    """Test suite for AdminSessionRegistry."""

    @pytest.mark.asyncio
    async def test_get_session_loads_once(self, mock_gateway: MenuGateway, mock_storage: LogoStorage) -> None:
        registry = AdminSessionRegistry(mock_gateway, mock_storage)

        first = await registry.get_session("user_123")
        second = await registry.get_session("user_123")

        assert first is second
        mock_gateway.fetch_menu_by_owner.assert_awaited_once_with("user_123")

    @pytest.mark.asyncio
    async def test_end_session(self, mock_gateway: MenuGateway, mock_storage: LogoStorage) -> None:
        registry = AdminSessionRegistry(mock_gateway, mock_storage)
        await registry.get_session("user_123")

        assert registry.end_session("user_123") is True
        assert registry.end_session("user_123") is False
