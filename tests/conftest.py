"""Shared pytest fixtures and configuration for all tests."""

import asyncio
import os
from typing import Any

import pytest

# main.py builds the real application unless this is set
os.environ.setdefault("ENVIRONMENT", "test")

from menu_display_service.models.menu_models import RestaurantMenu, normalize_menu  # noqa: E402


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class ManualTimer:
    """Fake sleep that only returns when the test calls ``tick``."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self._waiters: list[asyncio.Future[None]] = []

    @property
    def pending(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        await waiter

    async def tick(self) -> None:
        """Wake every pending sleeper once and let the loop settle."""
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
        await settle()


class RecordingSleep:
    """Fake sleep that returns immediately and records each delay."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def manual_timer() -> ManualTimer:
    """Fixture providing a manually advanced fake timer."""
    return ManualTimer()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Fixture providing a non-blocking fake sleep."""
    return RecordingSleep()


@pytest.fixture
def mock_owner_id() -> str:
    """Fixture providing a standard operator id."""
    return "user_123"


@pytest.fixture
def raw_menu() -> dict[str, Any]:
    """Fixture providing a composite menu row as returned by the data store."""
    return {
        "id": "rest_1",
        "name": "Cafe Aurora",
        "slug": "cafe-aurora",
        "logo_path": None,
        "theme": None,
        "mode": "brand",
        "brand_background": "#102030",
        "brand_text": "#f0e0d0",
        "menu_sections": [
            {
                "id": "sec_drinks",
                "title": "Drinks",
                "position": 2,
                "visible": True,
                "menu_items": [
                    {
                        "id": "item_latte",
                        "name": "Latte",
                        "price": 4.5,
                        "description": "Double shot",
                        "tags": ["hot", "coffee"],
                        "is_featured": True,
                        "is_trending": False,
                        "visible": True,
                    },
                    {
                        "id": "item_secret",
                        "name": "Secret Blend",
                        "price": "7",
                        "tags": None,
                        "is_featured": False,
                        "is_trending": False,
                        "visible": False,
                    },
                ],
            },
            {
                "id": "sec_food",
                "title": "Food",
                "position": 1,
                "visible": True,
                "menu_items": [
                    {
                        "id": "item_toast",
                        "name": "Toast",
                        "price": 3,
                        "description": None,
                        "tags": [],
                        "is_featured": False,
                        "is_trending": True,
                        "visible": True,
                    }
                ],
            },
            {
                "id": "sec_hidden",
                "title": "Staff Only",
                "position": 0,
                "visible": False,
                "menu_items": [
                    {
                        "id": "item_meal",
                        "name": "Staff Meal",
                        "price": 0,
                        "visible": True,
                    }
                ],
            },
        ],
    }


@pytest.fixture
def sample_menu(raw_menu: dict[str, Any]) -> RestaurantMenu:
    """Fixture providing the normalized snapshot of ``raw_menu``."""
    return normalize_menu(raw_menu)
