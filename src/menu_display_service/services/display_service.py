"""Public display service keeping one synchronized snapshot per slug."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Coroutine
from functools import partial
from typing import Any

from menu_display_service.display.control_channel import DisplayControlChannel, surface_key
from menu_display_service.display.renderer import build_display_menu
from menu_display_service.models.display_models import DisplayMenu
from menu_display_service.models.menu_models import RestaurantMenu
from menu_display_service.models.sync_models import DisplayCommand, MenuSnapshotState, SyncMode
from menu_display_service.observability.metrics import record_synchronizer_change
from menu_display_service.services.change_feed import MenuChangeFeed
from menu_display_service.services.exceptions import MenuGatewayError, MenuNotFoundError
from menu_display_service.services.menu_gateway import MenuGateway
from menu_display_service.synchronizers.base_synchronizer import MenuSynchronizer
from menu_display_service.synchronizers.factory import build_synchronizer
from menu_display_service.synchronizers.polling_synchronizer import DEFAULT_POLL_INTERVAL_MS

logger = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT_SECONDS = 300.0


class DisplayService:
    """Serves display views from per-slug synchronizers.

    A synchronizer is started the first time a slug is requested. Concurrent
    first requests for the same slug share one start; different slugs start
    independently. A slug that does not exist is not kept, and neither is a
    synchronizer that has no refresh trigger left after a failed first fetch:
    both are stopped straight away and the lookup raises.

    Open control sockets count as viewers. Once a slug has had no viewers
    and no requests for ``idle_timeout_seconds`` its synchronizer is
    released. Every newly applied snapshot is announced to the slug's
    surfaces with a ``refresh`` command.
    """

    def __init__(
        self,
        gateway: MenuGateway,
        change_feed: MenuChangeFeed | None = None,
        mode: SyncMode = SyncMode.POLLING,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        control_channel: DisplayControlChannel | None = None,
        idle_timeout_seconds: float | None = DEFAULT_IDLE_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the display service.

        Args:
            gateway: Gateway for the composite menu read
            change_feed: Change feed, required for the subscription modes
            mode: Refresh trigger used for every slug
            poll_interval_ms: Tick interval for polling mode
            control_channel: Channel used to post commands to display surfaces
            idle_timeout_seconds: Idle time before an unwatched slug is
                released, None to keep synchronizers until shutdown
            sleep: Awaitable sleep used by the idle reaper
            clock: Monotonic clock used to measure idle time
        """
        self.gateway = gateway
        self.change_feed = change_feed
        self.mode = mode
        self.poll_interval_ms = poll_interval_ms
        self.control_channel = control_channel or DisplayControlChannel()
        self.idle_timeout_seconds = idle_timeout_seconds
        self._sleep = sleep
        self._clock = clock

        self._synchronizers: dict[str, MenuSynchronizer] = {}
        self._starting: dict[str, asyncio.Task[MenuSynchronizer]] = {}
        self._published: dict[str, RestaurantMenu] = {}
        self._viewers: dict[str, int] = {}
        self._last_seen: dict[str, float] = {}
        self._reapers: dict[str, asyncio.Task[None]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def active_slugs(self) -> list[str]:
        return list(self._synchronizers)

    def viewer_count(self, slug: str) -> int:
        return self._viewers.get(slug, 0)

    async def get_synchronizer(self, slug: str) -> MenuSynchronizer:
        """Return the running synchronizer for a slug, starting it if needed.

        Raises:
            MenuNotFoundError: If no restaurant uses the slug
            MenuGatewayError: If the synchronizer could not be started
        """
        synchronizer = self._synchronizers.get(slug)
        if synchronizer is None:
            task = self._starting.get(slug)
            if task is None:
                task = asyncio.get_running_loop().create_task(self._start(slug))
                self._starting[slug] = task
                task.add_done_callback(partial(self._forget_start, slug))
            synchronizer = await asyncio.shield(task)

        self._touch(slug)
        return synchronizer

    async def get_state(self, slug: str) -> MenuSnapshotState:
        synchronizer = await self.get_synchronizer(slug)
        return synchronizer.state

    async def get_view(self, slug: str) -> DisplayMenu:
        """Build the render-ready menu for a slug.

        Raises:
            MenuNotFoundError: If no restaurant uses the slug
            MenuGatewayError: If no snapshot has been fetched yet
        """
        synchronizer = await self.get_synchronizer(slug)
        if synchronizer.snapshot is None:
            raise MenuGatewayError(f"Menu {slug} is not available yet: {synchronizer.last_error}")
        return build_display_menu(synchronizer.snapshot)

    async def request_fullscreen(self, slug: str) -> int:
        """Post a fullscreen command to the admin preview surfaces of a slug."""
        command = DisplayCommand(action="fullscreen")
        return await self.control_channel.post(surface_key(slug, preview=True), command)

    def add_viewer(self, slug: str) -> None:
        """Count an open display surface for a slug."""
        self._viewers[slug] = self._viewers.get(slug, 0) + 1

    def remove_viewer(self, slug: str) -> None:
        """Forget one display surface; the last one starts the idle countdown."""
        remaining = self._viewers.get(slug, 0) - 1
        if remaining > 0:
            self._viewers[slug] = remaining
            return
        self._viewers.pop(slug, None)
        self._touch(slug)

    async def release(self, slug: str) -> bool:
        """Stop and forget the synchronizer of one slug."""
        reaper = self._reapers.pop(slug, None)
        if reaper is not None and reaper is not asyncio.current_task():
            reaper.cancel()

        synchronizer = self._synchronizers.pop(slug, None)
        self._published.pop(slug, None)
        self._last_seen.pop(slug, None)
        if synchronizer is None:
            return False
        await synchronizer.stop()
        record_synchronizer_change(-1)
        logger.info(f"Stopped synchronizer for {slug}")
        return True

    async def shutdown(self) -> None:
        """Stop every running synchronizer."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._reapers.clear()

        for slug in list(self._synchronizers):
            await self.release(slug)

    async def _start(self, slug: str) -> MenuSynchronizer:
        synchronizer = build_synchronizer(
            self.mode,
            slug,
            self.gateway,
            change_feed=self.change_feed,
            poll_interval_ms=self.poll_interval_ms,
        )
        await synchronizer.start()

        if isinstance(synchronizer.last_error, MenuNotFoundError):
            await synchronizer.stop()
            raise MenuNotFoundError(f"No menu published under {slug}")

        if not synchronizer.running:
            await synchronizer.stop()
            raise MenuGatewayError(f"Menu {slug} is not available yet: {synchronizer.last_error}")

        if synchronizer.snapshot is not None:
            self._published[slug] = synchronizer.snapshot
        synchronizer.add_listener(partial(self._on_snapshot, slug))
        self._synchronizers[slug] = synchronizer
        record_synchronizer_change(1)
        logger.info(f"Started {synchronizer.strategy_name} synchronizer for {slug}")
        return synchronizer

    def _forget_start(self, slug: str, task: "asyncio.Task[MenuSynchronizer]") -> None:
        if self._starting.get(slug) is task:
            del self._starting[slug]
        if not task.cancelled():
            # waiters re-raise it through the shield
            task.exception()

    def _on_snapshot(self, slug: str, state: MenuSnapshotState) -> None:
        if state.snapshot is None or state.snapshot == self._published.get(slug):
            return
        self._published[slug] = state.snapshot
        self._spawn(self._push_refresh(slug))

    async def _push_refresh(self, slug: str) -> None:
        command = DisplayCommand(action="refresh")
        for key in (surface_key(slug), surface_key(slug, preview=True)):
            await self.control_channel.post(key, command)

    def _touch(self, slug: str) -> None:
        if slug not in self._synchronizers:
            return
        self._last_seen[slug] = self._clock()
        if self.idle_timeout_seconds is None or self._viewers.get(slug):
            return
        reaper = self._reapers.get(slug)
        if reaper is None or reaper.done():
            self._reapers[slug] = self._spawn(self._reap_when_idle(slug, self.idle_timeout_seconds))

    async def _reap_when_idle(self, slug: str, timeout: float) -> None:
        while True:
            if self._viewers.get(slug) or slug not in self._synchronizers:
                return
            idle = self._clock() - self._last_seen.get(slug, 0.0)
            if idle >= timeout:
                break
            await self._sleep(timeout - idle)

        logger.info(f"No viewers of {slug} for {timeout}s, releasing")
        await self.release(slug)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
