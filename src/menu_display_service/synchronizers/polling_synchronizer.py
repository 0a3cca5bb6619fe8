"""Fixed-interval polling synchronizer."""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from menu_display_service.synchronizers.base_synchronizer import MenuSynchronizer
from menu_display_service.services.menu_gateway import MenuGateway

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 5000

SleepFunc = Callable[[float], Awaitable[None]]


class PollingMenuSynchronizer(MenuSynchronizer):
    """Refreshes the snapshot on a fixed timer.

    Ticks do not wait for the previous fetch to finish, so fetches may
    overlap; the sequence check in the base class keeps the newest result.
    There is no jitter and no backoff: a failed tick is simply followed by
    the next one. The snapshot is at most one interval stale.
    """

    strategy_name = "polling"

    def __init__(
        self,
        gateway: MenuGateway,
        slug: str,
        interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize the polling synchronizer.

        Args:
            gateway: Gateway used for the composite menu read
            slug: Public slug of the restaurant to follow
            interval_ms: Milliseconds between ticks
            sleep: Awaitable sleep, replaceable with a fake timer in tests
        """
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")

        super().__init__(gateway, slug)
        self.interval_ms = interval_ms
        self._sleep = sleep
        self._timer_task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        if self._timer_task is not None:
            return

        self.running = True
        await self.refresh()
        self._timer_task = asyncio.get_running_loop().create_task(self._run_timer())
        logger.info(f"Polling menu {self.slug} every {self.interval_ms} ms")

    async def stop(self) -> None:
        timer, self._timer_task = self._timer_task, None
        if timer is not None:
            timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await timer
        await super().stop()
        logger.info(f"Stopped polling menu {self.slug}")

    async def _run_timer(self) -> None:
        while True:
            await self._sleep(self.interval_ms / 1000)
            self.schedule_refresh()
