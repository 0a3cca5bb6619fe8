"""Base synchronizer for keeping a local menu snapshot fresh.

This module defines the abstract base class shared by every refresh trigger.
The snapshot, status and error bookkeeping live here; subclasses only decide
when a refresh happens.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from types import TracebackType
from typing import Any

from menu_display_service.models.menu_models import RestaurantMenu
from menu_display_service.models.sync_models import MenuSnapshotState, SyncStatusEnum
from menu_display_service.observability.metrics import (
    record_refresh_duration,
    record_refresh_failure,
    record_refresh_success,
    record_stale_response,
)
from menu_display_service.services.exceptions import MenuGatewayError
from menu_display_service.services.menu_gateway import MenuGateway

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[MenuSnapshotState], None]


class MenuSynchronizer(ABC):
    """Abstract base class for snapshot synchronizers.

    Every refresh is a full fetch that replaces the snapshot wholesale.
    Refreshes are tagged with an increasing sequence number. A response that
    resolves after a newer one has been applied is dropped, so a slow fetch
    can never overwrite a fresher snapshot.

    Failures never propagate out of ``refresh``: the previous snapshot is
    kept, ``status`` becomes ``failed`` and the next trigger tries again.
    """

    strategy_name = "base"

    def __init__(self, gateway: MenuGateway, slug: str) -> None:
        """Initialize the synchronizer.

        Args:
            gateway: Gateway used for the composite menu read
            slug: Public slug of the restaurant to follow
        """
        self.gateway = gateway
        self.slug = slug
        self.snapshot: RestaurantMenu | None = None
        self.status = SyncStatusEnum.IDLE
        self.last_error: Exception | None = None
        self.running = False

        self._request_seq = 0
        self._applied_seq = 0
        self._listeners: list[SnapshotListener] = []
        self._refresh_tasks: set[asyncio.Task[Any]] = set()

    @property
    def state(self) -> MenuSnapshotState:
        """Current snapshot, status and last error."""
        return MenuSnapshotState(
            snapshot=self.snapshot,
            status=self.status,
            last_error=str(self.last_error) if self.last_error else None,
        )

    def add_listener(self, listener: SnapshotListener) -> None:
        """Register a callback run after every applied refresh."""
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def refresh(self) -> RestaurantMenu | None:
        """Fetch the full menu and apply it unless a newer result already was.

        Returns:
            The snapshot after this refresh was handled
        """
        self._request_seq += 1
        seq = self._request_seq
        self.status = SyncStatusEnum.LOADING
        started = time.monotonic()

        try:
            menu = await self.gateway.fetch_menu_by_slug(self.slug)
        except MenuGatewayError as e:
            if self._is_stale(seq):
                return self.snapshot
            self._applied_seq = seq
            self.status = SyncStatusEnum.FAILED
            self.last_error = e
            record_refresh_failure(self.strategy_name, type(e).__name__)
            logger.warning(f"Refresh of menu {self.slug} failed: {e}")
            self._notify()
            return self.snapshot
        finally:
            record_refresh_duration(self.strategy_name, time.monotonic() - started)

        if self._is_stale(seq):
            return self.snapshot

        self._applied_seq = seq
        self.snapshot = menu
        self.status = SyncStatusEnum.READY
        self.last_error = None
        record_refresh_success(self.strategy_name)
        self._after_apply(menu)
        self._notify()
        return menu

    def schedule_refresh(self) -> "asyncio.Task[Any]":
        """Start a refresh without waiting for it.

        The task is tracked so that ``stop`` can cancel it.
        """
        return self._spawn(self.refresh())

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
        task = asyncio.get_running_loop().create_task(coro)
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)
        return task

    @abstractmethod
    async def start(self) -> None:
        """Fetch once and begin listening for refresh triggers (mount)."""

    async def stop(self) -> None:
        """Stop all triggers and cancel in-flight refreshes (unmount)."""
        self.running = False
        tasks = list(self._refresh_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._refresh_tasks.clear()

    async def __aenter__(self) -> "MenuSynchronizer":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    def _is_stale(self, seq: int) -> bool:
        if seq < self._applied_seq:
            logger.debug(f"Discarding stale response #{seq} for menu {self.slug}")
            record_stale_response(self.strategy_name)
            return True
        return False

    def _after_apply(self, menu: RestaurantMenu) -> None:
        """Hook run after a successful snapshot replace, before listeners."""

    def _notify(self) -> None:
        state = self.state
        for listener in list(self._listeners):
            listener(state)
