"""Change-notification synchronizer."""

import asyncio
import logging
from typing import Any

from menu_display_service.models.menu_models import RestaurantMenu
from menu_display_service.services.change_feed import ChangeSubscription, MenuChangeFeed
from menu_display_service.services.menu_gateway import MenuGateway
from menu_display_service.synchronizers.base_synchronizer import MenuSynchronizer

logger = logging.getLogger(__name__)


class SubscriptionMenuSynchronizer(MenuSynchronizer):
    """Refreshes the snapshot whenever a watched row changes.

    The subscription watches the restaurant row, its sections, and the items
    of every section known when the subscription was opened. Any
    notification triggers one full re-fetch, never an incremental merge.

    Known gap: items of a section created after the subscription opened are
    not watched until the synchronizer is restarted. Passing
    ``resubscribe_on_section_change=True`` changes that behaviour: the channel
    is reopened whenever an applied snapshot has a different set of sections.
    """

    strategy_name = "subscription"

    def __init__(
        self,
        gateway: MenuGateway,
        change_feed: MenuChangeFeed,
        slug: str,
        resubscribe_on_section_change: bool = False,
    ) -> None:
        super().__init__(gateway, slug)
        self.change_feed = change_feed
        self.resubscribe_on_section_change = resubscribe_on_section_change
        self.subscription: ChangeSubscription | None = None
        self._resubscribe_task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Fetch once, then open the subscription.

        If the first fetch fails no subscription is opened and the
        synchronizer is left stopped, so a later ``start`` retries from
        scratch.
        """
        if self.running:
            return

        self.running = True
        menu = await self.refresh()
        if menu is None:
            logger.warning(f"Initial fetch of menu {self.slug} failed, not subscribing")
            self.running = False
            return

        await self._open_subscription(menu)

    async def stop(self) -> None:
        """Release the subscription exactly once. Teardown errors are logged."""
        await super().stop()
        await self._close_subscription()
        logger.info(f"Stopped change subscription for menu {self.slug}")

    def _handle_change(self, payload: dict[str, Any]) -> None:
        if not self.running:
            return
        logger.debug(f"Change notification for menu {self.slug}: {payload.get('table', '?')}")
        self.schedule_refresh()

    async def _open_subscription(self, menu: RestaurantMenu) -> None:
        section_ids = [section.id for section in menu.menu_sections]
        self.subscription = await self.change_feed.subscribe(
            slug=self.slug,
            restaurant_id=menu.id,
            section_ids=section_ids,
            on_change=self._handle_change,
        )

    async def _close_subscription(self) -> None:
        subscription, self.subscription = self.subscription, None
        if subscription is None:
            return
        try:
            await subscription.close()
        except Exception as e:
            logger.warning(f"Failed to close change subscription for menu {self.slug}: {e}")

    def _watched_sections_stale(self) -> bool:
        if self.subscription is None or self.snapshot is None:
            return False
        section_ids = frozenset(section.id for section in self.snapshot.menu_sections)
        return section_ids != self.subscription.section_ids

    async def _resubscribe(self) -> None:
        """Reopen the channel until it watches the sections of the latest snapshot.

        Only one of these runs at a time. Snapshots applied while the channel
        is being reopened are picked up by the next pass of the loop.
        """
        while self.running and self._watched_sections_stale():
            logger.info(f"Sections of menu {self.slug} changed, reopening subscription")
            await self._close_subscription()
            if not self.running or self.snapshot is None:
                return
            try:
                await self._open_subscription(self.snapshot)
            except Exception as e:
                logger.error(f"Failed to reopen change subscription for menu {self.slug}: {e}")
                return

    def _after_apply(self, menu: RestaurantMenu) -> None:
        if not self.resubscribe_on_section_change:
            return
        if self._resubscribe_task is not None and not self._resubscribe_task.done():
            return
        if self._watched_sections_stale():
            self._resubscribe_task = self._spawn(self._resubscribe())
