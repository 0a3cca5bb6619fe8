"""Construction of synchronizers by configured mode."""

from menu_display_service.models.sync_models import SyncMode
from menu_display_service.services.change_feed import MenuChangeFeed
from menu_display_service.services.menu_gateway import MenuGateway
from menu_display_service.synchronizers.base_synchronizer import MenuSynchronizer
from menu_display_service.synchronizers.polling_synchronizer import (
    DEFAULT_POLL_INTERVAL_MS,
    PollingMenuSynchronizer,
)
from menu_display_service.synchronizers.subscription_synchronizer import (
    SubscriptionMenuSynchronizer,
)


def build_synchronizer(
    mode: SyncMode,
    slug: str,
    gateway: MenuGateway,
    change_feed: MenuChangeFeed | None = None,
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
) -> MenuSynchronizer:
    """Create an unstarted synchronizer for a slug.

    Args:
        mode: Refresh trigger to use
        slug: Public slug of the restaurant
        gateway: Gateway for the composite menu read
        change_feed: Required for the subscription modes
        poll_interval_ms: Tick interval for polling mode

    Returns:
        MenuSynchronizer ready to be started

    Raises:
        ValueError: If a subscription mode is requested without a change feed
    """
    if mode is SyncMode.POLLING:
        return PollingMenuSynchronizer(gateway=gateway, slug=slug, interval_ms=poll_interval_ms)

    if change_feed is None:
        raise ValueError(f"Sync mode '{mode.value}' requires a change feed")

    return SubscriptionMenuSynchronizer(
        gateway=gateway,
        change_feed=change_feed,
        slug=slug,
        resubscribe_on_section_change=mode is SyncMode.SUBSCRIPTION_RESUBSCRIBE,
    )
