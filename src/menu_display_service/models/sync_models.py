"""Snapshot synchronization state models.

These models describe the state a synchronizer exposes to its consumers and
the control commands that can be posted to a display surface.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from menu_display_service.models.menu_models import RestaurantMenu


class SyncStatusEnum(str, Enum):
    """Enumeration of snapshot synchronization states.

    ``ready`` and ``failed`` both return to ``loading`` on the next refresh
    trigger. There is no terminal state short of teardown.
    """

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class SyncMode(str, Enum):
    """Refresh trigger used to keep a display snapshot fresh."""

    POLLING = "polling"
    SUBSCRIPTION = "subscription"
    SUBSCRIPTION_RESUBSCRIBE = "subscription-resubscribe"


class MenuSnapshotState(BaseModel):
    """Point-in-time view of a synchronizer.

    Attributes:
        snapshot: Last applied menu, None until the first successful fetch
        status: Current synchronization status
        last_error: Message of the last applied failure, None after a success
    """

    model_config = ConfigDict(frozen=True)

    snapshot: RestaurantMenu | None = None
    status: SyncStatusEnum = SyncStatusEnum.IDLE
    last_error: str | None = None


class DisplayCommand(BaseModel):
    """Control message posted to a display surface.

    ``fullscreen`` asks the surface to enter fullscreen. ``refresh`` tells it
    that a newer snapshot was applied and the menu should be re-rendered.
    Commands carry no payload and are never acknowledged.
    """

    action: Literal["fullscreen", "refresh"] = Field(default="fullscreen")
