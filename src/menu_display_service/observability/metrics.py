"""Custom metrics for the menu display service."""

from opentelemetry import metrics

meter = metrics.get_meter("menu-display-svc")

refresh_success_counter = meter.create_counter(
    name="menu_refresh_success_total",
    description="Total number of applied snapshot refreshes by strategy",
    unit="1",
)

refresh_failure_counter = meter.create_counter(
    name="menu_refresh_failure_total",
    description="Total number of applied refresh failures by strategy",
    unit="1",
)

refresh_duration_histogram = meter.create_histogram(
    name="menu_refresh_duration_seconds",
    description="Duration of composite menu fetches by strategy",
    unit="s",
)

stale_response_counter = meter.create_counter(
    name="menu_refresh_stale_discarded_total",
    description="Fetch responses discarded because a newer one was already applied",
    unit="1",
)

admin_mutation_counter = meter.create_counter(
    name="admin_menu_mutation_total",
    description="Admin menu mutations by operation and outcome",
    unit="1",
)

active_synchronizers = meter.create_up_down_counter(
    name="display_synchronizers_active",
    description="Number of running display synchronizers",
    unit="1",
)


def record_refresh_success(strategy: str) -> None:
    """Record an applied successful refresh.

    Args:
        strategy: Synchronization strategy name (e.g., "polling")
    """
    refresh_success_counter.add(1, {"strategy": strategy})


def record_refresh_failure(strategy: str, error_type: str) -> None:
    """Record an applied failed refresh.

    Args:
        strategy: Synchronization strategy name
        error_type: Exception class name of the failure
    """
    refresh_failure_counter.add(1, {"strategy": strategy, "error_type": error_type})


def record_refresh_duration(strategy: str, duration_seconds: float) -> None:
    refresh_duration_histogram.record(duration_seconds, {"strategy": strategy})


def record_stale_response(strategy: str) -> None:
    stale_response_counter.add(1, {"strategy": strategy})


def record_admin_mutation(operation: str, success: bool) -> None:
    """Record an admin mutation attempt that reached the gateway.

    Args:
        operation: Operation name (e.g., "create_section")
        success: Whether the gateway call succeeded
    """
    admin_mutation_counter.add(
        1, {"operation": operation, "outcome": "success" if success else "failure"}
    )


def record_synchronizer_change(change: int) -> None:
    """Record synchronizers being started (+1) or stopped (-1)."""
    active_synchronizers.add(change)
