"""Custom metrics for the restaurant inventory service."""

from opentelemetry import metrics

# Get meter for inventory service
meter = metrics.get_meter("inventory-svc")

orders_placed_counter = meter.create_counter(
    name="orders_placed_total",
    description="Total number of orders placed",
    unit="1",
)

reconciliation_counter = meter.create_counter(
    name="inventory_reconciliation_total",
    description="Total number of reconciliation runs by direction",
    unit="1",
)

ingredients_touched_counter = meter.create_counter(
    name="inventory_ingredients_touched_total",
    description="Total number of ingredient records changed by reconciliation",
    unit="1",
)

stock_clamped_counter = meter.create_counter(
    name="inventory_stock_clamped_total",
    description="Deductions that would have driven stock below zero",
    unit="1",
)

store_write_failure_counter = meter.create_counter(
    name="store_write_failure_total",
    description="Failed collection store writes by collection",
    unit="1",
)

reconciliation_duration_histogram = meter.create_histogram(
    name="inventory_reconciliation_duration_seconds",
    description="Duration of reconciliation runs including persistence",
    unit="s",
)

order_items_histogram = meter.create_histogram(
    name="order_line_items",
    description="Number of line items per placed order",
    unit="1",
)


def record_order_placed(item_count: int) -> None:
    """Record a placed order.

    Args:
        item_count: Number of line items in the order
    """
    orders_placed_counter.add(1)
    order_items_histogram.record(item_count)


def record_reconciliation(direction: str, touched: int, clamped: int) -> None:
    """Record a reconciliation run.

    Args:
        direction: "deduct" or "restore"
        touched: Number of ingredient records changed
        clamped: Number of ingredients floor-clamped at zero
    """
    reconciliation_counter.add(1, {"direction": direction})
    if touched:
        ingredients_touched_counter.add(touched, {"direction": direction})
    if clamped:
        stock_clamped_counter.add(clamped)


def record_reconciliation_duration(direction: str, duration_seconds: float) -> None:
    """Record the duration of a reconciliation run.

    Args:
        direction: "deduct" or "restore"
        duration_seconds: Duration in seconds
    """
    reconciliation_duration_histogram.record(duration_seconds, {"direction": direction})


def record_store_write_failure(collection: str) -> None:
    """Record a failed store write.

    Args:
        collection: Collection the write targeted
    """
    store_write_failure_counter.add(1, {"collection": collection})
