"""
Prometheus counters for order lifecycle events
"""
from prometheus_client import Counter

ORDERS_SUBMITTED = Counter(
    "farmstand_orders_submitted_total",
    "Order submissions by outcome",
    ["outcome"],
)

STATUS_TRANSITIONS = Counter(
    "farmstand_order_status_transitions_total",
    "Applied order status transitions",
    ["from_status", "to_status"],
)

STOCK_UNITS_RESTORED = Counter(
    "farmstand_stock_units_restored_total",
    "Units returned to stock",
    ["restoration_type"],
)

NO_SHOW_ORDERS = Counter(
    "farmstand_no_show_orders_total",
    "Orders handled by the no-show sweep",
    ["action"],
)

CALCULATION_MISMATCHES = Counter(
    "farmstand_order_calculation_mismatches_total",
    "Stored order amounts that disagree with recomputed values",
    ["kind"],
)
