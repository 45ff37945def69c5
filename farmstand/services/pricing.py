"""
Order amount calculations and consistency checks
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List

from farmstand.metrics import CALCULATION_MISMATCHES

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = 0.01
_CENT = Decimal("0.01")


def round_money(value: float) -> float:
    """Round half-up to cents (binary float rounding is not money rounding)"""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def line_total(unit_price: float, quantity: int) -> float:
    return round_money(unit_price * quantity)


def calculate_subtotal(lines: Iterable) -> float:
    """Sum of unit_price x quantity over objects exposing both attributes"""
    return round_money(sum(line_total(line.unit_price, line.quantity) for line in lines))


def calculate_tax(subtotal: float, rate: float) -> float:
    return round_money(subtotal * rate)


@dataclass
class CalculationMismatch:
    kind: str  # order_subtotal, order_total, item_subtotal
    expected: float
    actual: float
    order_id: str
    item_index: int | None = None

    @property
    def difference(self) -> float:
        return abs(self.expected - self.actual)


def check_order_calculations(order) -> List[CalculationMismatch]:
    """Recompute an order's amounts and report disagreements beyond tolerance.

    Mismatches are recorded (log + counter), never raised: a stored order
    with drifted amounts is still readable.
    """
    mismatches: List[CalculationMismatch] = []

    for index, item in enumerate(order.items):
        expected_item = line_total(item.unit_price, item.quantity)
        if abs(item.subtotal - expected_item) > AMOUNT_TOLERANCE:
            mismatches.append(CalculationMismatch(
                "item_subtotal", expected_item, item.subtotal, order.id, index
            ))

    if order.items:
        expected_subtotal = calculate_subtotal(order.items)
        if abs(order.subtotal - expected_subtotal) > AMOUNT_TOLERANCE:
            mismatches.append(CalculationMismatch(
                "order_subtotal", expected_subtotal, order.subtotal, order.id
            ))

    expected_total = round_money(order.subtotal + order.tax)
    if abs(order.total - expected_total) > AMOUNT_TOLERANCE:
        mismatches.append(CalculationMismatch("order_total", expected_total, order.total, order.id))

    for mismatch in mismatches:
        CALCULATION_MISMATCHES.labels(kind=mismatch.kind).inc()
        logger.warning(
            "Calculation mismatch on order %s (%s): expected %.2f, stored %.2f",
            mismatch.order_id, mismatch.kind, mismatch.expected, mismatch.actual
        )
    return mismatches
