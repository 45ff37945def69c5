from types import SimpleNamespace

import pytest

from farmstand.services.pricing import (
    calculate_subtotal,
    calculate_tax,
    check_order_calculations,
    line_total,
    round_money,
)


def _line(unit_price, quantity, subtotal=None):
    return SimpleNamespace(
        unit_price=unit_price,
        quantity=quantity,
        subtotal=line_total(unit_price, quantity) if subtotal is None else subtotal,
    )


def _order(items, subtotal=None, tax=None, total=None):
    sub = calculate_subtotal(items) if subtotal is None else subtotal
    tx = calculate_tax(sub, 0.085) if tax is None else tax
    return SimpleNamespace(
        id="order-1",
        items=items,
        subtotal=sub,
        tax=tx,
        total=round_money(sub + tx) if total is None else total,
    )


class TestAmounts:
    def test_round_half_up(self):
        assert round_money(2.675) == 2.68
        assert round_money(0.125) == 0.13

    def test_subtotal_is_sum_of_lines(self):
        assert calculate_subtotal([_line(4.5, 2), _line(1.25, 3)]) == 12.75

    def test_tax(self):
        assert calculate_tax(12.75, 0.085) == 1.08

    @pytest.mark.parametrize("price,qty,expected", [(0.1, 3, 0.3), (3.333, 3, 10.0), (2.0, 0, 0.0)])
    def test_line_total(self, price, qty, expected):
        assert line_total(price, qty) == expected


class TestConsistencyCheck:
    def test_consistent_order_has_no_mismatches(self):
        assert check_order_calculations(_order([_line(4.5, 2), _line(1.25, 3)])) == []

    def test_drift_within_tolerance_is_ignored(self):
        order = _order([_line(4.5, 2)])
        order.total += 0.005
        assert check_order_calculations(order) == []

    def test_reports_every_mismatch(self):
        order = _order([_line(4.5, 2, subtotal=10.0)], subtotal=10.0, total=99.0)
        kinds = {m.kind for m in check_order_calculations(order)}
        assert kinds == {"item_subtotal", "order_subtotal", "order_total"}

    def test_mismatch_carries_item_index(self):
        order = _order([_line(1.0, 1), _line(2.0, 2, subtotal=5.0)])
        item_mismatches = [m for m in check_order_calculations(order) if m.kind == "item_subtotal"]
        assert [m.item_index for m in item_mismatches] == [1]
        assert item_mismatches[0].difference == pytest.approx(1.0)
