import pytest

from restock.logic.policy import (
    IncomingAwarePolicy,
    ShortfallPolicy,
    StockPosition,
    UrgencyLevel,
    classify_urgency,
    round_up,
)


def test_restock_zero_when_stock_covers_demand():
    policy = IncomingAwarePolicy()
    assert policy.restock_quantity(5, 15, StockPosition(available=100, incoming=0)) == 0


def test_restock_doubles_shortfall_without_incoming():
    policy = IncomingAwarePolicy()
    assert policy.restock_quantity(5, 15, StockPosition(available=50, incoming=0)) == 100


def test_restock_boundary_without_incoming():
    policy = IncomingAwarePolicy()
    # reorder 75 is below available + 1
    assert policy.restock_quantity(5, 15, StockPosition(available=75, incoming=0)) == 0
    assert policy.restock_quantity(5, 15, StockPosition(available=74, incoming=0)) == 76


@pytest.mark.parametrize("po_quantity, expected", [(150, 0), (200, 0), (149, 150), (0, 150)])
def test_restock_with_incoming_depends_on_recent_po(po_quantity, expected):
    policy = IncomingAwarePolicy()
    position = StockPosition(available=20, incoming=200, days_since_incoming_change=5, recent_po_quantity=po_quantity)
    assert policy.restock_quantity(10, 15, position) == expected


def test_restock_with_incoming_covered_by_available():
    policy = IncomingAwarePolicy()
    position = StockPosition(available=200, incoming=50, days_since_incoming_change=5, recent_po_quantity=0)
    assert policy.restock_quantity(10, 15, position) == 0


def test_restock_with_overdue_shipment():
    policy = IncomingAwarePolicy()
    # 20 days passed: shipment expected already, consumption goes negative
    position = StockPosition(available=160, incoming=10, days_since_incoming_change=20)
    assert policy.restock_quantity(10, 15, position) == 0
    position = StockPosition(available=100, incoming=10, days_since_incoming_change=20)
    assert policy.restock_quantity(10, 15, position) == 150


def test_round_up_ignores_float_noise():
    assert round_up(0.1 * 30) == 3
    assert round_up(2.01) == 3
    assert round_up(-4) == 0


@pytest.mark.parametrize(
    "available, incoming, per_day, expected",
    [
        (15, 0, 1, UrgencyLevel.CRITICAL),
        (10, 5, 1, UrgencyLevel.CRITICAL),
        (22, 0, 1, UrgencyLevel.HIGH),
        (16, 0, 1, UrgencyLevel.HIGH),
        (30, 0, 1, UrgencyLevel.MEDIUM),
        (23, 0, 1, UrgencyLevel.MEDIUM),
        (31, 0, 1, UrgencyLevel.LOW),
        (1000, 0, 0, UrgencyLevel.LOW),
        (0, 0, 0, UrgencyLevel.LOW),
        (-1, 0, 0, UrgencyLevel.CRITICAL),
        (-5, 100, 1, UrgencyLevel.CRITICAL),
    ],
)
def test_urgency_boundaries(available, incoming, per_day, expected):
    assert classify_urgency(per_day, StockPosition(available=available, incoming=incoming)) is expected


def test_shortfall_policy_counts_incoming():
    policy = ShortfallPolicy()
    assert policy.restock_quantity(5, 15, StockPosition(available=50, incoming=10)) == 15
    assert policy.restock_quantity(5, 15, StockPosition(available=50, incoming=30)) == 0
    assert policy.urgency(1, StockPosition(available=40, incoming=0)) is UrgencyLevel.LOW
