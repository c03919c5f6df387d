from datetime import datetime, timedelta, timezone

import pytest

from conftest import NOW, make_variant
from restock.ingest.models import OrderLineFact
from restock.logic import velocity
from restock.utils.dates import window_cutoff


def fact(variant_id, quantity, created_at, order_id=1):
    return OrderLineFact(
        order_id=order_id,
        order_number=f"#{order_id}",
        created_at=created_at,
        financial_status="PAID",
        fulfillment_status=None,
        product_id=1,
        product_name="Alpha Serum",
        variant_id=variant_id,
        variant_title=None,
        quantity=quantity,
    )


def test_cutoff_counts_today_as_day_one():
    assert window_cutoff(7, NOW) == datetime(2025, 6, 9, tzinfo=timezone.utc)
    assert window_cutoff(1, NOW) == datetime(2025, 6, 15, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        window_cutoff(0, NOW)


def test_summarize_sums_inside_window_only():
    variants = [make_variant(11), make_variant(12)]
    cutoff = datetime(2025, 6, 9, tzinfo=timezone.utc)
    facts = [
        fact(11, 3, cutoff),
        fact(11, 4, NOW),
        fact(11, 100, cutoff - timedelta(seconds=1)),
        fact(99, 50, NOW),
        fact(None, 50, NOW),
    ]

    summaries = velocity.summarize(variants, facts, 7, now=NOW)

    assert summaries[11].total_sales == 7
    assert summaries[11].per_day_sales == 1.0
    assert summaries[12].total_sales == 0
    assert summaries[12].per_day_sales == 0.0
    assert 99 not in summaries


@pytest.mark.parametrize("days", [7, 14, 30])
def test_per_day_divides_by_requested_window(days):
    variants = [make_variant(11)]
    facts = [fact(11, 6, NOW)]
    summary = velocity.summarize(variants, facts, days, now=NOW)[11]
    assert summary.per_day_sales == summary.total_sales / days
    assert velocity.summarize(variants, [], days, now=NOW)[11].per_day_sales == 0


def test_windows_are_independent():
    variants = [make_variant(11)]
    facts = [fact(11, 2, NOW), fact(11, 5, NOW - timedelta(days=10)), fact(11, 9, NOW - timedelta(days=20))]

    summaries = velocity.summarize_windows(variants, facts, [30, 7, 14], now=NOW)

    assert list(summaries) == [7, 14, 30]
    assert [summaries[d][11].total_sales for d in (7, 14, 30)] == [2, 7, 16]


def test_summarize_range_uses_inclusive_days():
    variants = [make_variant(11)]
    start = datetime(2025, 6, 1, tzinfo=timezone.utc)
    end = datetime(2025, 6, 10, 23, 59, tzinfo=timezone.utc)
    facts = [fact(11, 5, datetime(2025, 6, 5, tzinfo=timezone.utc)), fact(11, 5, datetime(2025, 6, 11, tzinfo=timezone.utc))]

    summary = velocity.summarize_range(variants, facts, end, start)[11]

    assert summary.window_days == 10
    assert summary.total_sales == 5
    assert summary.per_day_sales == 0.5
