"""Sales velocity over trailing windows and explicit date ranges."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from restock.ingest.models import OrderLineFact, Variant
from restock.utils.dates import as_utc, inclusive_days, utc_now, window_cutoff


@dataclass(frozen=True, slots=True)
class SalesPeriodSummary:
    variant_id: int
    window_days: int
    total_sales: int
    per_day_sales: float


def _sum_by_variant(
    known: set[int],
    facts: Iterable[OrderLineFact],
    start: datetime,
    end: datetime | None = None,
) -> dict[int, int]:
    totals: dict[int, int] = defaultdict(int)
    for fact in facts:
        if fact.variant_id is None or fact.variant_id not in known:
            continue
        created = as_utc(fact.created_at)
        if created < start or (end is not None and created > end):
            continue
        totals[fact.variant_id] += fact.quantity
    return totals


def _summaries(variants: Sequence[Variant], totals: dict[int, int], days: int) -> dict[int, SalesPeriodSummary]:
    return {
        variant.id: SalesPeriodSummary(
            variant_id=variant.id,
            window_days=days,
            total_sales=totals.get(variant.id, 0),
            per_day_sales=totals.get(variant.id, 0) / days,
        )
        for variant in variants
    }


def summarize(
    variants: Sequence[Variant],
    facts: Iterable[OrderLineFact],
    window_days: int,
    *,
    now: datetime | None = None,
) -> dict[int, SalesPeriodSummary]:
    """Per-variant sales for the trailing ``window_days`` days, today included."""
    cutoff = window_cutoff(window_days, now)
    totals = _sum_by_variant({v.id for v in variants}, facts, cutoff)
    return _summaries(variants, totals, window_days)


def summarize_windows(
    variants: Sequence[Variant],
    facts: Sequence[OrderLineFact],
    windows: Iterable[int],
    *,
    now: datetime | None = None,
) -> dict[int, dict[int, SalesPeriodSummary]]:
    now = now or utc_now()
    return {days: summarize(variants, facts, days, now=now) for days in sorted(set(windows))}


def summarize_range(
    variants: Sequence[Variant],
    facts: Iterable[OrderLineFact],
    start: datetime,
    end: datetime,
) -> dict[int, SalesPeriodSummary]:
    start, end = as_utc(start), as_utc(end)
    if start > end:
        start, end = end, start
    days = inclusive_days(start.date(), end.date())
    totals = _sum_by_variant({v.id for v in variants}, facts, start, end)
    return _summaries(variants, totals, days)
