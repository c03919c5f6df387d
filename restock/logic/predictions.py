"""Per-variant restock predictions."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime

import numpy as np

from restock.ingest.models import Product, Variant
from restock.ledger.history import TrackIncomingRecord, lookup
from restock.logic.policy import IncomingAwarePolicy, RestockPolicy, StockPosition, UrgencyLevel, round_up
from restock.logic.velocity import SalesPeriodSummary
from restock.utils.dates import format_date, inclusive_days, utc_now


@dataclass(slots=True)
class PredictionRecord:
    product_id: int
    product_name: str
    product_image: str
    variant_id: int
    variant_name: str
    sku: str | None
    sales: dict[int, int]
    per_day_sales: dict[int, float]
    available: int
    incoming: int
    committed: int
    on_hand: int
    total_inventory: int
    recommended_restock: dict[int, int]
    recommended_average_stock: int
    urgency: UrgencyLevel
    days_since_incoming_change: int | None = None

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        for key in ("sales", "per_day_sales", "recommended_restock"):
            for days, value in data.pop(key).items():
                data[f"{key}_{days}d"] = value
        data["urgency"] = self.urgency.value
        return data


@dataclass(slots=True)
class RangeSummaryRecord:
    product_id: int
    product_name: str
    product_image: str
    variant_id: int
    variant_name: str
    sku: str | None
    start: datetime
    end: datetime
    days: int
    total_sales: int
    per_day_sales: float
    available: int
    incoming: int
    total_inventory: int
    recommended_restock: int
    urgency: UrgencyLevel

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["start"] = format_date(self.start)
        data["end"] = format_date(self.end)
        data["urgency"] = self.urgency.value
        return data


_EMPTY = SalesPeriodSummary(variant_id=0, window_days=1, total_sales=0, per_day_sales=0.0)


@dataclass(slots=True)
class RestockPredictionEngine:
    """Combines velocity, the stock snapshot and ledger lookups into predictions."""

    policy: RestockPolicy = field(default_factory=IncomingAwarePolicy)

    def position(
        self,
        variant: Variant,
        record: TrackIncomingRecord | None,
        now: datetime,
    ) -> tuple[StockPosition, int | None]:
        if variant.incoming > 0:
            found = lookup(record, now=now)
            position = StockPosition(
                available=variant.available,
                incoming=variant.incoming,
                days_since_incoming_change=found.days_passed,
                recent_po_quantity=found.recent_po_quantity,
            )
            return position, found.days_passed
        return StockPosition(available=variant.available, incoming=variant.incoming), None

    def predict(
        self,
        products: Sequence[Product],
        summaries: Mapping[int, Mapping[int, SalesPeriodSummary]],
        records: Mapping[int, TrackIncomingRecord],
        prediction_days: int,
        *,
        now: datetime | None = None,
    ) -> list[PredictionRecord]:
        if not summaries:
            raise ValueError("At least one sales window is required")
        now = now or utc_now()
        windows = sorted(summaries)
        predictions: list[PredictionRecord] = []
        for product in products:
            for variant in product.variants:
                position, days_since_change = self.position(variant, records.get(variant.id), now)
                per_window = {days: summaries[days].get(variant.id, _EMPTY) for days in windows}
                restock = {
                    days: self.policy.restock_quantity(summary.per_day_sales, prediction_days, position)
                    for days, summary in per_window.items()
                }
                predictions.append(
                    PredictionRecord(
                        product_id=product.id,
                        product_name=product.title,
                        product_image=variant.image_url or product.image_url,
                        variant_id=variant.id,
                        variant_name=variant.title,
                        sku=variant.sku,
                        sales={days: s.total_sales for days, s in per_window.items()},
                        per_day_sales={days: s.per_day_sales for days, s in per_window.items()},
                        available=variant.available,
                        incoming=variant.incoming,
                        committed=variant.committed,
                        on_hand=variant.on_hand,
                        total_inventory=position.total,
                        recommended_restock=restock,
                        recommended_average_stock=round_up(float(np.mean(list(restock.values())))),
                        urgency=self.policy.urgency(per_window[windows[0]].per_day_sales, position),
                        days_since_incoming_change=days_since_change,
                    )
                )
        return predictions

    def summarize_range(
        self,
        products: Sequence[Product],
        summaries: Mapping[int, SalesPeriodSummary],
        records: Mapping[int, TrackIncomingRecord],
        start: datetime,
        end: datetime,
        prediction_days: int,
        *,
        now: datetime | None = None,
    ) -> list[RangeSummaryRecord]:
        now = now or utc_now()
        days = inclusive_days(start.date(), end.date())
        rows: list[RangeSummaryRecord] = []
        for product in products:
            for variant in product.variants:
                summary = summaries.get(variant.id, _EMPTY)
                position, _ = self.position(variant, records.get(variant.id), now)
                rows.append(
                    RangeSummaryRecord(
                        product_id=product.id,
                        product_name=product.title,
                        product_image=variant.image_url or product.image_url,
                        variant_id=variant.id,
                        variant_name=variant.title,
                        sku=variant.sku,
                        start=start,
                        end=end,
                        days=days,
                        total_sales=summary.total_sales,
                        per_day_sales=summary.per_day_sales,
                        available=variant.available,
                        incoming=variant.incoming,
                        total_inventory=position.total,
                        recommended_restock=self.policy.restock_quantity(
                            summary.per_day_sales, prediction_days, position
                        ),
                        urgency=self.policy.urgency(summary.per_day_sales, position),
                    )
                )
        return rows
