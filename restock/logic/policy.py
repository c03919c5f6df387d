"""Restock quantity and urgency policies."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Protocol

SHIPMENT_LEAD_DAYS = 15
HIGH_BUFFER_DAYS = 7
MEDIUM_HORIZON_DAYS = 30


class UrgencyLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True, slots=True)
class StockPosition:
    available: int
    incoming: int
    days_since_incoming_change: int = 0
    recent_po_quantity: int = 0

    @property
    def total(self) -> int:
        return self.available + self.incoming


def round_up(value: float) -> int:
    # round first so float noise such as 3.0000000000000004 does not add a unit
    return max(0, math.ceil(round(value, 6)))


def classify_urgency(per_day_sales: float, position: StockPosition, *, lead_days: int = SHIPMENT_LEAD_DAYS) -> UrgencyLevel:
    if position.available < 0:
        return UrgencyLevel.CRITICAL
    if per_day_sales == 0:
        return UrgencyLevel.LOW
    days_left = position.total / per_day_sales
    if days_left <= lead_days:
        return UrgencyLevel.CRITICAL
    if days_left <= lead_days + HIGH_BUFFER_DAYS:
        return UrgencyLevel.HIGH
    if days_left <= MEDIUM_HORIZON_DAYS:
        return UrgencyLevel.MEDIUM
    return UrgencyLevel.LOW


class RestockPolicy(Protocol):
    def restock_quantity(self, per_day_sales: float, prediction_days: int, position: StockPosition) -> int:
        ...

    def urgency(self, per_day_sales: float, position: StockPosition) -> UrgencyLevel:
        ...


class IncomingAwarePolicy:
    """Accounts for open purchase orders and how long ago they were placed."""

    def __init__(self, lead_days: int = SHIPMENT_LEAD_DAYS) -> None:
        self.lead_days = lead_days

    def restock_quantity(self, per_day_sales: float, prediction_days: int, position: StockPosition) -> int:
        reorder = per_day_sales * prediction_days
        available = position.available
        if position.incoming > 0:
            days_remaining = self.lead_days - position.days_since_incoming_change
            consumption = per_day_sales * days_remaining
            if position.recent_po_quantity >= reorder:
                return 0
            if available >= consumption and available >= reorder:
                return 0
            return round_up(reorder)
        if reorder < available + 1:
            return 0
        return round_up(reorder + (reorder - available))

    def urgency(self, per_day_sales: float, position: StockPosition) -> UrgencyLevel:
        return classify_urgency(per_day_sales, position, lead_days=self.lead_days)


class ShortfallPolicy:
    """Expected demand minus everything on hand or on order."""

    def restock_quantity(self, per_day_sales: float, prediction_days: int, position: StockPosition) -> int:
        return round_up(max(0.0, per_day_sales * prediction_days - position.total))

    def urgency(self, per_day_sales: float, position: StockPosition) -> UrgencyLevel:
        return classify_urgency(per_day_sales, position)
