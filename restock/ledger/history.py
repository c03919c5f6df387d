"""Incoming purchase-order history.

Each variant with open purchase orders has a :class:`TrackIncomingRecord`
whose ``history`` lists the dated increases in incoming stock that are still
outstanding. Receipts (decreases) consume the oldest entries first, so the
remaining entries always describe the most recent orders and their quantities
sum to the current incoming total.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Sequence

from restock.ingest.models import Variant
from restock.utils.dates import as_utc, utc_now, whole_days_between

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IncomingHistoryEntry:
    date: datetime
    quantity: int
    total_order_quantity: int

    def to_dict(self) -> dict[str, object]:
        return {
            "date": as_utc(self.date).isoformat(),
            "quantity": self.quantity,
            "totalOrderQuantity": self.total_order_quantity,
        }


@dataclass(slots=True)
class TrackIncomingRecord:
    shop: str
    variant_id: int
    product_id: int
    incoming: int
    inventory_item_id: int | None = None
    incoming_last_changed_at: datetime | None = None
    history: list[IncomingHistoryEntry] = field(default_factory=list)


class LedgerAction(str, enum.Enum):
    UPSERT = "upsert"
    DELETE = "delete"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True)
class LedgerChange:
    action: LedgerAction
    shop: str
    variant_id: int
    record: TrackIncomingRecord | None


@dataclass(frozen=True, slots=True)
class IncomingLookup:
    days_passed: int = 0
    recent_po_quantity: int = 0


def _consume_fifo(history: list[IncomingHistoryEntry], amount: int) -> list[IncomingHistoryEntry]:
    remaining = amount
    kept: list[IncomingHistoryEntry] = []
    for entry in history:
        if remaining <= 0:
            kept.append(entry)
        elif entry.quantity <= remaining:
            remaining -= entry.quantity
        else:
            kept.append(replace(entry, quantity=entry.quantity - remaining))
            remaining = 0
    return kept


def _realign(history: list[IncomingHistoryEntry], target: int, now: datetime) -> list[IncomingHistoryEntry]:
    total = sum(entry.quantity for entry in history)
    if total == target:
        return history
    logger.warning("Incoming history total %s does not match incoming %s; realigning", total, target)
    if total > target:
        return _consume_fifo(history, total - target)
    return history + [IncomingHistoryEntry(date=now, quantity=target - total, total_order_quantity=target)]


def reconcile_history(
    old_incoming: int,
    new_incoming: int,
    history: Sequence[IncomingHistoryEntry],
    *,
    now: datetime,
) -> list[IncomingHistoryEntry] | None:
    """Return the history after incoming moves from ``old_incoming`` to ``new_incoming``.

    ``None`` means the record should be deleted.
    """
    if new_incoming <= 0:
        return None
    entries = sorted((replace(e) for e in history), key=lambda e: as_utc(e.date))
    old_incoming = max(old_incoming, 0)
    if new_incoming == old_incoming:
        return entries
    if old_incoming == 0:
        entries = [IncomingHistoryEntry(date=now, quantity=new_incoming, total_order_quantity=new_incoming)]
    elif new_incoming > old_incoming:
        entries.append(
            IncomingHistoryEntry(date=now, quantity=new_incoming - old_incoming, total_order_quantity=new_incoming)
        )
    else:
        entries = _consume_fifo(entries, old_incoming - new_incoming)
    entries = _realign(entries, new_incoming, now)
    for entry in entries:
        entry.total_order_quantity = new_incoming
    entries.sort(key=lambda e: as_utc(e.date))
    return entries


def reconcile(
    shop: str,
    variant: Variant,
    existing: TrackIncomingRecord | None,
    *,
    now: datetime | None = None,
) -> LedgerChange:
    now = now or utc_now()
    new_incoming = variant.incoming
    if new_incoming <= 0:
        if existing is None:
            return LedgerChange(LedgerAction.UNCHANGED, shop, variant.id, None)
        return LedgerChange(LedgerAction.DELETE, shop, variant.id, None)

    old_incoming = existing.incoming if existing else 0
    if existing is not None and new_incoming == old_incoming:
        return LedgerChange(LedgerAction.UNCHANGED, shop, variant.id, existing)

    history = reconcile_history(old_incoming, new_incoming, existing.history if existing else [], now=now)
    record = TrackIncomingRecord(
        shop=shop,
        variant_id=variant.id,
        product_id=variant.product_id,
        inventory_item_id=variant.inventory_item_id,
        incoming=new_incoming,
        incoming_last_changed_at=now,
        history=history or [],
    )
    return LedgerChange(LedgerAction.UPSERT, shop, variant.id, record)


def lookup(record: TrackIncomingRecord | None, *, now: datetime | None = None) -> IncomingLookup:
    """Days since the open order was placed and its quantity.

    Only a single outstanding entry gives an answer; multi-entry histories
    report zeros until there is a rule for picking among several orders.
    """
    if record is None or len(record.history) != 1:
        return IncomingLookup()
    entry = record.history[0]
    return IncomingLookup(
        days_passed=whole_days_between(entry.date, now or utc_now()),
        recent_po_quantity=entry.quantity,
    )
