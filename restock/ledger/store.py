"""Persistence for incoming purchase-order records."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import text

from restock.errors import PersistenceError
from restock.ledger.history import IncomingHistoryEntry, LedgerAction, LedgerChange, TrackIncomingRecord
from restock.utils.dates import as_utc, parse_datetime, utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LedgerSyncResult:
    upserted: int = 0
    deleted: int = 0


def _dump_history(history: list[IncomingHistoryEntry]) -> str:
    return json.dumps([entry.to_dict() for entry in history])


def _load_history(raw: Any) -> list[IncomingHistoryEntry]:
    if raw in (None, ""):
        return []
    items = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    entries = [
        IncomingHistoryEntry(
            date=parse_datetime(item["date"]),
            quantity=int(item["quantity"]),
            total_order_quantity=int(item.get("totalOrderQuantity", 0)),
        )
        for item in items
    ]
    entries.sort(key=lambda e: e.date)
    return entries


class IncomingLedgerStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def load(self, shop: str) -> dict[int, TrackIncomingRecord]:
        query = text(
            """
            SELECT variant_id, product_id, inventory_item_id, incoming,
                   incoming_last_changed_at, incoming_history
            FROM track_incoming
            WHERE shop = :shop
            """
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query, {"shop": shop}).mappings().all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not load incoming ledger for {shop}: {exc}") from exc
        records: dict[int, TrackIncomingRecord] = {}
        for row in rows:
            changed_at = row["incoming_last_changed_at"]
            records[int(row["variant_id"])] = TrackIncomingRecord(
                shop=shop,
                variant_id=int(row["variant_id"]),
                product_id=int(row["product_id"]),
                inventory_item_id=row["inventory_item_id"],
                incoming=int(row["incoming"]),
                incoming_last_changed_at=parse_datetime(changed_at) if changed_at else None,
                history=_load_history(row["incoming_history"]),
            )
        return records

    def apply(self, changes: Iterable[LedgerChange]) -> LedgerSyncResult:
        """Write every change in its own transaction.

        Failed writes do not stop the others; they are reported together as a
        :class:`PersistenceError` once the batch has been attempted.
        """
        result = LedgerSyncResult()
        failures: list[tuple[Any, Exception]] = []
        for change in changes:
            if change.action is LedgerAction.UNCHANGED:
                continue
            try:
                with self.engine.begin() as conn:
                    if change.action is LedgerAction.DELETE:
                        self._delete(conn, change.shop, change.variant_id)
                        result.deleted += 1
                    elif change.record is not None:
                        self._upsert(conn, change.record)
                        result.upserted += 1
            except SQLAlchemyError as exc:
                logger.warning("Ledger %s failed for variant %s: %s", change.action.value, change.variant_id, exc)
                failures.append((change.variant_id, exc))
        if failures:
            raise PersistenceError(
                f"{len(failures)} incoming ledger writes failed", failures=failures
            )
        return result

    def _delete(self, conn, shop: str, variant_id: int) -> None:
        conn.execute(
            text("DELETE FROM track_incoming WHERE shop = :shop AND variant_id = :variant_id"),
            {"shop": shop, "variant_id": variant_id},
        )

    def _upsert(self, conn, record: TrackIncomingRecord) -> None:
        history_value = ":history" if conn.dialect.name == "sqlite" else "CAST(:history AS JSONB)"
        conn.execute(
            text(
                f"""
                INSERT INTO track_incoming (
                    shop, variant_id, product_id, inventory_item_id, incoming,
                    incoming_last_changed_at, incoming_history, updated_at
                )
                VALUES (
                    :shop, :variant_id, :product_id, :inventory_item_id, :incoming,
                    :changed_at, {history_value}, :updated_at
                )
                ON CONFLICT (shop, variant_id) DO UPDATE SET
                  product_id = EXCLUDED.product_id,
                  inventory_item_id = EXCLUDED.inventory_item_id,
                  incoming = EXCLUDED.incoming,
                  incoming_last_changed_at = EXCLUDED.incoming_last_changed_at,
                  incoming_history = EXCLUDED.incoming_history,
                  updated_at = EXCLUDED.updated_at
                """
            ),
            {
                "shop": record.shop,
                "variant_id": record.variant_id,
                "product_id": record.product_id,
                "inventory_item_id": record.inventory_item_id,
                "incoming": record.incoming,
                "changed_at": as_utc(record.incoming_last_changed_at).isoformat()
                if record.incoming_last_changed_at
                else None,
                "history": _dump_history(record.history),
                "updated_at": utc_now().isoformat(),
            },
        )
