"""Append-only order line history."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from sqlalchemy.engine import Engine
from sqlalchemy.sql import text

from restock.ingest.models import OrderLineFact
from restock.utils.dates import as_utc, parse_datetime, utc_now

logger = logging.getLogger(__name__)


class OrderHistoryStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def record(self, shop: str, facts: Iterable[OrderLineFact]) -> int:
        rows = [
            {
                "shop": shop,
                "order_id": fact.order_id,
                "order_number": fact.order_number,
                "order_created_at": as_utc(fact.created_at).isoformat(),
                "financial_status": fact.financial_status,
                "fulfillment_status": fact.fulfillment_status,
                "product_id": fact.product_id,
                "product_name": fact.product_name,
                "variant_id": fact.variant_id,
                "variant_title": fact.variant_title,
                "quantity": fact.quantity,
                "dedupe_key": fact.dedupe_key,
            }
            for fact in facts
        ]
        if not rows:
            return 0
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    """
                    INSERT INTO order_history (
                        shop, order_id, order_number, order_created_at, financial_status,
                        fulfillment_status, product_id, product_name, variant_id,
                        variant_title, quantity, dedupe_key
                    )
                    VALUES (
                        :shop, :order_id, :order_number, :order_created_at, :financial_status,
                        :fulfillment_status, :product_id, :product_name, :variant_id,
                        :variant_title, :quantity, :dedupe_key
                    )
                    ON CONFLICT (shop, dedupe_key) DO NOTHING
                    """
                ),
                rows,
            )
        logger.info("Recorded %s order lines for %s", len(rows), shop)
        return len(rows)

    def load_range(self, shop: str, start: datetime, end: datetime) -> list[OrderLineFact]:
        start, end = as_utc(start), as_utc(end)
        if start > end:
            start, end = end, start
        query = text(
            """
            SELECT order_id, order_number, order_created_at, financial_status, fulfillment_status,
                   product_id, product_name, variant_id, variant_title, quantity
            FROM order_history
            WHERE shop = :shop AND order_created_at >= :start AND order_created_at <= :end
            ORDER BY order_created_at
            """
        )
        with self.engine.connect() as conn:
            rows = conn.execute(
                query, {"shop": shop, "start": start.isoformat(), "end": end.isoformat()}
            ).mappings().all()
        return [
            OrderLineFact(
                order_id=row["order_id"],
                order_number=row["order_number"],
                created_at=parse_datetime(row["order_created_at"]),
                financial_status=row["financial_status"],
                fulfillment_status=row["fulfillment_status"],
                product_id=row["product_id"],
                product_name=row["product_name"],
                variant_id=row["variant_id"],
                variant_title=row["variant_title"],
                quantity=row["quantity"],
            )
            for row in rows
        ]

    def prune(self, retention_days: int, *, now: datetime | None = None) -> int:
        cutoff = (as_utc(now) if now else utc_now()).subtract(days=retention_days)
        with self.engine.begin() as conn:
            result = conn.execute(
                text("DELETE FROM order_history WHERE order_created_at < :cutoff"),
                {"cutoff": cutoff.isoformat()},
            )
        logger.info("Pruned %s order lines older than %s", result.rowcount, cutoff.date())
        return result.rowcount
