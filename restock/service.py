"""Entry points: fetch, reconcile the incoming ledger, predict."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from restock.config import Settings
from restock.db.orders import OrderHistoryStore
from restock.errors import CredentialMissingError, PersistenceError, RemoteError
from restock.ingest.models import CatalogSnapshot, OrderLineFact, ShopCredential
from restock.ingest.shopify import CatalogFetcher, OrderFetcher, ShopifyClient
from restock.ledger.history import LedgerAction, TrackIncomingRecord, reconcile
from restock.ledger.store import IncomingLedgerStore
from restock.logic.policy import IncomingAwarePolicy, RestockPolicy
from restock.logic.predictions import PredictionRecord, RangeSummaryRecord, RestockPredictionEngine
from restock.logic.velocity import summarize_range, summarize_windows
from restock.utils.cache import CredentialCache
from restock.utils.dates import as_utc, utc_now, window_cutoff
from restock.utils.retry import RequestExecutor, RetryPolicy

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], ShopifyClient]


class RestockService:
    """Builds restock predictions for one shop at a time.

    Two overlapping runs for the same shop are not serialized here; callers
    that need that must hold a per-shop lock around these calls.
    """

    def __init__(
        self,
        credentials: CredentialCache[ShopCredential],
        *,
        ledger: IncomingLedgerStore | None = None,
        order_history: OrderHistoryStore | None = None,
        policy: RestockPolicy | None = None,
        settings: Settings | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.credentials = credentials
        self.ledger = ledger
        self.order_history = order_history
        self.settings = settings or Settings()
        self.engine = RestockPredictionEngine(policy=policy or IncomingAwarePolicy())
        self._client_factory = client_factory or self._default_client

    def _default_client(self, store: str, access_token: str) -> ShopifyClient:
        executor = RequestExecutor(
            RetryPolicy(
                max_retries=self.settings.retry_max_retries,
                initial_delay=self.settings.retry_initial_delay,
                max_delay=self.settings.retry_max_delay,
                jitter=0.25,
            )
        )
        return ShopifyClient(store, access_token, api_version=self.settings.api_version, executor=executor)

    async def generate_predictions(
        self,
        store: str,
        prediction_days: int | None = None,
        status: str | None = "active",
        *,
        skip_inventory: bool = False,
        now: datetime | None = None,
    ) -> list[PredictionRecord]:
        now = as_utc(now) if now else utc_now()
        days = self.settings.prediction_days if prediction_days is None else prediction_days
        windows = self.settings.sales_windows
        start = window_cutoff(max(windows), now)
        snapshot, facts = await self._fetch(store, status, start, now, skip_inventory=skip_inventory)
        records = await self._sync_ledger(store, snapshot, now)
        summaries = summarize_windows(snapshot.variants, facts, windows, now=now)
        predictions = self.engine.predict(snapshot.products, summaries, records, days, now=now)
        logger.info("Generated %s predictions for %s", len(predictions), store)
        return predictions

    async def generate_range_summary(
        self,
        store: str,
        start: datetime,
        end: datetime,
        status: str | None = "active",
        prediction_days: int | None = None,
        *,
        skip_inventory: bool = False,
        now: datetime | None = None,
    ) -> list[RangeSummaryRecord]:
        now = as_utc(now) if now else utc_now()
        start, end = as_utc(start), as_utc(end)
        if start > end:
            start, end = end, start
        days = self.settings.prediction_days if prediction_days is None else prediction_days
        snapshot, facts = await self._fetch(store, status, start, end, skip_inventory=skip_inventory)
        records = await self._sync_ledger(store, snapshot, now)
        summaries = summarize_range(snapshot.variants, facts, start, end)
        return self.engine.summarize_range(snapshot.products, summaries, records, start, end, days, now=now)

    async def _credential(self, store: str) -> ShopCredential:
        loop = asyncio.get_running_loop()
        credential = await loop.run_in_executor(None, self.credentials.get, store)
        if credential is None:
            raise CredentialMissingError(store)
        return credential

    async def _fetch(
        self,
        store: str,
        status: str | None,
        start: datetime,
        end: datetime,
        *,
        skip_inventory: bool = False,
    ) -> tuple[CatalogSnapshot, list[OrderLineFact]]:
        credential = await self._credential(store)
        client = self._client_factory(store, credential.access_token)
        try:
            catalog = CatalogFetcher(
                client,
                page_delay=self.settings.page_delay,
                inventory_batch_size=self.settings.inventory_batch_size,
                inventory_concurrency=self.settings.inventory_concurrency,
            )
            orders_task = asyncio.ensure_future(self._fetch_orders(client, store, start, end))
            try:
                snapshot = await catalog.fetch_all(status, skip_inventory=skip_inventory)
            except BaseException:
                orders_task.cancel()
                await asyncio.gather(orders_task, return_exceptions=True)
                raise
            facts = await orders_task
        finally:
            await client.close()
        return snapshot, facts

    async def _fetch_orders(
        self, client: ShopifyClient, store: str, start: datetime, end: datetime
    ) -> list[OrderLineFact]:
        try:
            facts = await OrderFetcher(client, page_delay=self.settings.page_delay).fetch_range(start, end)
        except RemoteError as exc:
            logger.warning("Order fetch failed for %s, predicting with zero sales: %s", store, exc)
            return []
        if self.order_history is not None:
            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(None, self.order_history.record, store, facts)
            except Exception as exc:  # pragma: no cover - storage is best effort
                logger.warning("Could not record order history for %s: %s", store, exc)
        return facts

    async def _sync_ledger(
        self, store: str, snapshot: CatalogSnapshot, now: datetime
    ) -> dict[int, TrackIncomingRecord]:
        if self.ledger is None:
            return {}
        loop = asyncio.get_running_loop()
        try:
            existing = await loop.run_in_executor(None, self.ledger.load, store)
        except PersistenceError as exc:
            logger.warning("Skipping incoming ledger sync for %s: %s", store, exc)
            return {}
        if not snapshot.inventory_resolved:
            return existing

        changes = [reconcile(store, v, existing.get(v.id), now=now) for v in snapshot.variants]
        records = dict(existing)
        for change in changes:
            if change.action is LedgerAction.DELETE:
                records.pop(change.variant_id, None)
            elif change.action is LedgerAction.UPSERT and change.record is not None:
                records[change.variant_id] = change.record
        try:
            result = await loop.run_in_executor(None, self.ledger.apply, changes)
        except PersistenceError as exc:
            logger.warning("Incoming ledger sync for %s incomplete, will retry next sync: %s", store, exc)
        else:
            logger.info(
                "Incoming ledger for %s: %s upserted, %s deleted", store, result.upserted, result.deleted
            )
        return records
