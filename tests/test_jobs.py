from datetime import timedelta

import pytest

from conftest import NOW, STORE
from restock.db.orders import OrderHistoryStore
from restock.errors import RemoteProtocolError
from restock.ingest.models import OrderLineFact, ShopConfig
from restock.jobs import sync
from restock.service import RestockService


@pytest.fixture()
def job_env(monkeypatch, seeded_engine):
    monkeypatch.setattr(sync, "create_engine_from_env", lambda: seeded_engine)
    monkeypatch.setattr(
        sync,
        "load_shops",
        lambda: [ShopConfig(shop=STORE), ShopConfig(shop="missing.myshopify.com", skip_inventory=True), ShopConfig(shop="down.myshopify.com")],
    )
    return seeded_engine


@pytest.mark.asyncio
async def test_run_sync_skips_failing_shops(job_env, monkeypatch):
    seen = []

    async def fake_generate(self, store, prediction_days=None, status="active", *, skip_inventory=False, now=None):
        seen.append((store, prediction_days, status, skip_inventory))
        if store == "down.myshopify.com":
            raise RemoteProtocolError("HTTP 500 from API")
        await self._credential(store)
        return ["a", "b"]

    monkeypatch.setattr(RestockService, "generate_predictions", fake_generate)

    counts = await sync.run_sync()

    assert counts == {STORE: 2}
    assert [s[0] for s in seen] == [STORE, "missing.myshopify.com", "down.myshopify.com"]
    assert seen[0][1:] == (15, "active", False)
    assert seen[1][3] is True


def test_run_prune_uses_retention(job_env, monkeypatch):
    monkeypatch.setenv("ORDER_RETENTION_DAYS", "30")
    monkeypatch.setattr(sync, "utc_now", lambda: NOW)
    store = OrderHistoryStore(job_env)
    facts = [
        OrderLineFact(
            order_id=order_id,
            order_number=f"#{order_id}",
            created_at=NOW - timedelta(days=age),
            financial_status="PAID",
            fulfillment_status=None,
            product_id=1,
            product_name="Alpha Serum",
            variant_id=11,
            variant_title=None,
            quantity=1,
        )
        for order_id, age in ((1, 45), (2, 10))
    ]
    store.record(STORE, facts)

    assert sync.run_prune() == 1
