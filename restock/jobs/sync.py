"""Scheduled catalog sync: refresh predictions and the incoming ledger per shop."""

from __future__ import annotations

import asyncio
import logging
import os

from dotenv import load_dotenv

from restock.config import Settings
from restock.db.orders import OrderHistoryStore
from restock.db.session import create_engine_from_env
from restock.db.shops import ShopStore
from restock.errors import CredentialMissingError, RemoteError
from restock.ingest import load_shops
from restock.ledger.store import IncomingLedgerStore
from restock.service import RestockService
from restock.utils.cache import CredentialCache
from restock.utils.dates import utc_now

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def run_sync() -> dict[str, int]:
    """Run predictions for every configured shop; returns prediction counts by shop."""
    load_dotenv()
    _configure_logging()
    settings = Settings.from_env()
    engine = create_engine_from_env()
    shops = ShopStore(engine)
    service = RestockService(
        CredentialCache(shops.get_access_credential, ttl=settings.credential_cache_ttl),
        ledger=IncomingLedgerStore(engine),
        order_history=OrderHistoryStore(engine),
        settings=settings,
    )
    configured = load_shops()
    counts: dict[str, int] = {}
    for shop in configured:
        try:
            predictions = await service.generate_predictions(
                shop.shop, shop.prediction_days, shop.status, skip_inventory=shop.skip_inventory
            )
        except CredentialMissingError as exc:
            logger.warning("Skipping %s: %s", shop.shop, exc)
            continue
        except RemoteError as exc:
            logger.warning("Catalog sync failed for %s: %s", shop.shop, exc)
            continue
        counts[shop.shop] = len(predictions)
    logger.info("Synced %s of %s shops", len(counts), len(configured))
    return counts


def run_prune() -> int:
    load_dotenv()
    _configure_logging()
    settings = Settings.from_env()
    store = OrderHistoryStore(create_engine_from_env())
    return store.prune(settings.order_retention_days, now=utc_now())


if __name__ == "__main__":
    asyncio.run(run_sync())
