"""Seed shop credentials for the shops listed in shops.yml.

Tokens come from ``SHOPIFY_TOKEN_<SHOP>`` environment variables, where
``<SHOP>`` is the myshopify subdomain upper-cased with dashes as underscores.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from restock.db.session import create_engine_from_env
from restock.db.shops import ShopStore
from restock.ingest import load_shops
from restock.ingest.models import ShopCredential

logger = logging.getLogger(__name__)


def token_variable(shop: str) -> str:
    return "SHOPIFY_TOKEN_" + shop.split(".")[0].upper().replace("-", "_")


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    store = ShopStore(create_engine_from_env())
    for shop in load_shops():
        token = os.environ.get(token_variable(shop.shop))
        if not token:
            logger.warning("No %s set, skipping %s", token_variable(shop.shop), shop.shop)
            continue
        store.upsert_shop(ShopCredential(shop=shop.shop, access_token=token, scopes=os.environ.get("SHOPIFY_SCOPES")))


if __name__ == "__main__":
    main()
