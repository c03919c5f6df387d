"""Shop credential lookups."""

from __future__ import annotations

import logging

from sqlalchemy.engine import Engine
from sqlalchemy.sql import text

from restock.ingest.models import ShopCredential
from restock.utils.cache import CredentialCache

logger = logging.getLogger(__name__)


class ShopStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def get_access_credential(self, shop: str) -> ShopCredential | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                text("SELECT shop, access_token, scopes FROM shops WHERE shop = :shop"),
                {"shop": shop},
            ).mappings().first()
        if not row or not row["access_token"]:
            return None
        return ShopCredential(shop=row["shop"], access_token=row["access_token"], scopes=row["scopes"])

    def upsert_shop(
        self,
        credential: ShopCredential,
        *,
        cache: CredentialCache[ShopCredential] | None = None,
    ) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    """
                    INSERT INTO shops (shop, access_token, scopes)
                    VALUES (:shop, :access_token, :scopes)
                    ON CONFLICT (shop) DO UPDATE SET
                      access_token = EXCLUDED.access_token,
                      scopes = EXCLUDED.scopes
                    """
                ),
                {"shop": credential.shop, "access_token": credential.access_token, "scopes": credential.scopes},
            )
        if cache is not None:
            cache.invalidate(credential.shop)
        logger.info("Stored credential for %s", credential.shop)

    def list_shops(self) -> list[str]:
        with self.engine.connect() as conn:
            return [row[0] for row in conn.execute(text("SELECT shop FROM shops ORDER BY shop"))]
