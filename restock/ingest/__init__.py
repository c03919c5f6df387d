"""Ingestion helpers."""

from __future__ import annotations

import os
import pathlib

import yaml

from restock.ingest.models import ShopConfig

SHOPS_PATH = pathlib.Path(os.environ.get("SHOPS_PATH", pathlib.Path(__file__).with_name("shops.yml")))


def load_shops(limit: int | None = None, *, path: pathlib.Path | None = None) -> list[ShopConfig]:
    data = yaml.safe_load((path or SHOPS_PATH).read_text()) or []
    shops = [ShopConfig(**item) for item in data]
    if limit:
        return shops[:limit]
    return shops
