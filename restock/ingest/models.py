"""Ingestion data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(slots=True)
class ShopConfig:
    shop: str
    prediction_days: int = 15
    status: str = "active"
    skip_inventory: bool = False


@dataclass(slots=True)
class ShopCredential:
    shop: str
    access_token: str
    scopes: str | None = None


@dataclass(slots=True)
class Variant:
    id: int
    product_id: int
    title: str
    sku: str | None = None
    price: str | None = None
    image_url: str = ""
    inventory_item_id: int | None = None
    inventory_quantity: int = 0
    available: int = 0
    incoming: int = 0
    committed: int = 0
    on_hand: int = 0


@dataclass(slots=True)
class Product:
    id: int
    title: str
    product_type: str | None = None
    status: str | None = None
    image_url: str = ""
    variants: list[Variant] = field(default_factory=list)


@dataclass(slots=True)
class CatalogSnapshot:
    products: list[Product]
    inventory_resolved: bool = True

    @property
    def variants(self) -> list[Variant]:
        return [variant for product in self.products for variant in product.variants]


@dataclass(slots=True)
class OrderLineFact:
    order_id: int
    order_number: str
    created_at: datetime
    financial_status: str | None
    fulfillment_status: str | None
    product_id: int | None
    product_name: str
    variant_id: int | None
    variant_title: str | None
    quantity: int

    @property
    def dedupe_key(self) -> str:
        return f"{self.order_id}_{self.variant_id}_{self.product_id}_{self.product_name}"
