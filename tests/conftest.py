from datetime import datetime, timezone

import pytest
from sqlalchemy import Column, Integer, MetaData, Table, Text, UniqueConstraint, create_engine
from sqlalchemy.pool import StaticPool

from restock.ingest.models import Product, ShopCredential, Variant

metadata = MetaData()

shops = Table(
    "shops",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("shop", Text, nullable=False, unique=True),
    Column("access_token", Text, nullable=False),
    Column("scopes", Text),
)

track_incoming = Table(
    "track_incoming",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("shop", Text, nullable=False),
    Column("variant_id", Integer, nullable=False),
    Column("product_id", Integer, nullable=False),
    Column("inventory_item_id", Integer),
    Column("incoming", Integer, nullable=False),
    Column("incoming_last_changed_at", Text),
    Column("incoming_history", Text, nullable=False, default="[]"),
    Column("updated_at", Text),
    UniqueConstraint("shop", "variant_id"),
)

order_history = Table(
    "order_history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("shop", Text, nullable=False),
    Column("order_id", Integer, nullable=False),
    Column("order_number", Text, nullable=False),
    Column("order_created_at", Text, nullable=False),
    Column("financial_status", Text),
    Column("fulfillment_status", Text),
    Column("product_id", Integer),
    Column("product_name", Text),
    Column("variant_id", Integer),
    Column("variant_title", Text),
    Column("quantity", Integer, nullable=False),
    Column("dedupe_key", Text, nullable=False),
    UniqueConstraint("shop", "dedupe_key"),
)

STORE = "hexco.myshopify.com"
ENDPOINT = f"https://{STORE}/admin/api/2025-10/graphql.json"
NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def seeded_engine(engine):
    with engine.begin() as conn:
        conn.execute(shops.insert(), [{"shop": STORE, "access_token": "shpat_test", "scopes": "read_products"}])
    return engine


@pytest.fixture()
def credential():
    return ShopCredential(shop=STORE, access_token="shpat_test")


def make_variant(variant_id=11, product_id=1, *, available=0, incoming=0, **kwargs):
    return Variant(
        id=variant_id,
        product_id=product_id,
        title=kwargs.pop("title", f"Variant {variant_id}"),
        available=available,
        incoming=incoming,
        **kwargs,
    )


def make_product(product_id=1, variants=None, title="Alpha Serum"):
    return Product(id=product_id, title=title, variants=list(variants or []))


def page(connection, nodes, *, has_next=False, cursor=None):
    """GraphQL body for a single connection page."""
    return {
        "data": {
            connection: {
                "edges": [{"cursor": f"c{i}", "node": node} for i, node in enumerate(nodes)],
                "pageInfo": {"hasNextPage": has_next, "endCursor": cursor},
            }
        }
    }


def product_node(product_id, variants, *, has_more_variants=False, cursor=None):
    return {
        "id": f"gid://shopify/Product/{product_id}",
        "title": f"Product {product_id}",
        "productType": "Skincare",
        "status": "ACTIVE",
        "featuredImage": {"url": f"https://cdn.example.com/{product_id}.png"},
        "variants": {
            "edges": [{"node": v} for v in variants],
            "pageInfo": {"hasNextPage": has_more_variants, "endCursor": cursor},
        },
    }


def variant_node(variant_id, item_id, quantity=0):
    return {
        "id": f"gid://shopify/ProductVariant/{variant_id}",
        "title": f"Size {variant_id}",
        "price": "19.00",
        "sku": f"SKU-{variant_id}",
        "inventoryQuantity": quantity,
        "inventoryItem": {"id": f"gid://shopify/InventoryItem/{item_id}"},
        "image": None,
    }


def inventory_node(item_id, *levels):
    return {
        "id": f"gid://shopify/InventoryItem/{item_id}",
        "inventoryLevels": {
            "edges": [
                {"node": {"quantities": [{"name": k, "quantity": v} for k, v in level.items()], "location": {"id": "gid://shopify/Location/1"}}}
                for level in levels
            ]
        },
    }


def order_node(order_id, created_at, line_items):
    return {
        "id": f"gid://shopify/Order/{order_id}",
        "name": f"#{order_id}",
        "createdAt": created_at,
        "displayFinancialStatus": "PAID",
        "displayFulfillmentStatus": "FULFILLED",
        "lineItems": {
            "edges": [
                {
                    "node": {
                        "name": f"Product {product_id}",
                        "quantity": quantity,
                        "variantTitle": f"Size {variant_id}",
                        "variant": {"id": f"gid://shopify/ProductVariant/{variant_id}"},
                        "product": {"id": f"gid://shopify/Product/{product_id}"},
                    }
                }
                for product_id, variant_id, quantity in line_items
            ]
        },
    }
