"""Shopify Admin GraphQL ingestion: catalog, inventory levels and orders."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime
from typing import Any

import httpx

from restock.config import DEFAULT_API_VERSION
from restock.ingest.models import CatalogSnapshot, OrderLineFact, Product, Variant
from restock.utils.dates import as_utc, parse_datetime
from restock.utils.pool import BoundedPool
from restock.utils.retry import RequestExecutor

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 250
VARIANT_PAGE_SIZE = 100
QUANTITY_NAMES = ("available", "incoming", "committed", "on_hand")

VARIANT_FIELDS = """
    id
    title
    price
    sku
    inventoryQuantity
    inventoryItem { id }
    image { url }
"""

PRODUCTS_QUERY = f"""
query ($first: Int!, $after: String, $query: String) {{
  products(first: $first, after: $after, query: $query) {{
    edges {{
      cursor
      node {{
        id
        title
        productType
        status
        featuredImage {{ url }}
        variants(first: {VARIANT_PAGE_SIZE}) {{
          edges {{ node {{ {VARIANT_FIELDS} }} }}
          pageInfo {{ hasNextPage endCursor }}
        }}
      }}
    }}
    pageInfo {{ hasNextPage endCursor }}
  }}
}}
"""

PRODUCT_VARIANTS_QUERY = f"""
query ($id: ID!, $first: Int!, $after: String) {{
  product(id: $id) {{
    variants(first: $first, after: $after) {{
      edges {{ cursor node {{ {VARIANT_FIELDS} }} }}
      pageInfo {{ hasNextPage endCursor }}
    }}
  }}
}}
"""

INVENTORY_QUERY = """
query ($ids: [ID!]!) {
  nodes(ids: $ids) {
    ... on InventoryItem {
      id
      inventoryLevels(first: 50) {
        edges {
          node {
            quantities(names: ["available", "incoming", "committed", "on_hand"]) { name quantity }
            location { id }
          }
        }
        pageInfo { hasNextPage }
      }
    }
  }
}
"""

ORDERS_QUERY = """
query ($first: Int!, $after: String, $query: String) {
  orders(first: $first, after: $after, query: $query, sortKey: CREATED_AT) {
    edges {
      cursor
      node {
        id
        name
        createdAt
        displayFinancialStatus
        displayFulfillmentStatus
        lineItems(first: 250) {
          edges {
            node {
              name
              quantity
              variantTitle
              variant { id }
              product { id }
            }
          }
          pageInfo { hasNextPage }
        }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

Sleep = Callable[[float], Awaitable[Any]]


def extract_id(gid: str | int | None) -> int | None:
    if gid in (None, ""):
        return None
    try:
        return int(str(gid).rsplit("/", 1)[-1])
    except ValueError:
        return None


def to_gid(kind: str, value: int) -> str:
    return f"gid://shopify/{kind}/{value}"


def _edges(connection: dict[str, Any] | None) -> list[dict[str, Any]]:
    return [edge["node"] for edge in (connection or {}).get("edges") or [] if edge.get("node")]


def _truncated(connection: dict[str, Any] | None) -> bool:
    return bool(((connection or {}).get("pageInfo") or {}).get("hasNextPage"))


class ShopifyClient:
    """GraphQL transport bound to one shop."""

    def __init__(
        self,
        store: str,
        access_token: str,
        *,
        api_version: str = DEFAULT_API_VERSION,
        session: httpx.AsyncClient | None = None,
        executor: RequestExecutor | None = None,
    ) -> None:
        self.store = store
        self.endpoint = f"https://{store}/admin/api/{api_version}/graphql.json"
        self._headers = {"X-Shopify-Access-Token": access_token, "Content-Type": "application/json"}
        self._owns_session = session is None
        self._session = session or httpx.AsyncClient(timeout=30.0, headers={"User-Agent": "RestockAdvisor/1.0"})
        self.executor = executor or RequestExecutor()

    async def close(self) -> None:
        if self._owns_session:
            await self._session.aclose()

    async def query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        body = {"query": query, "variables": variables or {}}
        payload = await self.executor.execute(
            lambda: self._session.post(self.endpoint, json=body, headers=self._headers)
        )
        return payload.get("data") or {}

    async def paginate(
        self,
        query: str,
        path: tuple[str, ...],
        variables: dict[str, Any],
        *,
        page_delay: float = 0.0,
        sleep: Sleep = asyncio.sleep,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield the nodes of a connection one page at a time.

        Pages are requested strictly in sequence since each cursor comes from
        the previous response.
        """
        after: str | None = variables.get("after")
        while True:
            data = await self.query(query, {**variables, "after": after})
            connection: Any = data
            for key in path:
                connection = (connection or {}).get(key)
            connection = connection or {}
            yield _edges(connection)
            page_info = connection.get("pageInfo") or {}
            after = page_info.get("endCursor")
            if not page_info.get("hasNextPage") or not after:
                return
            if page_delay:
                await sleep(page_delay)


def _variant_from_node(node: dict[str, Any], product_id: int) -> Variant:
    inventory_item = node.get("inventoryItem") or {}
    image = node.get("image") or {}
    return Variant(
        id=extract_id(node.get("id")) or 0,
        product_id=product_id,
        title=node.get("title") or "",
        sku=node.get("sku"),
        price=node.get("price"),
        image_url=image.get("url") or "",
        inventory_item_id=extract_id(inventory_item.get("id")),
        inventory_quantity=int(node.get("inventoryQuantity") or 0),
    )


def _product_from_node(node: dict[str, Any]) -> Product:
    product_id = extract_id(node.get("id")) or 0
    featured = node.get("featuredImage") or {}
    return Product(
        id=product_id,
        title=node.get("title") or "",
        product_type=node.get("productType"),
        status=node.get("status"),
        image_url=featured.get("url") or "",
        variants=[_variant_from_node(v, product_id) for v in _edges(node.get("variants"))],
    )


def status_query(status_filter: str | None) -> str | None:
    if not status_filter or status_filter.lower() == "any":
        return None
    return f"status:{status_filter}"


class CatalogFetcher:
    def __init__(
        self,
        client: ShopifyClient,
        *,
        page_size: int = MAX_PAGE_SIZE,
        page_delay: float = 0.1,
        inventory_batch_size: int = 50,
        inventory_concurrency: int = 2,
        requeue_delay: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.page_size = min(page_size, MAX_PAGE_SIZE)
        self.page_delay = page_delay
        self.inventory_batch_size = inventory_batch_size
        self.inventory_concurrency = inventory_concurrency
        self.requeue_delay = requeue_delay
        self._sleep = sleep

    async def fetch_all(self, status_filter: str | None = "active", *, skip_inventory: bool = False) -> CatalogSnapshot:
        products: list[Product] = []
        overflow: list[tuple[Product, str]] = []
        pages = 0
        variables = {"first": self.page_size, "query": status_query(status_filter)}
        async for nodes in self.client.paginate(
            PRODUCTS_QUERY, ("products",), variables, page_delay=self.page_delay, sleep=self._sleep
        ):
            pages += 1
            for node in nodes:
                product = _product_from_node(node)
                page_info = (node.get("variants") or {}).get("pageInfo") or {}
                if page_info.get("hasNextPage") and page_info.get("endCursor"):
                    overflow.append((product, page_info["endCursor"]))
                products.append(product)
            logger.info("Fetched catalog page %s for %s (%s products so far)", pages, self.client.store, len(products))

        if overflow:
            await self._fetch_remaining_variants(overflow)

        snapshot = CatalogSnapshot(products=products, inventory_resolved=not skip_inventory)
        if skip_inventory:
            for variant in snapshot.variants:
                variant.available = variant.inventory_quantity
                variant.on_hand = variant.inventory_quantity
                variant.incoming = 0
                variant.committed = 0
            return snapshot
        await self._resolve_inventory(snapshot.variants)
        return snapshot

    async def _fetch_remaining_variants(self, overflow: list[tuple[Product, str]]) -> None:
        logger.info("Fetching remaining variants for %s products", len(overflow))
        pool: BoundedPool[tuple[Product, str], None] = BoundedPool(
            1, self.inventory_concurrency, requeue_delay=self.requeue_delay, sleep=self._sleep
        )

        async def worker(batch: list[tuple[Product, str]]) -> None:
            for product, cursor in batch:
                extra: list[Variant] = []
                variables = {"id": to_gid("Product", product.id), "first": VARIANT_PAGE_SIZE, "after": cursor}
                async for nodes in self.client.paginate(
                    PRODUCT_VARIANTS_QUERY, ("product", "variants"), variables,
                    page_delay=self.page_delay, sleep=self._sleep,
                ):
                    extra.extend(_variant_from_node(node, product.id) for node in nodes)
                product.variants.extend(extra)

        await pool.run(overflow, worker)

    async def _resolve_inventory(self, variants: list[Variant]) -> None:
        item_ids = list(dict.fromkeys(v.inventory_item_id for v in variants if v.inventory_item_id))
        quantities: dict[int, dict[str, int]] = {}
        if item_ids:
            pool: BoundedPool[int, dict[int, dict[str, int]]] = BoundedPool(
                self.inventory_batch_size,
                self.inventory_concurrency,
                requeue_delay=self.requeue_delay,
                sleep=self._sleep,
            )
            for result in await pool.run(item_ids, self._fetch_inventory_batch):
                quantities.update(result)
            logger.info("Resolved inventory for %s of %s items", len(quantities), len(item_ids))
        for variant in variants:
            levels = quantities.get(variant.inventory_item_id or 0, {})
            variant.available = levels.get("available", 0)
            variant.incoming = levels.get("incoming", 0)
            variant.committed = levels.get("committed", 0)
            variant.on_hand = levels.get("on_hand", 0)

    async def _fetch_inventory_batch(self, item_ids: list[int]) -> dict[int, dict[str, int]]:
        data = await self.client.query(INVENTORY_QUERY, {"ids": [to_gid("InventoryItem", i) for i in item_ids]})
        result: dict[int, dict[str, int]] = {}
        for node in data.get("nodes") or []:
            if not node:
                continue
            item_id = extract_id(node.get("id"))
            if item_id is None:
                continue
            if _truncated(node.get("inventoryLevels")):
                logger.warning("Inventory item %s has more locations than one page; extra locations ignored", item_id)
            totals = dict.fromkeys(QUANTITY_NAMES, 0)
            for level in _edges(node.get("inventoryLevels")):
                for quantity in level.get("quantities") or []:
                    if quantity.get("name") in totals:
                        totals[quantity["name"]] += int(quantity.get("quantity") or 0)
            result[item_id] = totals
        return result


def _facts_from_order(node: dict[str, Any]) -> list[OrderLineFact]:
    order_id = extract_id(node.get("id")) or 0
    created_at = parse_datetime(node["createdAt"])
    if _truncated(node.get("lineItems")):
        logger.warning("Order %s has more line items than one page; extra items ignored", order_id)
    facts: list[OrderLineFact] = []
    for item in _edges(node.get("lineItems")):
        facts.append(
            OrderLineFact(
                order_id=order_id,
                order_number=node.get("name") or "",
                created_at=created_at,
                financial_status=node.get("displayFinancialStatus"),
                fulfillment_status=node.get("displayFulfillmentStatus"),
                product_id=extract_id((item.get("product") or {}).get("id")),
                product_name=item.get("name") or "",
                variant_id=extract_id((item.get("variant") or {}).get("id")),
                variant_title=item.get("variantTitle"),
                quantity=max(0, int(item.get("quantity") or 0)),
            )
        )
    return facts


def _search_timestamp(value: datetime) -> str:
    return as_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


class OrderFetcher:
    def __init__(
        self,
        client: ShopifyClient,
        *,
        page_size: int = MAX_PAGE_SIZE,
        page_delay: float = 0.1,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.page_size = min(page_size, MAX_PAGE_SIZE)
        self.page_delay = page_delay
        self._sleep = sleep

    async def fetch_range(self, start: datetime, end: datetime) -> list[OrderLineFact]:
        if start > end:
            start, end = end, start
        search = f"created_at:>='{_search_timestamp(start)}' AND created_at:<='{_search_timestamp(end)}'"
        facts: list[OrderLineFact] = []
        orders = 0
        async for nodes in self.client.paginate(
            ORDERS_QUERY, ("orders",), {"first": self.page_size, "query": search},
            page_delay=self.page_delay, sleep=self._sleep,
        ):
            orders += len(nodes)
            for node in nodes:
                facts.extend(_facts_from_order(node))
        logger.info("Fetched %s orders (%s line items) for %s", orders, len(facts), self.client.store)
        return facts
