from restock.db.shops import ShopStore
from restock.ingest.models import ShopCredential
from restock.utils.cache import CredentialCache


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_cache_hits_within_ttl_and_reloads_after():
    calls = []
    clock = Clock()

    def loader(store):
        calls.append(store)
        return f"token-{len(calls)}"

    cache = CredentialCache(loader, ttl=300, clock=clock)
    assert cache.get("a") == "token-1"
    clock.now = 299
    assert cache.get("a") == "token-1"
    clock.now = 301
    assert cache.get("a") == "token-2"
    assert calls == ["a", "a"]


def test_missing_credentials_are_not_cached():
    results = iter([None, "token"])
    cache = CredentialCache(lambda store: next(results))
    assert cache.get("a") is None
    assert cache.get("a") == "token"


def test_invalidate_forces_reload():
    calls = []
    cache = CredentialCache(lambda store: calls.append(store) or len(calls))
    cache.get("a")
    cache.get("b")
    cache.invalidate("a")
    assert cache.get("a") == 3
    assert cache.get("b") == 2
    cache.clear()
    assert cache.get("b") == 4


def test_upsert_shop_invalidates_cache(seeded_engine):
    store = ShopStore(seeded_engine)
    cache = CredentialCache(store.get_access_credential)
    assert cache.get("hexco.myshopify.com").access_token == "shpat_test"

    store.upsert_shop(ShopCredential(shop="hexco.myshopify.com", access_token="shpat_new"), cache=cache)

    assert cache.get("hexco.myshopify.com").access_token == "shpat_new"
    assert store.get_access_credential("unknown.myshopify.com") is None
    assert store.list_shops() == ["hexco.myshopify.com"]
