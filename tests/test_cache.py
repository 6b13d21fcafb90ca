import pytest

from restcompose import MISSING, CompositeCacheAdapter, InMemoryCacheAdapter, RequestCache, generate_cache_key
from restcompose.core.cache_key import hash_fields, normalize_body
from restcompose.runtime.context import RequestContextService, create_context


# =============================================================================
# Fingerprint
# =============================================================================


def test_path_only_key():
    assert generate_cache_key("/users/me") == "/users/me"
    assert generate_cache_key("/users/me", {}, [], {}) == "/users/me"


def test_key_shape():
    key = generate_cache_key("/users", {"a": 1}, ["id"])
    path, body_hash, field_hash = key.split(":")

    assert path == "/users"
    assert len(body_hash) == 8 and len(field_hash) == 8
    assert all(c in "0123456789abcdef" for c in body_hash + field_hash)


def test_key_order_insensitive():
    a = generate_cache_key("/s", {"b": {"y": 1, "x": 2}, "a": 1}, ["name", "id"], {"p": 1, "q": 2})
    b = generate_cache_key("/s", {"a": 1, "b": {"x": 2, "y": 1}}, ["id", "name"], {"q": 2, "p": 1})

    assert a == b


def test_key_order_insensitive_inside_lists():
    a = generate_cache_key("/p", {"items": [{"a": 1, "b": 2}, {"c": {"y": 1, "x": None, "w": 2}}]})
    b = generate_cache_key("/p", {"items": [{"b": 2, "a": 1}, {"c": {"w": 2, "y": 1}}]})

    assert a == b
    assert a != generate_cache_key("/p", {"items": [{"c": {"w": 2, "y": 1}}, {"b": 2, "a": 1}]})


def test_params_and_body_are_interchangeable():
    assert generate_cache_key("/s", {"id": "42"}) == generate_cache_key("/s", None, None, {"id": "42"})


def test_directive_and_none_values_ignored():
    assert generate_cache_key("/s", {"@fields": ["id"], "x": None, "y": 1}) == generate_cache_key("/s", {"y": 1})


def test_fields_change_key():
    assert generate_cache_key("/s", {"y": 1}, ["id"]) != generate_cache_key("/s", {"y": 1}, ["name"])


def test_normalize_body_recurses():
    assert normalize_body({"b": {"d": None, "c": 1}, "a": [3, 1]}) == {"a": [3, 1], "b": {"c": 1}}
    assert list(normalize_body({"l": [{"z": 1, "a": None, "b": 2}]})["l"][0]) == ["b", "z"]
    assert hash_fields(None) == ""


# =============================================================================
# RequestCache
# =============================================================================


@pytest.mark.asyncio
async def test_missing_is_distinct_from_none():
    cache = RequestCache({})

    assert await cache.get("k") is MISSING
    await cache.set("k", None)
    assert await cache.get("k") is None
    assert await cache.has("k")


@pytest.mark.asyncio
async def test_adapter_hit_backfills_store():
    adapter = InMemoryCacheAdapter()
    adapter.set("k", {"v": 1})
    store = {}
    cache = RequestCache(store, adapter=adapter)

    assert await cache.get("k") == {"v": 1}
    assert store == {"k": {"v": 1}}


@pytest.mark.asyncio
async def test_set_writes_through_to_async_adapter():
    class AsyncAdapter:
        def __init__(self):
            self.data = {}

        async def get(self, key):
            return self.data.get(key)

        async def set(self, key, value):
            self.data[key] = value

        async def has(self, key):
            return key in self.data

    adapter = AsyncAdapter()
    cache = RequestCache({}, adapter=adapter)

    await cache.set("k", 1)
    assert adapter.data == {"k": 1}

    cache.clear()
    assert len(cache) == 0
    assert await cache.has("k")
    assert await cache.get("k") == 1


@pytest.mark.asyncio
async def test_adapter_errors_are_misses():
    class Broken:
        def get(self, key):
            raise ConnectionError("down")

        def set(self, key, value):
            raise ConnectionError("down")

        def has(self, key):
            raise ConnectionError("down")

    cache = RequestCache({}, adapter=Broken())

    assert await cache.get("k") is MISSING
    await cache.set("k", 1)
    assert await cache.get("k") == 1


@pytest.mark.asyncio
async def test_delete_reaches_adapter():
    adapter = InMemoryCacheAdapter()
    cache = RequestCache({}, adapter=adapter)
    await cache.set("k", 1)

    await cache.delete("k")

    assert cache.size() == 0
    assert not adapter.has("k")


@pytest.mark.asyncio
async def test_default_store_is_active_context_cache():
    contexts = RequestContextService()
    context = create_context(request_id="r1")

    async def work():
        cache = RequestCache()
        await cache.set("k", 1)
        return dict(context.cache)

    seen = await contexts.run_async(context, work)

    assert seen == {"k": 1}
    assert context.cache == {}


@pytest.mark.asyncio
async def test_composite_adapter_backfills_other_layers():
    first, second = InMemoryCacheAdapter(), InMemoryCacheAdapter()
    second.set("k", "v")
    composite = CompositeCacheAdapter([first, second])

    assert await composite.get("k") == "v"
    assert first.get("k") == "v"

    await composite.set("n", 2)
    assert first.get("n") == 2 and second.get("n") == 2
    assert await composite.has("n")

    await composite.delete("n")
    assert not await composite.has("n")

    await composite.clear()
    assert await composite.get("k") is None
