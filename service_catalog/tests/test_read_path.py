"""
Unit tests for the cache-aside read path.
"""

import asyncio
import json

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.errors import NotFoundError, StoreError
from service_catalog.app.cache.keys import (
    ByCategory, ByPriceRange, ListAll, SearchByName, build_key
)
from service_catalog.app.cache.read_path import CacheAsideReader

TTL_SECONDS = 3600


def names(foods):
    return sorted(food.name for food in foods)


class TestCacheAsideReader:
    """Test cases for CacheAsideReader."""

    @pytest.mark.asyncio
    async def test_miss_queries_store_and_populates_cache(self, reader, cache, store, clock):
        """A miss reads the store and caches the result with the fixed TTL."""
        foods = await reader.read(ListAll())

        assert len(foods) == 5
        assert store.read_count == 1
        assert cache.keys() == {"foods"}
        assert cache.expires_at("foods") == clock() + TTL_SECONDS

    @pytest.mark.asyncio
    async def test_hit_skips_store(self, reader, store):
        """A hit is served without consulting the store."""
        first = await reader.read(ListAll())
        second = await reader.read(ListAll())

        assert store.read_count == 1
        assert second == first

    @pytest.mark.asyncio
    async def test_cached_foods_keep_joined_category(self, reader):
        """Deserialized entries carry the embedded category."""
        await reader.read(ByCategory("Drinks"))
        cached = await reader.read(ByCategory("Drinks"))

        assert names(cached) == ["Cola", "Lemonade"]
        assert all(food.category.name == "Drinks" for food in cached)

    @pytest.mark.asyncio
    async def test_hit_does_not_extend_expiry(self, reader, cache, clock):
        """Re-reads leave the fixed expiry window untouched."""
        await reader.read(ListAll())
        expires_at = cache.expires_at("foods")

        clock.advance(TTL_SECONDS / 2)
        await reader.read(ListAll())

        assert cache.expires_at("foods") == expires_at

    @pytest.mark.asyncio
    async def test_expired_entry_is_not_served(self, reader, store, clock):
        """An entry inserted at T is not served after T + TTL."""
        await reader.read(ListAll())

        clock.advance(TTL_SECONDS - 1)
        await reader.read(ListAll())
        assert store.read_count == 1

        clock.advance(1.5)
        await reader.read(ListAll())
        assert store.read_count == 2

    @pytest.mark.asyncio
    async def test_category_wildcard_reads_everything(self, reader, store):
        """The All category resolves to the whole catalog without a lookup."""
        foods = await reader.read(ByCategory("All"))

        assert len(foods) == 5
        assert "find_category_by_name" not in store.operations

    @pytest.mark.asyncio
    async def test_category_named_all_does_not_shadow_wildcard(self, reader, store, cache):
        """A real category called all is cached apart from the whole catalog."""
        literal = store.add_category("all")
        store.add_food("Sampler", 20.0, literal)

        named = await reader.read(ByCategory("all"))
        everything = await reader.read(ByCategory(None))

        assert [food.name for food in named] == ["Sampler"]
        assert len(everything) == 6
        assert {"foods_category__all", "foods_category_all"} <= cache.keys()

    @pytest.mark.asyncio
    async def test_unknown_category_raises_and_is_not_cached(self, reader, cache):
        """An unknown category name is NotFound and leaves the cache empty."""
        with pytest.raises(NotFoundError) as exc_info:
            await reader.read(ByCategory("Soups"))

        assert exc_info.value.message == "Category not found"
        assert exc_info.value.status_code == 404
        assert cache.keys() == set()

    @pytest.mark.asyncio
    async def test_second_category_read_is_a_hit(self, reader, store, metrics):
        """Reading a category twice consults the store once."""
        await reader.read(ByCategory("Drinks"))
        await reader.read(ByCategory("Drinks"))

        assert store.read_count == 1
        assert metrics.get_sample_value("cache_misses_total", query_kind="by_category") == 1
        assert metrics.get_sample_value("cache_hits_total", query_kind="by_category") == 1

    @pytest.mark.asyncio
    async def test_search_case_variants_cached_separately(self, reader, cache, store):
        """pizza and PIZZA each query the store and get their own entry."""
        lower = await reader.read(SearchByName("pizza"))
        upper = await reader.read(SearchByName("PIZZA"))

        assert store.read_count == 2
        assert names(lower) == names(upper) == ["Margherita Pizza", "Pepperoni Pizza"]
        assert {"foods_search_pizza", "foods_search_PIZZA"} <= cache.keys()

    @pytest.mark.asyncio
    async def test_empty_search_matches_everything(self, reader):
        """An empty search term matches every food."""
        assert len(await reader.read(SearchByName(""))) == 5

    @pytest.mark.asyncio
    async def test_price_range_filters_inclusively(self, reader):
        """Bounds are inclusive and truncated to integers."""
        foods = await reader.read(ByPriceRange.from_params("4", "12.7"))

        assert names(foods) == ["Lemonade", "Margherita Pizza", "Tiramisu"]

    @pytest.mark.asyncio
    async def test_equivalent_price_ranges_share_entry(self, reader, store, cache):
        """min=10 with an absent max and an empty max share one entry."""
        first = await reader.read(ByPriceRange.from_params("10", None))
        second = await reader.read(ByPriceRange.from_params("10", ""))

        assert store.read_count == 1
        assert names(first) == names(second) == ["Margherita Pizza", "Pepperoni Pizza"]
        assert "foods_price_10_inf" in cache.keys()

    @pytest.mark.asyncio
    async def test_undecodable_entry_treated_as_miss(self, reader, cache, store):
        """A corrupt cached payload falls through to the store and is replaced."""
        await cache.set_with_ttl("foods", "{not json", TTL_SECONDS)

        foods = await reader.read(ListAll())

        assert len(foods) == 5
        assert store.read_count == 1
        assert len(json.loads(cache.entries["foods"][0])) == 5

    @pytest.mark.asyncio
    async def test_store_failure_propagates_and_nothing_cached(self, reader, store, cache):
        """Store failures reach the caller; no entry is written."""
        store.fail_with = "connection refused"

        with pytest.raises(StoreError) as exc_info:
            await reader.read(ListAll())

        assert "connection refused" in exc_info.value.message
        assert cache.keys() == set()

    @pytest.mark.asyncio
    async def test_invalid_search_pattern_is_store_error(self, reader, cache):
        """A pattern the store rejects surfaces as a store failure."""
        with pytest.raises(StoreError):
            await reader.read(SearchByName("pizza("))

        assert cache.keys() == set()

    @pytest.mark.asyncio
    async def test_unreachable_cache_still_serves_reads(self, unreachable_cache, store, metrics):
        """With the cache down every read succeeds from the store."""
        reader = CacheAsideReader(unreachable_cache, store, store, metrics=metrics)

        first = await reader.read(ListAll())
        second = await reader.read(ListAll())

        assert len(first) == len(second) == 5
        assert store.read_count == 2
        assert metrics.get_sample_value("cache_errors_total", operation="set") == 2

    @pytest.mark.asyncio
    async def test_concurrent_misses_populate_consistently(self, cache, store, metrics):
        """Two concurrent misses both read the store and leave a coherent entry."""
        store.latency = 0.01
        reader = CacheAsideReader(cache, store, store, metrics=metrics)

        first, second = await asyncio.gather(
            reader.read(ByCategory("Pizza")),
            reader.read(ByCategory("Pizza")),
        )

        assert store.read_count == 2
        assert first == second
        cached = json.loads(cache.entries[build_key(ByCategory("Pizza"))][0])
        assert sorted(item["name"] for item in cached) == ["Margherita Pizza", "Pepperoni Pizza"]
        assert await reader.read(ByCategory("Pizza")) == first
        assert store.read_count == 2

    @pytest.mark.asyncio
    async def test_store_query_duration_recorded(self, reader, metrics):
        """Store reads are timed per query kind."""
        await reader.read(SearchByName("cola"))

        assert metrics.get_sample_value(
            "store_query_duration_seconds_count", query_kind="search_by_name"
        ) == 1
