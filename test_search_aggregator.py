"""
Search aggregator tests: fan-out, fault isolation, timeouts and indexing.
"""

import asyncio

import pytest

from price_index import PriceIndex
from search_aggregator import SearchAggregator, sort_results
from store_catalog import ALDI_ID, COLES_ID, WOOLWORTHS_ID


class StubAdapter:
    """Adapter double returning fixed results, raising, or stalling"""

    def __init__(self, results=None, error=None, delay=0.0):
        self.results = results or []
        self.error = error
        self.delay = delay
        self.queries = []

    async def search(self, query):
        self.queries.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.results)


@pytest.fixture
def stubs(make_result):
    return {
        WOOLWORTHS_ID: StubAdapter([make_result("9300633601234", WOOLWORTHS_ID, 3.50, "Milk 2L")]),
        COLES_ID: StubAdapter([make_result("coles-8150288", COLES_ID, 3.20, "Coles Milk 2L")]),
        ALDI_ID: StubAdapter([make_result("aldi-000000123", ALDI_ID, 2.99, "Farmdale Milk 2L")]),
    }


@pytest.mark.asyncio
async def test_merges_results_in_store_order_and_indexes(stubs):
    index = PriceIndex()
    aggregator = SearchAggregator(index, adapters=stubs)

    results = await aggregator.search("  milk ", [ALDI_ID, WOOLWORTHS_ID, COLES_ID])

    assert [r.store_id for r in results] == [ALDI_ID, WOOLWORTHS_ID, COLES_ID]
    assert stubs[ALDI_ID].queries == ["milk"]
    assert index.best_price("9300633601234", [WOOLWORTHS_ID]) == 3.50
    assert index.best_price("coles-8150288", [COLES_ID]) == 3.20
    assert index.best_price("aldi-000000123", [ALDI_ID]) == 2.99


@pytest.mark.asyncio
async def test_only_selected_stores_are_searched(stubs):
    aggregator = SearchAggregator(PriceIndex(), adapters=stubs)

    results = await aggregator.search("milk", [COLES_ID, COLES_ID])

    assert [r.store_id for r in results] == [COLES_ID]
    assert stubs[COLES_ID].queries == ["milk"]
    assert stubs[WOOLWORTHS_ID].queries == []


@pytest.mark.asyncio
async def test_failing_retailer_does_not_affect_others(stubs):
    stubs[COLES_ID] = StubAdapter(error=RuntimeError("adapter bug"))
    aggregator = SearchAggregator(PriceIndex(), adapters=stubs)

    results = await aggregator.search("milk", [WOOLWORTHS_ID, COLES_ID, ALDI_ID])

    assert [r.store_id for r in results] == [WOOLWORTHS_ID, ALDI_ID]


@pytest.mark.asyncio
async def test_all_retailers_failing_is_an_empty_result():
    adapters = {store_id: StubAdapter(error=OSError("down")) for store_id in (WOOLWORTHS_ID, COLES_ID)}
    aggregator = SearchAggregator(PriceIndex(), adapters=adapters)

    assert await aggregator.search("milk", [WOOLWORTHS_ID, COLES_ID]) == []


@pytest.mark.asyncio
async def test_slow_retailer_is_cancelled(stubs):
    stubs[ALDI_ID] = StubAdapter(delay=5.0)
    aggregator = SearchAggregator(PriceIndex(), adapters=stubs, timeout=0.05)

    results = await asyncio.wait_for(
        aggregator.search("milk", [WOOLWORTHS_ID, ALDI_ID]),
        timeout=2.0,
    )

    assert [r.store_id for r in results] == [WOOLWORTHS_ID]


@pytest.mark.asyncio
async def test_missing_adapter_is_skipped(stubs):
    del stubs[ALDI_ID]
    aggregator = SearchAggregator(PriceIndex(), adapters=stubs)

    results = await aggregator.search("milk", [ALDI_ID, COLES_ID])

    assert [r.store_id for r in results] == [COLES_ID]


@pytest.mark.asyncio
async def test_empty_query_or_selection_searches_nothing(stubs):
    aggregator = SearchAggregator(PriceIndex(), adapters=stubs)

    assert await aggregator.search("   ", [WOOLWORTHS_ID]) == []
    assert await aggregator.search("milk", []) == []
    assert all(stub.queries == [] for stub in stubs.values())


@pytest.mark.asyncio
async def test_repeat_search_keeps_first_price(make_result):
    stub = StubAdapter([make_result("9300633601234", WOOLWORTHS_ID, 3.50)])
    index = PriceIndex()
    aggregator = SearchAggregator(index, adapters={WOOLWORTHS_ID: stub})

    await aggregator.search("milk", [WOOLWORTHS_ID])
    stub.results = [make_result("9300633601234", WOOLWORTHS_ID, 2.75)]
    results = await aggregator.search("milk", [WOOLWORTHS_ID])

    # the fresh price is still shown, the index keeps the session's first quote
    assert results[0].price == 2.75
    assert index.best_price("9300633601234", [WOOLWORTHS_ID]) == 3.50


# --------------------- sort_results ---------------------


@pytest.fixture
def unsorted(make_result):
    return [
        make_result("p1", WOOLWORTHS_ID, 3.50, "milk"),
        make_result("p2", COLES_ID, 1.20, "Bread"),
        make_result("p3", ALDI_ID, 4.99, "apples"),
    ]


@pytest.mark.parametrize(
    "option, expected",
    [
        ("relevance", ["p1", "p2", "p3"]),
        ("alpha", ["p3", "p2", "p1"]),
        ("price_asc", ["p2", "p1", "p3"]),
        ("price_desc", ["p3", "p1", "p2"]),
    ],
)
def test_sort_results(unsorted, option, expected):
    assert [r.product.id for r in sort_results(unsorted, option)] == expected


def test_sort_results_rejects_unknown_option(unsorted):
    with pytest.raises(ValueError):
        sort_results(unsorted, "cheapest")
