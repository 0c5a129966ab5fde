"""
Search Aggregator - Concurrent Multi-Retailer Product Search

Orchestrates one product search across the user's stores:
1. Launch every requested retailer adapter concurrently
2. Wait for all of them (settle-all): a slow, failing or timed-out retailer
   contributes zero records instead of aborting the others
3. Concatenate the results (no cross-retailer de-duplication, ids are
   retailer-scoped)
4. Record every (product, store, price) in the session Price Index

This is the main entry point for product searches.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from config import settings
from models import AugmentedResult
from price_index import PriceIndex
from retailer_adapters import RetailerAdapter, build_adapters

logger = logging.getLogger(__name__)

SORT_OPTIONS = ("relevance", "alpha", "price_asc", "price_desc")


class SearchAggregator:
    """Fans a query out to retailer adapters and merges their results"""

    def __init__(
        self,
        price_index: PriceIndex,
        adapters: Optional[Dict[str, RetailerAdapter]] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize the aggregator.

        Args:
            price_index: Session index that receives every priced result
            adapters: Store id -> adapter (all catalog retailers by default)
            timeout: Seconds allowed per adapter before it is cancelled
        """
        self.price_index = price_index
        self.adapters = adapters if adapters is not None else build_adapters()
        self.timeout = timeout if timeout is not None else settings.search_timeout

    async def search(self, query: str, store_ids: Iterable[str]) -> List[AugmentedResult]:
        """
        Search all requested retailers in parallel.

        Args:
            query: Free-text product query
            store_ids: Stores to search (order is kept in the merged output)

        Returns:
            Flat list of results; empty when nothing priced was found
        """
        query = query.strip()
        selected = list(dict.fromkeys(store_ids))
        if not query or not selected:
            logger.info("Empty query or store selection; nothing to search")
            return []

        logger.info(f"🔍 Searching {len(selected)} stores for '{query}'")

        batches = await asyncio.gather(
            *(self._search_store(store_id, query) for store_id in selected),
            return_exceptions=True,
        )

        # Join barrier passed: merge and index sequentially
        results: List[AugmentedResult] = []
        for store_id, batch in zip(selected, batches):
            if isinstance(batch, BaseException):
                logger.error(f"Search on {store_id} failed for '{query}': {batch!r}")
                continue
            results.extend(batch)

        new_quotes = 0
        for result in results:
            if self.price_index.insert(
                result.product.id,
                result.store_id,
                result.price,
                result.unit_price_label,
            ):
                new_quotes += 1

        logger.info(
            f"✓ '{query}': {len(results)} results from {len(selected)} stores "
            f"({new_quotes} new price quotes)"
        )
        return results

    async def _search_store(self, store_id: str, query: str) -> List[AugmentedResult]:
        """Run one adapter under the caller-level timeout."""
        adapter = self.adapters.get(store_id)
        if adapter is None:
            logger.warning(f"No adapter registered for store '{store_id}'; skipping")
            return []

        # Cancelling here stops waiting, but a request already running in a
        # worker thread only ends at retailer_http_timeout. Pages not yet
        # started are never sent (adapters cap pages in flight).
        try:
            return await asyncio.wait_for(adapter.search(query), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"{store_id} did not answer within {self.timeout:.1f}s for '{query}'; cancelled"
            )
            return []


def sort_results(results: List[AugmentedResult], option: str = "relevance") -> List[AugmentedResult]:
    """
    Sort search results for display.

    Args:
        results: Aggregated search results
        option: One of relevance (as returned), alpha, price_asc, price_desc

    Returns:
        New sorted list (stable)

    Raises:
        ValueError: On an unknown sort option
    """
    if option == "relevance":
        return list(results)
    if option == "alpha":
        return sorted(results, key=lambda r: r.product.name.casefold())
    if option == "price_asc":
        return sorted(results, key=lambda r: r.price)
    if option == "price_desc":
        return sorted(results, key=lambda r: r.price, reverse=True)
    raise ValueError(f"Unknown sort option '{option}' (expected one of {SORT_OPTIONS})")


if __name__ == "__main__":
    # Example usage
    import sys

    from store_catalog import ALL_STORES

    logging.basicConfig(level=logging.INFO)

    query = " ".join(sys.argv[1:]) or "milk"
    index = PriceIndex()
    aggregator = SearchAggregator(index)

    results = asyncio.run(aggregator.search(query, [s.id for s in ALL_STORES]))
    print(f"\n{len(results)} results, {len(index)} products indexed")
    for r in sort_results(results, "price_asc")[:10]:
        print(f"  - {r.store_id:18} {r.product.name:40} ${r.price:.2f}")
