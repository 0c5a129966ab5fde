"""
Session Price Index

Maps canonical product id -> per-store price quotes collected by searches.

Rules:
- One quote per (product, store); the first quote seen wins for the session
  (prices only refresh through a new session, stale quotes are acceptable)
- Quotes are kept in insertion order
- Only stores from the catalog are accepted
- best_price() answers "absent" (None) rather than a sentinel number
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from models import PriceQuote
from store_catalog import get_store

logger = logging.getLogger(__name__)


class PriceIndex:
    """In-memory price index for one shopping session"""

    def __init__(self):
        self._quotes: Dict[str, List[PriceQuote]] = {}

    def insert(
        self,
        product_id: str,
        store_id: str,
        price: float,
        unit_price_label: Optional[str] = None,
    ) -> bool:
        """
        Record a price quote unless one already exists for the pair.

        Args:
            product_id: Canonical product id
            store_id: Catalog store id
            price: Non-negative price in major currency units
            unit_price_label: Optional retailer comparison label

        Returns:
            True if the quote was stored, False if an earlier quote was kept

        Raises:
            UnknownStoreError: If store_id is not in the catalog
            ValueError: If price is negative
        """
        get_store(store_id)
        if price < 0:
            raise ValueError(f"Price must be non-negative, got {price} for {product_id}")

        quotes = self._quotes.setdefault(product_id, [])
        if any(q.store_id == store_id for q in quotes):
            return False

        quotes.append(
            PriceQuote(
                product_id=product_id,
                store_id=store_id,
                price=float(price),
                unit_price_label=unit_price_label,
            )
        )
        return True

    def quotes(self, product_id: str) -> List[PriceQuote]:
        """All quotes for a product in insertion order."""
        return list(self._quotes.get(product_id, []))

    def offers(self, product_id: str, allowed_stores: Iterable[str]) -> Dict[str, float]:
        """Store id -> price for the quotes whose store is allowed."""
        allowed = set(allowed_stores)
        return {
            q.store_id: q.price
            for q in self._quotes.get(product_id, [])
            if q.store_id in allowed
        }

    def best_price(self, product_id: str, allowed_stores: Iterable[str]) -> Optional[float]:
        """
        Lowest price for a product among the allowed stores.

        Returns:
            The minimum price, or None if no allowed store has a quote
        """
        prices = self.offers(product_id, allowed_stores).values()
        return min(prices) if prices else None

    def snapshot(self) -> Dict[str, List[Dict]]:
        """
        Export as {productId: [{"storeId", "price", "unitPriceLabel"?}]}.
        """
        return {
            product_id: [
                q.model_dump(by_alias=True, exclude={"product_id"}, exclude_none=True)
                for q in quotes
            ]
            for product_id, quotes in list(self._quotes.items())
        }

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Iterable[Mapping]]) -> "PriceIndex":
        """
        Rebuild an index from snapshot data (camelCase or snake_case keys).

        Raises:
            UnknownStoreError: If a quote names a store outside the catalog
            ValueError: If a quote is malformed or negative
        """
        index = cls()
        for product_id, quotes in data.items():
            for quote in quotes:
                store_id = quote.get("storeId", quote.get("store_id"))
                price = quote.get("price")
                if store_id is None or price is None:
                    raise ValueError(f"Malformed price quote for {product_id}: {dict(quote)}")
                index.insert(
                    product_id,
                    store_id,
                    float(price),
                    quote.get("unitPriceLabel", quote.get("unit_price_label")),
                )
        logger.debug(f"Loaded price index snapshot with {len(index)} products")
        return index

    def __len__(self) -> int:
        return len(self._quotes)

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._quotes
