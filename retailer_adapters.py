"""
Retailer Adapters - Live Product Search per Grocery Chain

Each adapter queries one retailer's public search API and normalizes the
vendor payload into CanonicalProduct + price records.

Supported retailers:
- Woolworths (POST JSON search, barcode identifiers)
- Coles (GET search with subscription key, synthesized identifiers)
- ALDI (GET search with offset pagination, prices in cents)

Features:
- Blocking requests run in worker threads so adapters can be awaited concurrently
- Remaining pages fetched concurrently when the retailer reports more results
- Placeholder image for products without one
- Unpriced records dropped (they cannot be optimized)
- Graceful degradation: any failure returns an empty list, never raises
"""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests

from config import Settings, settings as default_settings
from models import AugmentedResult, CanonicalProduct
from store_catalog import ALDI_ID, COLES_ID, WOOLWORTHS_ID, get_store

logger = logging.getLogger(__name__)

Page = Tuple[List[Dict[str, Any]], Optional[int]]  # (records, reported total count)


def parse_price(value: Any) -> Optional[float]:
    """
    Parse a vendor price into a positive float.

    Returns None for missing, zero, negative or non-numeric prices.
    Returns None for missing, zero, negative, infinite or non-numeric prices.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        price = float(str(value).replace("$", "").replace(",", "").strip())
    except ValueError:
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


class RetailerAdapter(ABC):
    """
    Base class for retailer search adapters.

    Subclasses provide request construction (``_fetch_page``) and record
    normalization (``_normalize``). Pagination and failure handling live
    here so every retailer degrades the same way.
    """

    store_id: str = ""
    page_size: int = 0

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        settings: Settings = default_settings,
    ):
        """
        Args:
            session: HTTP session (a shared ``requests.Session`` by default)
            settings: Runtime settings (timeouts, page sizes, keys)
        """
        self.session = session or requests.Session()
        self.settings = settings
        self.store = get_store(self.store_id)

    @property
    def name(self) -> str:
        return self.store.name

    def is_configured(self) -> bool:
        """Check if the adapter has the credentials it needs."""
        return True

    async def search(self, query: str) -> List[AugmentedResult]:
        """
        Search the retailer and return normalized, priced results.

        Never raises for transport or payload problems: a failing retailer
        yields an empty list and the cause is logged.

        Args:
            query: Free-text product query

        Returns:
            List of AugmentedResult for this retailer
        """
        if not self.is_configured():
            logger.error(f"{self.name} adapter is not configured; returning no products")
            return []

        try:
            records = await self._fetch_all(query)

        except requests.exceptions.Timeout:
            logger.error(f"{self.name} search timed out for '{query}'")
            return []

        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            logger.error(f"{self.name} API request failed: HTTP {status} for '{query}'")
            return []

        except requests.exceptions.RequestException as e:
            logger.error(f"{self.name} API request failed for '{query}': {e}")
            return []

        except ValueError as e:  # JSON parse error or unexpected payload shape
            logger.error(f"Invalid {self.name} response for '{query}': {e}")
            return []

        except Exception as e:
            logger.exception(f"Unexpected error searching {self.name} for '{query}': {e}")
            return []

        results = []
        for record in records:
            try:
                result = self._normalize(record)
            except (AttributeError, KeyError, TypeError, ValueError, IndexError):
                logger.debug(f"Failed to parse {self.name} record: {record!r:.200}")
                continue
            if result is None:
                continue
            results.append(result)

        dropped = len(records) - len(results)
        logger.info(
            f"✓ {self.name}: {len(results)} priced products for '{query}'"
            + (f" ({dropped} dropped)" if dropped else "")
        )
        return results

    async def _fetch_all(self, query: str) -> List[Dict[str, Any]]:
        """
        Fetch the first page, then every remaining page concurrently.

        A failing page fails the whole retailer search. At most
        ``max_concurrent_pages`` page requests are in flight at once.
        """
        records, total_count = await asyncio.to_thread(self._fetch_page, query, 0)
        records = list(records)

        if not total_count or not self.page_size or total_count <= self.page_size:
            return records

        remaining_pages = math.ceil((total_count - self.page_size) / self.page_size)
        logger.debug(
            f"{self.name}: {total_count} results reported, "
            f"fetching {remaining_pages} more page(s)"
        )
        page_slots = asyncio.Semaphore(max(1, self.settings.max_concurrent_pages))

        async def fetch_page(page_index: int) -> Page:
            async with page_slots:
                return await asyncio.to_thread(self._fetch_page, query, page_index)

        pages = await asyncio.gather(
            *(fetch_page(page_index) for page_index in range(1, remaining_pages + 1))
        )
        for page_records, _ in pages:
            records.extend(page_records)
        return records

    def _request_json(self, method: str, url: str, **kwargs) -> Any:
        """
        Issue one HTTP request and decode the JSON body.

        Raises:
            requests.exceptions.RequestException: On network/HTTP errors
            ValueError: On JSON parse errors
        """
        headers = {
            "User-Agent": self.settings.retailer_user_agent,
            "Accept": "application/json, text/plain, */*",
        }
        headers.update(kwargs.pop("headers", {}))

        response = self.session.request(
            method,
            url,
            headers=headers,
            timeout=self.settings.retailer_http_timeout,
            **kwargs,
        )
        response.raise_for_status()
        return response.json()

    def _placeholder_image(self, product_name: str) -> str:
        return self.settings.placeholder_image_url.format(name=quote(product_name, safe=""))

    def _result(
        self,
        product: CanonicalProduct,
        price: float,
        unit_price_label: Optional[str] = None,
    ) -> AugmentedResult:
        return AugmentedResult(
            product=product,
            price=price,
            store_id=self.store_id,
            store_logo_url=self.store.logo_url,
            unit_price_label=unit_price_label or None,
        )

    @abstractmethod
    def _fetch_page(self, query: str, page_index: int) -> Page:
        """Fetch one page of raw vendor records (page_index starts at 0)."""

    @abstractmethod
    def _normalize(self, record: Dict[str, Any]) -> Optional[AugmentedResult]:
        """Map a vendor record to an AugmentedResult, or None to drop it."""


class WoolworthsAdapter(RetailerAdapter):
    """Woolworths product search (JSON POST, barcode-keyed products)"""

    store_id = WOOLWORTHS_ID
    SEARCH_URL = "https://www.woolworths.com.au/apis/ui/Search/products"

    def _fetch_page(self, query: str, page_index: int) -> Page:
        payload = {
            "SearchTerm": query,
            "PageNumber": page_index + 1,
            "PageSize": self.settings.woolworths_page_size,
            "SortType": "TraderRelevance",
        }
        data = self._request_json(
            "POST",
            self.SEARCH_URL,
            json=payload,
            headers={"Content-Type": "application/json"},
        )
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")

        # Products come grouped: [{"Products": [...]}, ...]
        records = []
        for group in data.get("Products") or []:
            records.extend(group.get("Products") or [])
        return records, None

    def _normalize(self, record: Dict[str, Any]) -> Optional[AugmentedResult]:
        name = record.get("DisplayName") or record.get("Name")
        price = parse_price(record.get("Price"))
        if not name or price is None:
            return None

        barcode = record.get("Barcode")
        if barcode:
            product_id, temporary = str(barcode), False
        elif record.get("Stockcode"):
            product_id, temporary = f"woolworths-{record['Stockcode']}", True
        else:
            return None

        product = CanonicalProduct(
            id=product_id,
            name=name,
            brand=record.get("Brand") or "Woolworths",
            description=record.get("Description") or name,
            image_url=record.get("LargeImageFile") or self._placeholder_image(name),
            temporary_id=temporary,
            source_payload=record,
        )
        return self._result(product, price, record.get("CupString"))


class ColesAdapter(RetailerAdapter):
    """Coles product search (subscription key required, no barcodes exposed)"""

    store_id = COLES_ID
    SEARCH_URL = "https://www.coles.com.au/api/bff/products/search"
    IMAGE_BASE_URL = "https://www.coles.com.au"

    def is_configured(self) -> bool:
        return bool(self.settings.coles_api_key)

    def _fetch_page(self, query: str, page_index: int) -> Page:
        data = self._request_json(
            "GET",
            self.SEARCH_URL,
            params={
                "q": query,
                "storeId": self.settings.coles_store_id,
                "page": page_index + 1,
            },
            headers={"Ocp-Apim-Subscription-Key": self.settings.coles_api_key},
        )
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")

        records = [
            item for item in data.get("results") or []
            if isinstance(item, dict) and item.get("_type") == "PRODUCT"
        ]
        return records, None

    def _normalize(self, record: Dict[str, Any]) -> Optional[AugmentedResult]:
        name = record.get("name")
        pricing = record.get("pricing") or {}
        price = parse_price(pricing.get("now"))
        if not name or price is None or record.get("id") is None:
            return None

        image = record.get("image")
        product = CanonicalProduct(
            id=f"coles-{record['id']}",
            name=name,
            brand=record.get("brand") or "Coles",
            description=record.get("description") or name,
            image_url=f"{self.IMAGE_BASE_URL}{image}" if image else self._placeholder_image(name),
            temporary_id=True,
            source_payload=record,
        )
        return self._result(product, price, pricing.get("comparable"))


class AldiAdapter(RetailerAdapter):
    """ALDI product search (offset pagination, prices reported in cents)"""

    store_id = ALDI_ID
    SEARCH_URL = "https://api.aldi.com.au/v3/product-search"

    def __init__(self, session: Optional[requests.Session] = None, settings: Settings = default_settings):
        super().__init__(session, settings)
        self.page_size = settings.aldi_page_size

    def _fetch_page(self, query: str, page_index: int) -> Page:
        data = self._request_json(
            "GET",
            self.SEARCH_URL,
            params={
                "q": query,
                "limit": self.page_size,
                "offset": page_index * self.page_size,
                "sort": "relevance",
            },
        )
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")

        pagination = (data.get("meta") or {}).get("pagination") or {}
        total_count = int(pagination.get("totalCount") or 0)
        return list(data.get("data") or []), total_count

    def _normalize(self, record: Dict[str, Any]) -> Optional[AugmentedResult]:
        name = record.get("name")
        price_info = record.get("price") or {}
        amount_cents = parse_price(price_info.get("amount"))
        if not name or amount_cents is None or not record.get("sku"):
            return None

        image_url = self._placeholder_image(name)
        assets = record.get("assets") or []
        if assets and assets[0].get("url"):
            image_url = (
                assets[0]["url"]
                .replace("{width}", "300")
                .replace("{slug}", record.get("urlSlugText") or "product")
            )

        product = CanonicalProduct(
            id=f"aldi-{record['sku']}",
            name=name,
            brand=record.get("brandName") or "ALDI",
            description=name,
            image_url=image_url,
            temporary_id=True,
            source_payload=record,
        )
        return self._result(
            product,
            round(amount_cents / 100, 2),
            price_info.get("comparisonDisplay"),
        )


# Store id -> adapter class; adding a retailer means adding an entry here
ADAPTERS = {
    WOOLWORTHS_ID: WoolworthsAdapter,
    COLES_ID: ColesAdapter,
    ALDI_ID: AldiAdapter,
}


def build_adapters(
    session: Optional[requests.Session] = None,
    settings: Settings = default_settings,
) -> Dict[str, RetailerAdapter]:
    """Instantiate one adapter per supported retailer sharing one session."""
    session = session or requests.Session()
    return {
        store_id: adapter_cls(session=session, settings=settings)
        for store_id, adapter_cls in ADAPTERS.items()
    }


if __name__ == "__main__":
    # Example usage
    import sys

    logging.basicConfig(level=logging.INFO)

    query = " ".join(sys.argv[1:]) or "milk"
    adapters = build_adapters()

    for store_id, adapter in adapters.items():
        results = asyncio.run(adapter.search(query))
        print(f"\n{adapter.name}: {len(results)} results")
        for r in results[:3]:
            print(f"  - {r.product.name} ({r.product.id}): ${r.price:.2f}")
