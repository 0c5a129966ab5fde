"""
Shared test fixtures: a fake requests session, canned retailer payloads
and small model factories. No test touches the network.
"""

from typing import Any, Callable, Dict, List, Optional

import pytest
import requests

from config import Settings
from models import AugmentedResult, CanonicalProduct
from store_catalog import get_store


class FakeResponse:
    """Just enough of requests.Response for the adapters"""

    def __init__(self, payload: Any = None, status_code: int = 200, invalid_json: bool = False):
        self.payload = payload
        self.status_code = status_code
        self.invalid_json = invalid_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        if self.invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


class FakeSession:
    """
    Records requests and answers them through a responder callable.

    The responder gets (method, url, kwargs) and returns a FakeResponse or
    an exception instance to raise.
    """

    def __init__(self, responder: Callable[[str, str, Dict[str, Any]], Any]):
        self.responder = responder
        self.calls: List[Dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        answer = self.responder(method, url, kwargs)
        if isinstance(answer, Exception):
            raise answer
        return answer


# --------------------- Canned vendor payloads ---------------------

WOOLWORTHS_PAYLOAD = {
    "Products": [
        {
            "Products": [
                {
                    "Barcode": "9300633601234",
                    "Stockcode": 123456,
                    "DisplayName": "Woolworths Full Cream Milk 2L",
                    "Brand": "Woolworths",
                    "Description": "Fresh full cream milk",
                    "Price": 3.5,
                    "LargeImageFile": "https://cdn0.woolworths.media/content/wowproductimages/large/123456.jpg",
                    "CupString": "$1.75 / 1L",
                },
                {
                    "Barcode": None,
                    "Stockcode": 654321,
                    "DisplayName": "Pauls Milk 2L",
                    "Brand": "Pauls",
                    "Price": 4.2,
                    "LargeImageFile": "",
                    "CupString": "$2.10 / 1L",
                },
            ]
        },
        {
            "Products": [
                {
                    "Barcode": "9300000000001",
                    "Stockcode": 111,
                    "DisplayName": "Lactose Free Milk 1L",
                    "Price": None,
                }
            ]
        },
    ]
}

COLES_PAYLOAD = {
    "results": [
        {
            "_type": "PRODUCT",
            "id": 8150288,
            "name": "Coles Full Cream Milk 2L",
            "brand": "Coles",
            "description": "COLES FULL CREAM MILK 2L",
            "image": "/wcsstore/Coles-CAS/images/8/1/5/8150288.jpg",
            "pricing": {"now": 3.2, "comparable": "$1.60 per 1L"},
        },
        {"_type": "SINGLE_TILE", "adId": "milk-banner"},
        {"_type": "PRODUCT", "id": 999, "name": "Discontinued Milk", "pricing": None},
    ]
}

ALDI_IMAGE_TEMPLATE = "https://dm.apac.cms.aldi.cx/is/image/aldiprodapac/product/jpg/scaleWidth/{width}/img/{slug}"


def aldi_record(sku: str, name: str, cents: Optional[int], slug: Optional[str] = "milk") -> Dict[str, Any]:
    return {
        "sku": sku,
        "name": name,
        "brandName": "FARMDALE",
        "urlSlugText": slug,
        "price": {"amount": cents, "comparisonDisplay": "$1.50 per 1 L"},
        "assets": [{"url": ALDI_IMAGE_TEMPLATE}],
    }


def aldi_page(records: List[Dict[str, Any]], total_count: int) -> Dict[str, Any]:
    return {"meta": {"pagination": {"totalCount": total_count}}, "data": records}


# --------------------- Fixtures ---------------------


@pytest.fixture
def test_settings() -> Settings:
    return Settings(coles_api_key="test-key", aldi_page_size=2, retailer_http_timeout=5.0)


@pytest.fixture
def make_result() -> Callable[..., AugmentedResult]:
    """Factory for search results at a catalog store."""

    def _make(product_id: str, store_id: str, price: float, name: Optional[str] = None) -> AugmentedResult:
        name = name or product_id
        product = CanonicalProduct(
            id=product_id,
            name=name,
            brand="Test",
            description=name,
            image_url=f"https://img.test/{product_id}.png",
        )
        return AugmentedResult(
            product=product,
            price=price,
            store_id=store_id,
            store_logo_url=get_store(store_id).logo_url,
        )

    return _make
