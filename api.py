"""
REST API for the shopping mate backend.

Endpoints:
- GET  /api/health    service status
- GET  /api/stores    supported retailer catalog
- POST /api/search    multi-retailer product search
- POST /api/resolve   pick products for generic list items
- POST /api/optimize  cost-minimizing trip plan
- GET  /api/prices    session price index snapshot

The server keeps one price index for its lifetime; searches add to it and
optimize falls back to it when the request carries no snapshot.
"""

import logging
from typing import Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import Field, field_validator

from config import configure_logging, settings
from list_resolver import finalize_items, resolve_generic_items
from models import (
    AugmentedResult,
    CamelModel,
    CanonicalProduct,
    ListItem,
    OptimizeItem,
    Store,
    TripPlan,
    Unresolvable,
)
from price_index import PriceIndex
from search_aggregator import SORT_OPTIONS, SearchAggregator, sort_results
from store_catalog import ALL_STORES, get_store, validate_store_ids
from trip_optimizer import optimize_trip

logger = logging.getLogger(__name__)


# --------------------- Request / response schemas ---------------------


class StoreSelection(CamelModel):
    store_ids: List[str]

    @field_validator("store_ids")
    @classmethod
    def _known_stores(cls, value: List[str]) -> List[str]:
        # UnknownStoreError is a ValueError, reported as a 422 on storeIds
        return validate_store_ids(value)


class SearchRequest(StoreSelection):
    query: str
    sort: str = "relevance"

    @field_validator("query")
    @classmethod
    def _non_empty_query(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("query must not be empty")
        return value

    @field_validator("sort")
    @classmethod
    def _known_sort(cls, value: str) -> str:
        if value not in SORT_OPTIONS:
            raise ValueError(f"sort must be one of {', '.join(SORT_OPTIONS)}")
        return value


class ResolveRequest(StoreSelection):
    items: List[ListItem]


class ResolveResponse(CamelModel):
    selections: Dict[str, Optional[CanonicalProduct]] = Field(default_factory=dict)
    alternatives: Dict[str, List[AugmentedResult]] = Field(default_factory=dict)
    items: List[OptimizeItem] = Field(default_factory=list)


class SnapshotQuote(CamelModel):
    store_id: str
    price: float = Field(ge=0)
    unit_price_label: Optional[str] = None

    @field_validator("store_id")
    @classmethod
    def _known_store(cls, value: str) -> str:
        get_store(value)
        return value


class OptimizeRequest(StoreSelection):
    items: List[OptimizeItem]
    price_index_snapshot: Optional[Dict[str, List[SnapshotQuote]]] = None


class HealthResponse(CamelModel):
    status: str
    stores: int


# --------------------- Application ---------------------


def create_app(aggregator: Optional[SearchAggregator] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        aggregator: Search aggregator to use (a live one bound to a fresh
            price index by default)
    """
    app = FastAPI(
        title="Shopping Mate API",
        description="Multi-retailer grocery search and trip optimization",
        version="1.0.0",
    )

    # Allow all origins when none are configured (development)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.aggregator = aggregator or SearchAggregator(PriceIndex())

    @app.get("/api/health", response_model=HealthResponse, tags=["health"])
    def health_check() -> HealthResponse:
        return HealthResponse(status="ok", stores=len(ALL_STORES))

    @app.get("/api/stores", response_model=List[Store], tags=["stores"])
    def list_stores() -> List[Store]:
        """Supported retailer catalog."""
        return list(ALL_STORES)

    @app.post("/api/search", response_model=List[AugmentedResult], tags=["search"])
    async def search(body: SearchRequest, request: Request) -> List[AugmentedResult]:
        """
        Search the selected retailers at once.

        Failing retailers contribute no results; an empty list means no
        matches, not an error.
        """
        results = await request.app.state.aggregator.search(body.query, body.store_ids)
        return sort_results(results, body.sort)

    @app.post("/api/resolve", response_model=ResolveResponse, tags=["optimize"])
    async def resolve(body: ResolveRequest, request: Request) -> ResolveResponse:
        """Preselect the cheapest product for each unchecked generic item."""
        resolution = await resolve_generic_items(
            body.items, request.app.state.aggregator, body.store_ids
        )
        return ResolveResponse(
            selections=resolution.selections,
            alternatives=resolution.alternatives,
            items=finalize_items(body.items, resolution.selections),
        )

    @app.post("/api/optimize", response_model=TripPlan, tags=["optimize"])
    def optimize(body: OptimizeRequest, request: Request) -> TripPlan:
        """
        Plan the cheapest trip for a finalized list.

        Returns 422 with an Unresolvable payload when nothing can be priced.
        """
        if body.price_index_snapshot is not None:
            index = PriceIndex.from_snapshot(
                {
                    product_id: [quote.model_dump() for quote in quotes]
                    for product_id, quotes in body.price_index_snapshot.items()
                }
            )
        else:
            index = request.app.state.aggregator.price_index

        result = optimize_trip(body.items, index, body.store_ids)
        if isinstance(result, Unresolvable):
            logger.info(f"Optimize request unresolvable: {result.reason}")
            raise HTTPException(
                status_code=422,
                detail=result.model_dump(by_alias=True),
            )
        return result

    @app.get("/api/prices", tags=["optimize"])
    async def price_snapshot(request: Request) -> Dict[str, List[Dict]]:
        """Snapshot of the session price index."""
        return request.app.state.aggregator.price_index.snapshot()

    return app


app = create_app()


if __name__ == "__main__":
    configure_logging(settings.log_level)
    uvicorn.run(
        "api:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
