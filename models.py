"""
Pydantic models for the shopping mate core.

Models:
- Store: a supported retailer (static catalog entry)
- CanonicalProduct: retailer product normalized to one schema
- PriceQuote: price of one product at one store
- AugmentedResult: a search hit (product + price + store)
- ListItem: shopping list entry, either generic (free text) or resolved
- OptimizeItem: a finalized list line handed to the trip optimizer
- TripPlan / StoreVisit / PlanItem: optimizer output
- Unresolvable: optimizer outcome when nothing can be priced

All models serialize with camelCase keys (the wire format of the web client)
and accept either camelCase or snake_case on input.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Store(CamelModel):
    """Supported retailer"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str  # e.g. "store-coles"
    name: str
    chain: str
    logo_url: str


class CanonicalProduct(CamelModel):
    """Retailer product mapped to the canonical schema"""
    id: str  # retailer-scoped; barcode or "<retailer>-<sku>"
    name: str
    brand: str
    description: str
    image_url: str
    # Synthesized ids are never interchangeable with another retailer's id
    temporary_id: bool = False
    source_payload: Dict[str, Any] = Field(default_factory=dict)


class PriceQuote(CamelModel):
    """Price of a product at a store (major currency units)"""
    product_id: str
    store_id: str
    price: float = Field(ge=0)
    unit_price_label: Optional[str] = None


class AugmentedResult(CamelModel):
    """One priced search hit from one retailer"""
    product: CanonicalProduct
    price: float = Field(ge=0)
    store_id: str
    store_logo_url: str = ""
    unit_price_label: Optional[str] = None


class ListItem(CamelModel):
    """
    Shopping list entry.

    A generic item has only a free-text name; a resolved item is bound to a
    product id. ``is_generic`` is derived from ``product_id`` so the two
    states cannot overlap.
    """
    id: str
    name: str
    quantity: int = Field(default=1, ge=1)
    is_checked: bool = False
    product_id: Optional[str] = None

    @property
    def is_generic(self) -> bool:
        return self.product_id is None

    def resolved_with(self, product: CanonicalProduct) -> "ListItem":
        """Return a copy bound to ``product``."""
        return self.model_copy(update={"product_id": product.id, "name": product.name})


class OptimizeItem(CamelModel):
    """Finalized shopping list line: a product and how many to buy"""
    product_id: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)
    id: Optional[str] = None
    name: Optional[str] = None

    @model_validator(mode="after")
    def _fill_defaults(self) -> "OptimizeItem":
        if not self.id:
            self.id = self.product_id
        if not self.name:
            self.name = self.product_id
        return self


class PlanItem(CamelModel):
    """An item bought at a store; ``price`` is the unit price"""
    item_id: str
    name: str
    quantity: int
    price: float
    line_total: float


class StoreVisit(CamelModel):
    """Items to buy at one store"""
    store_id: str
    store_name: str
    items: List[PlanItem] = Field(default_factory=list)
    subtotal: float = 0.0


class TripPlan(CamelModel):
    """Cost-minimizing shopping plan across the user's stores"""
    store_visits: List[StoreVisit] = Field(default_factory=list)
    total_cost: float = 0.0
    total_savings: float = 0.0
    notes: str = ""
    unavailable_items: List[str] = Field(default_factory=list)

    @property
    def stores_visited(self) -> List[str]:
        return [visit.store_id for visit in self.store_visits]


class Unresolvable(CamelModel):
    """Returned by the optimizer when no plan can be produced"""
    error: str = "Unresolvable"
    reason: str
