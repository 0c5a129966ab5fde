"""
Trip Optimizer - Cost-Minimizing Store Assignment

Builds a TripPlan from a finalized shopping list and the session Price Index.

Algorithm (deterministic):
1. Offer matrix: rows are list items, columns are the user's stores (in the
   user's order), values are unit prices (NaN where a store has no quote)
2. Items with no offer at any selected store are left out and reported
3. Each remaining item goes to its cheapest store; ties go to the store
   listed first. Items share no constraints, so this is the minimum total
4. Baseline: the cheapest single store that stocks every remaining item
5. Savings = baseline - optimized total (never negative); no baseline when
   no single store covers the list
6. Multi-store plans whose savings fall below the configured threshold get
   an advisory note, but the optimized breakdown is always reported
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from config import settings
from models import OptimizeItem, PlanItem, StoreVisit, TripPlan, Unresolvable
from price_index import PriceIndex
from store_catalog import get_store, validate_store_ids

logger = logging.getLogger(__name__)


@dataclass
class ItemAssignment:
    """Assignment of a list item to its cheapest store."""
    item: OptimizeItem
    store_id: str
    unit_price: float

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.item.quantity, 2)


def build_offer_matrix(
    items: Sequence[OptimizeItem],
    index: PriceIndex,
    user_stores: Sequence[str],
) -> pd.DataFrame:
    """
    Build the item x store offer matrix.

    Args:
        items: Finalized list items (row order is kept)
        index: Session price index
        user_stores: Selected store ids (column order is the tie-break order)

    Returns:
        DataFrame of unit prices, NaN where a store has no quote
    """
    rows = []
    for item in items:
        offers = index.offers(item.product_id, user_stores)
        rows.append([offers.get(store_id, float("nan")) for store_id in user_stores])

    return pd.DataFrame(rows, columns=list(user_stores), dtype=float)


def assign_items(
    items: Sequence[OptimizeItem],
    offer_matrix: pd.DataFrame,
) -> List[ItemAssignment]:
    """
    Assign every row of the offer matrix to its cheapest store.

    The matrix must not contain all-NaN rows. ``idxmin`` returns the first
    column holding the minimum, which implements the selection-order
    tie-break.
    """
    cheapest_store = offer_matrix.idxmin(axis=1)
    assignments = []
    for row, store_id in cheapest_store.items():
        assignments.append(
            ItemAssignment(
                item=items[row],
                store_id=store_id,
                unit_price=float(offer_matrix.at[row, store_id]),
            )
        )
    return assignments


def single_store_totals(
    items: Sequence[OptimizeItem],
    offer_matrix: pd.DataFrame,
) -> pd.Series:
    """
    Full-list cost at each store that stocks every row of the matrix.

    Returns:
        Series store_id -> total, in selection order (empty if none covers)
    """
    covering = offer_matrix.columns[offer_matrix.notna().all(axis=0).to_numpy()]
    quantities = pd.Series(
        [items[row].quantity for row in offer_matrix.index],
        index=offer_matrix.index,
        dtype=float,
    )
    line_costs = offer_matrix[covering].mul(quantities, axis=0).round(2)
    return line_costs.sum(axis=0).round(2)


def build_store_visits(
    assignments: List[ItemAssignment],
    user_stores: Sequence[str],
) -> List[StoreVisit]:
    """Group assignments by store, stores in selection order."""
    visits = []
    for store_id in user_stores:
        store_items = [a for a in assignments if a.store_id == store_id]
        if not store_items:
            continue

        plan_items = [
            PlanItem(
                item_id=a.item.id,
                name=a.item.name,
                quantity=a.item.quantity,
                price=round(a.unit_price, 2),
                line_total=a.line_total,
            )
            for a in store_items
        ]
        visits.append(
            StoreVisit(
                store_id=store_id,
                store_name=get_store(store_id).name,
                items=plan_items,
                subtotal=round(sum(p.line_total for p in plan_items), 2),
            )
        )
    return visits


def _store_names(store_ids: Sequence[str]) -> str:
    names = [get_store(store_id).name for store_id in store_ids]
    if len(names) <= 1:
        return "".join(names)
    return ", ".join(names[:-1]) + " and " + names[-1]


def compose_notes(
    visits: List[StoreVisit],
    unavailable: List[str],
    single_store_best: Optional[float],
    best_single_store: Optional[str],
    total_savings: float,
    threshold: float,
) -> str:
    """
    Write the human-readable advice attached to a plan.

    Args:
        visits: Store visits of the optimized plan
        unavailable: Names of items left out of the plan
        single_store_best: Cheapest full-list single-store total, if any
        best_single_store: Store id achieving single_store_best
        total_savings: Savings of the optimized plan over single_store_best
        threshold: Minimum savings that justifies an extra store visit

    Returns:
        Notes text
    """
    notes = []
    visited = [visit.store_id for visit in visits]
    extra_store_count = len(visited) - 1

    if extra_store_count == 0:
        notes.append(f"Everything is cheapest at {_store_names(visited)}, so one trip covers your list.")

    elif single_store_best is None:
        notes.append(
            f"No single store stocks every item, so your list is split across "
            f"{_store_names(visited)}. A one-store price comparison is not available."
        )

    elif total_savings < threshold:
        trips = "trip" if extra_store_count == 1 else "trips"
        notes.append(
            f"Splitting your shop across {_store_names(visited)} saves only "
            f"${total_savings:.2f} compared with buying everything at "
            f"{get_store(best_single_store).name} (${single_store_best:.2f}). "
            f"The extra {trips} may not be worth the small saving."
        )

    else:
        notes.append(
            f"Splitting your shop across {_store_names(visited)} saves "
            f"${total_savings:.2f} compared with buying everything at "
            f"{get_store(best_single_store).name} (${single_store_best:.2f})."
        )

    if unavailable:
        notes.append(f"Not available at your selected stores: {', '.join(unavailable)}.")

    return " ".join(notes)


def optimize_trip(
    items: Sequence[Union[OptimizeItem, Dict]],
    index: PriceIndex,
    user_stores: Sequence[str],
    savings_threshold: Optional[float] = None,
) -> Union[TripPlan, Unresolvable]:
    """
    Compute the cost-minimizing trip for a finalized shopping list.

    Args:
        items: List lines (product id + quantity); dicts are validated
        index: Session price index (read only)
        user_stores: Selected store ids; order breaks price ties
        savings_threshold: Savings below which extra stores are discouraged
            (defaults to MARGINAL_SAVINGS_THRESHOLD)

    Returns:
        TripPlan, or Unresolvable when the list is empty or nothing is priced

    Raises:
        UnknownStoreError: If a selected store is not in the catalog
        pydantic.ValidationError: If an item is malformed (e.g. quantity < 1)
    """
    threshold = (
        settings.marginal_savings_threshold if savings_threshold is None else savings_threshold
    )
    items = [OptimizeItem.model_validate(item) for item in items]
    user_stores = validate_store_ids(user_stores)

    if not items:
        return Unresolvable(reason="The shopping list has no items to plan.")
    if not user_stores:
        return Unresolvable(reason="No stores are selected.")

    # Step 1-2: offer sets, split off items nobody sells
    offer_matrix = build_offer_matrix(items, index, user_stores)
    has_offer = offer_matrix.notna().any(axis=1)
    unavailable = [items[row].name for row in offer_matrix.index[~has_offer.to_numpy()]]
    offer_matrix = offer_matrix[has_offer]

    if offer_matrix.empty:
        return Unresolvable(
            reason=f"None of the {len(items)} items has a price at the selected stores."
        )

    # Step 3: per-item minimization and grouping
    assignments = assign_items(items, offer_matrix)
    visits = build_store_visits(assignments, user_stores)
    total_cost = round(sum(visit.subtotal for visit in visits), 2)

    # Step 4-5: single-store baseline and savings
    totals = single_store_totals(items, offer_matrix)
    if totals.empty:
        single_store_best, best_single_store = None, None
        total_savings = 0.0
    else:
        best_single_store = totals.idxmin()
        single_store_best = float(totals[best_single_store])
        total_savings = max(0.0, round(single_store_best - total_cost, 2))

    notes = compose_notes(
        visits,
        unavailable,
        single_store_best,
        best_single_store,
        total_savings,
        threshold,
    )

    logger.info(
        f"✓ Trip planned: {len(assignments)} items over {len(visits)} stores, "
        f"total ${total_cost:.2f}, savings ${total_savings:.2f}"
        + (f", {len(unavailable)} unavailable" if unavailable else "")
    )

    return TripPlan(
        store_visits=visits,
        total_cost=total_cost,
        total_savings=total_savings,
        notes=notes,
        unavailable_items=unavailable,
    )


# ============================================================================
# UTILITY FUNCTION: Display results in a human-readable format
# ============================================================================

def print_trip_plan(plan: Union[TripPlan, Unresolvable]) -> None:
    """Pretty-print an optimizer result."""
    print("\n" + "=" * 80)
    print("🛒 OPTIMIZED SHOPPING TRIP")
    print("=" * 80)

    if isinstance(plan, Unresolvable):
        print(f"\n✗ No plan: {plan.reason}")
        print("=" * 80)
        return

    for visit in plan.store_visits:
        print(f"\n📍 {visit.store_name}")
        print("-" * 80)
        for item in visit.items:
            print(f"  • {item.name:30} x{item.quantity:<3} @ ${item.price:7.2f} = ${item.line_total:7.2f}")
        print(f"  {'Subtotal':>52}   ${visit.subtotal:7.2f}")

    print(f"\n{'─' * 80}")
    print(f"🎯 TOTAL COST: ${plan.total_cost:.2f}")
    if plan.total_savings > 0:
        print(f"✨ Savings vs best single store: ${plan.total_savings:.2f}")
    print(f"\n💡 {plan.notes}")
    print("=" * 80)


if __name__ == "__main__":
    # Example: milk is cheaper at Coles, bread only at Woolworths
    from store_catalog import COLES_ID, WOOLWORTHS_ID

    index = PriceIndex()
    index.insert("milk-2l", WOOLWORTHS_ID, 3.50)
    index.insert("milk-2l", COLES_ID, 3.20)
    index.insert("bread-white", WOOLWORTHS_ID, 2.00)

    plan = optimize_trip(
        [
            OptimizeItem(product_id="milk-2l", name="Milk 2L", quantity=1),
            OptimizeItem(product_id="bread-white", name="White Bread", quantity=1),
        ],
        index,
        [WOOLWORTHS_ID, COLES_ID],
    )
    print_trip_plan(plan)
