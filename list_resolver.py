"""
Generic item resolution for shopping lists.

A generic list entry ("milk") has no product yet. Before planning a trip
each unchecked generic entry is searched across the user's stores, the
cheapest hit is preselected and every hit is kept as an alternative the
user may swap to. The searches write their prices into the session index
through the aggregator, so the optimizer sees them afterwards.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from models import AugmentedResult, CanonicalProduct, ListItem, OptimizeItem
from search_aggregator import SearchAggregator

logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    """Preselected products and alternatives per generic item id"""
    selections: Dict[str, Optional[CanonicalProduct]] = field(default_factory=dict)
    alternatives: Dict[str, List[AugmentedResult]] = field(default_factory=dict)


def cheapest_result(results: Sequence[AugmentedResult]) -> Optional[AugmentedResult]:
    """Lowest-priced result; the earliest one wins on equal prices."""
    best = None
    for result in results:
        if best is None or result.price < best.price:
            best = result
    return best


async def resolve_generic_items(
    items: Sequence[ListItem],
    aggregator: SearchAggregator,
    store_ids: Sequence[str],
) -> Resolution:
    """
    Search every unchecked generic item concurrently.

    Args:
        items: Shopping list entries
        aggregator: Aggregator bound to the session price index
        store_ids: User's selected stores

    Returns:
        Resolution with a selection (or None) for each generic item
    """
    generic_items = [item for item in items if item.is_generic and not item.is_checked]
    resolution = Resolution()
    if not generic_items:
        return resolution

    searches = await asyncio.gather(
        *(aggregator.search(item.name, store_ids) for item in generic_items)
    )

    for item, results in zip(generic_items, searches):
        best = cheapest_result(results)
        resolution.selections[item.id] = best.product if best else None
        if results:
            resolution.alternatives[item.id] = list(results)
        else:
            logger.info(f"No products found for generic item '{item.name}'")

    found = sum(1 for product in resolution.selections.values() if product is not None)
    logger.info(f"✓ Resolved {found}/{len(generic_items)} generic items")
    return resolution


def finalize_items(
    items: Sequence[ListItem],
    selections: Mapping[str, Optional[CanonicalProduct]],
) -> List[OptimizeItem]:
    """
    Turn list entries into optimizer input.

    Checked entries are skipped; generic entries take their selected
    product, or are dropped when nothing was selected.
    """
    finalized = []
    for item in items:
        if item.is_checked:
            continue
        if item.is_generic:
            product = selections.get(item.id)
            if product is None:
                logger.debug(f"Dropping unresolved generic item '{item.name}'")
                continue
            item = item.resolved_with(product)

        finalized.append(
            OptimizeItem(
                id=item.id,
                product_id=item.product_id,
                name=item.name,
                quantity=item.quantity,
            )
        )
    return finalized
