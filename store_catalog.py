"""
Static catalog of supported retailers.

The catalog is loaded once at import and never mutated. User store
selections are validated against it before reaching the aggregator,
price index or optimizer.
"""

from typing import Dict, Iterable, List

from models import Store

WOOLWORTHS_ID = "store-woolworths"
COLES_ID = "store-coles"
ALDI_ID = "store-aldi"

ALL_STORES = (
    Store(
        id=WOOLWORTHS_ID,
        name="Woolworths",
        chain="Woolworths",
        logo_url="https://e7.pngegg.com/pngimages/87/110/png-clipart-logo-woolworths-supermarkets-brand-woolworths-epsom-woolworths-st-clair-netball-text-trademark.png",
    ),
    Store(
        id=COLES_ID,
        name="Coles",
        chain="Coles",
        logo_url="https://e7.pngegg.com/pngimages/792/16/png-clipart-brand-logo-coles-upper-coomera-coles-supermarkets-coles-robina-palm-reading-signs-red-text-trademark.png",
    ),
    Store(
        id=ALDI_ID,
        name="ALDI",
        chain="ALDI",
        logo_url="https://p7.hiclipart.com/preview/687/518/570/aldi-grocery-store-supermarket-chicago-company-aldi-logo.jpg",
    ),
)

_STORES_BY_ID: Dict[str, Store] = {store.id: store for store in ALL_STORES}


class UnknownStoreError(ValueError):
    """Raised when a store id is not part of the catalog"""

    def __init__(self, store_id: str):
        self.store_id = store_id
        super().__init__(f"Unknown store id: {store_id!r}")


def is_known_store(store_id: str) -> bool:
    return store_id in _STORES_BY_ID


def get_store(store_id: str) -> Store:
    """
    Look up a catalog store.

    Raises:
        UnknownStoreError: If ``store_id`` is not in the catalog
    """
    try:
        return _STORES_BY_ID[store_id]
    except KeyError:
        raise UnknownStoreError(store_id) from None


def validate_store_ids(store_ids: Iterable[str]) -> List[str]:
    """
    Validate a user store selection.

    Duplicates are removed while keeping the first position, since the
    optimizer breaks price ties by selection order.

    Raises:
        UnknownStoreError: On the first id that is not in the catalog
    """
    selected: List[str] = []
    for store_id in store_ids:
        get_store(store_id)
        if store_id not in selected:
            selected.append(store_id)
    return selected
