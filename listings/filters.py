"""Sort translation and local listing filters"""
from typing import Dict, Iterable, List, Optional, Tuple

from models import Filter, Listing, SortOption

# Sort option -> (sortBy, orderBy) query parameters of the orders endpoint
SORT_PARAMS: Dict[SortOption, Tuple[str, str]] = {
    SortOption.PRICE_ASC: ('price', 'asc'),
    SortOption.PRICE_DESC: ('price', 'desc'),
    SortOption.RECENT: ('endTime', 'desc'),
    SortOption.OLDEST: ('endTime', 'asc'),
}

def sort_params(sort: Optional[SortOption]) -> Tuple[Optional[str], Optional[str]]:
    """Translate a sort option into upstream ``(sortBy, orderBy)``"""
    if sort is None:
        return None, None
    return SORT_PARAMS[SortOption(sort)]

def apply_filters(listings: Iterable[Listing], filters: Optional[Filter]) -> List[Listing]:
    """Apply the filters the orders endpoint cannot express.

    Applied in order: ``min_price``, ``max_price`` (both inclusive, in
    smallest units), then ``search`` as a case-insensitive substring of the
    asset name or collection id. Input order is preserved.
    """
    result = list(listings)
    if filters is None:
        return result

    if filters.min_price is not None:
        result = [item for item in result if item.price >= filters.min_price]
    if filters.max_price is not None:
        result = [item for item in result if item.price <= filters.max_price]
    if filters.search:
        needle = filters.search.lower()
        result = [
            item for item in result
            if needle in item.asset.name.lower()
            or needle in item.asset.collection_id.lower()
        ]
    return result
