from __future__ import annotations

from typing import List, Optional

from fieldscope.models import Activity, LineItem
from fieldscope.vocabulary import Vocabulary, default_vocabulary

UNRANKED = 99


def sort_scope_items(items: List[LineItem], vocabulary: Optional[Vocabulary] = None) -> List[LineItem]:
    """Order items by restoration sequence: mitigation, demo, dry, then rebuild.

    Within a category removals come first, then selectors alphabetically.
    """
    priority = (vocabulary or default_vocabulary()).category_priority

    def key(it: LineItem):
        return (
            priority.get(it.category, UNRANKED),
            0 if it.activity == Activity.REMOVE else 1,
            it.selector,
        )

    return sorted(items, key=key)
