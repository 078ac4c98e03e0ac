from __future__ import annotations

import re
from typing import List, Optional

from fieldscope.models import Confidence, LineItem, RoomData
from fieldscope.utils import get_logger
from fieldscope.vocabulary import BARE_SELECTOR, Vocabulary, default_vocabulary

logger = get_logger(__name__)

DOWNGRADE_MARKER = "Auto-Downgraded"
UNKNOWN_CODE = BARE_SELECTOR

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def _clean_code(raw: str) -> str:
    return _NON_ALNUM.sub("", (raw or "").upper())


def sanitize_item(item: LineItem, vocabulary: Optional[Vocabulary] = None) -> LineItem:
    """Normalize an item's codes against the vocabulary.

    Never fails: an unknown category forces LOW confidence and appends a
    downgrade note to the reasoning, once.
    """
    vocab = vocabulary or default_vocabulary()

    selector_raw = (item.selector or "").strip()
    # "AV-" style template artifacts
    if selector_raw.endswith("-"):
        selector_raw = selector_raw[:-1]

    category = _clean_code(item.category) or UNKNOWN_CODE
    selector = _clean_code(selector_raw) or UNKNOWN_CODE

    category, selector = vocab.resolve_alias(category, selector)
    selector = vocab.apply_overrides(category, selector)

    confidence = item.confidence
    reasoning = item.reasoning or ""
    if not vocab.is_known_category(category):
        confidence = Confidence.LOW
        if DOWNGRADE_MARKER not in reasoning:
            reasoning = f"{reasoning} ({DOWNGRADE_MARKER}: Code {category} not in standard database)".strip()

    return item.model_copy(
        update={
            "category": category,
            "selector": selector,
            "confidence": confidence,
            "reasoning": reasoning,
        }
    )


def sanitize_items(items: List[LineItem], vocabulary: Optional[Vocabulary] = None) -> List[LineItem]:
    return [sanitize_item(it, vocabulary) for it in items]


def sanitize_scope(rooms: List[RoomData], vocabulary: Optional[Vocabulary] = None) -> List[RoomData]:
    out: List[RoomData] = []
    downgraded = 0
    total = 0
    for room in rooms:
        items = sanitize_items(room.items, vocabulary)
        total += len(items)
        downgraded += sum(
            1 for before, after in zip(room.items, items)
            if after.confidence == Confidence.LOW and before.confidence != Confidence.LOW
        )
        out.append(room.model_copy(update={"items": items}))
    logger.info("sanitize: rooms=%d items=%d downgraded=%d", len(out), total, downgraded)
    return out
