from __future__ import annotations

from typing import List, Optional

from fieldscope.models import LineItem
from fieldscope.utils import get_logger
from fieldscope.vocabulary import Vocabulary, default_vocabulary

logger = get_logger(__name__)


def audit_gaps(items: List[LineItem], vocabulary: Optional[Vocabulary] = None) -> List[str]:
    """Warn about known pairings that are incomplete (e.g. extraction without germicide).

    Informational only; the items are not touched.
    """
    vocab = vocabulary or default_vocabulary()
    codes = {f"{it.category} {it.selector}" for it in items}

    warnings: List[str] = []
    for rule in vocab.gap_rules:
        if rule.when in codes and not any(c in codes for c in rule.requires_any):
            warnings.append(rule.message)

    logger.info("audit.gaps: codes=%d flags=%d", len(codes), len(warnings))
    return warnings
