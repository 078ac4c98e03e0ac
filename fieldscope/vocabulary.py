"""Controlled vocabulary for category/selector codes.

The tables live in ``data/vocabulary.yaml`` so they can be versioned and
swapped for fixture tables without touching the rules that consume them.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from fieldscope.utils import get_logger, load_yaml

logger = get_logger(__name__)

DEFAULT_VOCABULARY_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data", "vocabulary.yaml")
# Placeholder selector the sanitizer assigns when none was given
BARE_SELECTOR = "UNK"


class CategoryDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    description: str = ""


class CodeAlias(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    selector: str


class SelectorOverride(BaseModel):
    """Force ``selectors`` within ``category`` onto a single canonical selector."""

    model_config = ConfigDict(frozen=True)

    category: str
    selectors: List[str]
    selector: str


class GapRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    when: str
    requires_any: List[str] = Field(..., min_length=1)
    message: str


class Vocabulary(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str
    categories: Dict[str, CategoryDefinition]
    aliases: Dict[str, CodeAlias] = Field(default_factory=dict)
    overrides: List[SelectorOverride] = Field(default_factory=list)
    gap_rules: List[GapRule] = Field(default_factory=list)
    category_priority: Dict[str, int] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fill_category_codes(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("categories"), dict):
            cats = {}
            for code, body in data["categories"].items():
                body = dict(body or {})
                body.setdefault("code", code)
                cats[str(code)] = body
            data = {**data, "categories": cats}
        return data

    def category(self, code: str) -> Optional[CategoryDefinition]:
        if not code:
            return None
        return self.categories.get(code.strip().upper())

    def is_known_category(self, code: str) -> bool:
        return self.category(code) is not None

    def resolve_alias(self, category: str, selector: str) -> Tuple[str, str]:
        """Map a known hallucinated code to its corrected pair; unknown codes pass through.

        A bare-category key ("FLR") only matches when no selector came with it,
        so "FLR LVT" stays unknown and gets downgraded.
        """
        alias = self.aliases.get(f"{category} {selector}")
        if alias is None and selector in ("", BARE_SELECTOR):
            alias = self.aliases.get(category)
        if alias is None:
            return category, selector
        return alias.category, alias.selector

    def apply_overrides(self, category: str, selector: str) -> str:
        for rule in self.overrides:
            if rule.category == category and selector in rule.selectors:
                return rule.selector
        return selector


def load_vocabulary(path: str) -> Vocabulary:
    raw = load_yaml(path)
    try:
        vocab = Vocabulary.model_validate(raw or {})
    except ValidationError as e:
        raise ValueError(f"Vocabulary validation error in {path}: {e}") from e
    logger.info(
        "vocabulary loaded version=%s categories=%d aliases=%d gap_rules=%d",
        vocab.version,
        len(vocab.categories),
        len(vocab.aliases),
        len(vocab.gap_rules),
    )
    return vocab


@lru_cache(maxsize=1)
def default_vocabulary() -> Vocabulary:
    return load_vocabulary(DEFAULT_VOCABULARY_PATH)
