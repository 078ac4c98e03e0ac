"""Estimate data models.

Rooms and line items arrive from an upstream generator that does not always
follow its own schema, so every field coerces to a safe sentinel instead of
rejecting the payload.
"""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from fieldscope.ids import new_id


# =============================================================================
# ENUMS
# =============================================================================


class Activity(str, Enum):
    """Estimating activity for a line item."""

    REMOVE = "REMOVE"
    REPLACE = "REPLACE"
    DETACH_RESET = "DETACH_RESET"

    @property
    def symbol(self) -> str:
        return _ACTIVITY_TO_SYMBOL[self]


_ACTIVITY_TO_SYMBOL = {
    Activity.REMOVE: "-",
    Activity.REPLACE: "+",
    Activity.DETACH_RESET: "&",
}
_SYMBOL_TO_ACTIVITY = {v: k for k, v in _ACTIVITY_TO_SYMBOL.items()}


class Confidence(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ScopeContext(str, Enum):
    INTERIOR = "Interior"
    EXTERIOR = "Exterior"
    BOTH = "Both"


class JobType(str, Enum):
    RECONSTRUCTION = "R"
    EMERGENCY = "E"


# =============================================================================
# HELPERS
# =============================================================================


def parse_code(code: str, fallback_category: Optional[str] = None) -> Tuple[str, str]:
    """Split a combined code such as ``"WTR DHM"`` into category and selector."""
    parts = (code or "").strip().split()
    if len(parts) >= 2:
        return parts[0].upper(), " ".join(parts[1:]).upper()
    selector = parts[0].upper() if parts else ""
    return (fallback_category or "UNK").upper(), selector


def is_general_conditions(name: Optional[str]) -> bool:
    lowered = (name or "").lower()
    return "general" in lowered or "logistics" in lowered


DEFAULT_SEVERITY = 5


def clamp_severity(value: Any, default: int = DEFAULT_SEVERITY) -> int:
    """Round to an int in 1..10; non-numeric input gives ``default``."""
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return default
    return max(1, min(10, score))


def _as_text(v: Any) -> str:
    if v is None:
        return ""
    return str(v)


# =============================================================================
# LINE ITEMS & ROOMS
# =============================================================================


class LineItem(BaseModel):
    """One estimating entry."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=new_id)
    category: str = Field("", description="Category code, e.g. 'WTR'")
    selector: str = Field("", description="Selector code, e.g. 'DHM'")
    description: str = ""
    activity: Activity = Activity.REPLACE
    quantity: float = Field(0.0, ge=0)
    quantity_inference: str = ""
    unit: str = ""
    reasoning: str = Field("", description="Audit trail; automated rules only append")
    confidence: Confidence = Confidence.MEDIUM

    @computed_field  # type: ignore[misc]
    @property
    def code(self) -> str:
        return f"{self.category} {self.selector}"

    @model_validator(mode="before")
    @classmethod
    def _split_combined_code(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("code") and not (data.get("category") or data.get("selector")):
            category, selector = parse_code(str(data["code"]))
            data = {**data, "category": category, "selector": selector}
        return data

    @field_validator("id", mode="before")
    @classmethod
    def _fill_id(cls, v: Any) -> str:
        return str(v) if v else new_id()

    @field_validator("category", "selector", "description", "quantity_inference", "unit", "reasoning", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return _as_text(v)

    @field_validator("activity", mode="before")
    @classmethod
    def _coerce_activity(cls, v: Any) -> Activity:
        if isinstance(v, Activity):
            return v
        raw = _as_text(v).strip()
        if raw in _SYMBOL_TO_ACTIVITY:
            return _SYMBOL_TO_ACTIVITY[raw]
        key = re.sub(r"[^A-Z]+", "_", raw.upper()).strip("_")
        if key == "D_R":
            return Activity.DETACH_RESET
        try:
            return Activity(key)
        except ValueError:
            return Activity.REPLACE

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, v: Any) -> Confidence:
        if isinstance(v, Confidence):
            return v
        try:
            return Confidence(_as_text(v).strip().upper())
        except ValueError:
            return Confidence.MEDIUM

    @field_validator("quantity", mode="before")
    @classmethod
    def _coerce_quantity(cls, v: Any) -> float:
        try:
            qty = float(v)
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(qty) or qty < 0:
            return 0.0
        return qty


class RoomData(BaseModel):
    """One physical space and its line items."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=new_id)
    name: str = ""
    timestamp_in: Optional[str] = None
    timestamp_out: Optional[str] = None
    dimensions_estimated: Optional[str] = None
    narrative_synthesis: str = ""
    flagged_issues: List[str] = Field(default_factory=list)
    items: List[LineItem] = Field(default_factory=list)

    @property
    def is_general(self) -> bool:
        return is_general_conditions(self.name)

    @field_validator("id", mode="before")
    @classmethod
    def _fill_id(cls, v: Any) -> str:
        return str(v) if v else new_id()

    @field_validator("name", "narrative_synthesis", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return _as_text(v)

    @field_validator("timestamp_in", "timestamp_out", "dimensions_estimated", mode="before")
    @classmethod
    def _coerce_optional_text(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("flagged_issues", mode="before")
    @classmethod
    def _coerce_flags(cls, v: Any) -> List[str]:
        if not v:
            return []
        if not isinstance(v, (list, tuple, set)):
            v = [v]
        return list(dict.fromkeys(str(x) for x in v if x))

    @field_validator("items", mode="before")
    @classmethod
    def _drop_malformed_items(cls, v: Any) -> list:
        if not v or not isinstance(v, (list, tuple)):
            return []
        return [x for x in v if isinstance(x, (dict, LineItem))]


class ProjectMetadata(BaseModel):
    """Job-level inference that accompanies the room list."""

    model_config = ConfigDict(extra="ignore")

    loss_type_inference: str = "Water"
    severity_score: int = Field(5, ge=1, le=10)
    confidence_level: Confidence = Confidence.MEDIUM

    @field_validator("loss_type_inference", mode="before")
    @classmethod
    def _coerce_loss_type(cls, v: Any) -> str:
        return _as_text(v) or "Water"

    @field_validator("severity_score", mode="before")
    @classmethod
    def _clamp_severity(cls, v: Any) -> int:
        return clamp_severity(v)

    @field_validator("confidence_level", mode="before")
    @classmethod
    def _coerce_confidence(cls, v: Any) -> Confidence:
        try:
            return Confidence(_as_text(v).strip().upper())
        except ValueError:
            return Confidence.MEDIUM


def fold_room_items(container: RoomData, extra: RoomData) -> RoomData:
    """Append ``extra``'s items to ``container``, skipping codes already present."""
    present = {it.code for it in container.items}
    added: List[LineItem] = []
    for it in extra.items:
        if it.code not in present:
            present.add(it.code)
            added.append(it)
    return container.model_copy(update={"items": [*container.items, *added]})
