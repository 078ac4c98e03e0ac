"""General Conditions enrichment.

Derives project-wide logistics items (debris hauling, supervision,
containment, ...) from the shape of the scope alone. Every rule is guarded by
the codes already present in the General Conditions room, so re-running the
engine over its own output adds nothing.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Set

from fieldscope.ids import IdGenerator, new_id
from fieldscope.models import Activity, Confidence, LineItem, RoomData, clamp_severity, fold_room_items
from fieldscope.utils import get_logger

logger = get_logger(__name__)

GENERAL_CONDITIONS_NAME = "General Conditions"
GENERAL_CONDITIONS_NARRATIVE = "Logistics and project management items inferred from scope severity and complexity."
RULE_REASONING = "Logistics Engine Rule: Calculated based on scope volume/complexity."

DUMPSTER_THRESHOLD = 500
LOAD_SIZE = 150
CABINET_DEMO_ALLOWANCE = 20
CONTENTS_ITEM_THRESHOLD = 3

DEMOLITION_CATEGORIES = {"DMO", "DMG"}
FLOORING_CATEGORIES = {"FCW", "FCV", "FCC", "FCT"}
# Not counted as trades for supervision
NON_TRADE_CATEGORIES = {"DMO", "CLN", "TMP", "LAB", "WTR"}
DRYING_EQUIPMENT_SELECTORS = {"DHU", "DRY", "DHM", "AFAN"}


@dataclass
class ScopeStats:
    demo_qty: float = 0.0
    implicit_demo_qty: float = 0.0
    rooms_with_contents: int = 0
    rooms_with_equipment: int = 0
    has_water_items: bool = False
    trade_categories: Set[str] = field(default_factory=set)


def _is_drying_equipment(item: LineItem) -> bool:
    return item.category == "WTR" and re.sub(r"[^A-Z]", "", item.selector.upper()) in DRYING_EQUIPMENT_SELECTORS


def gather_stats(rooms: List[RoomData]) -> ScopeStats:
    """Collect rule inputs across the non-General-Conditions rooms."""
    stats = ScopeStats()
    for r in rooms:
        if r.is_general:
            continue
        for it in r.items:
            if it.activity == Activity.REMOVE or it.category in DEMOLITION_CATEGORIES:
                stats.demo_qty += it.quantity
            # Installing new material implies the old one came out first
            if it.activity == Activity.REPLACE:
                if it.category in FLOORING_CATEGORIES or it.category == "DRY":
                    stats.implicit_demo_qty += it.quantity
                elif it.category == "CAB":
                    stats.implicit_demo_qty += CABINET_DEMO_ALLOWANCE
            if it.category == "WTR":
                stats.has_water_items = True
            if it.category not in NON_TRADE_CATEGORIES:
                stats.trade_categories.add(it.category)
        if len(r.items) >= CONTENTS_ITEM_THRESHOLD:
            stats.rooms_with_contents += 1
        if any(_is_drying_equipment(it) for it in r.items):
            stats.rooms_with_equipment += 1
    stats.demo_qty += stats.implicit_demo_qty
    return stats


def _logistics_item(gen: IdGenerator, category: str, selector: str, description: str, quantity: float, unit: str) -> LineItem:
    return LineItem(
        id=gen(),
        category=category,
        selector=selector,
        description=description,
        activity=Activity.REPLACE,
        quantity=quantity,
        quantity_inference="Auto-Calculated",
        unit=unit,
        reasoning=RULE_REASONING,
        confidence=Confidence.HIGH,
    )


def enrich(
    rooms: List[RoomData],
    severity: Any,
    context: str = "Interior",
    loss_type: str = "Water",
    job_type: str = "R",
    *,
    ids: Optional[IdGenerator] = None,
    dumpster_threshold: float = DUMPSTER_THRESHOLD,
    load_size: float = LOAD_SIZE,
) -> List[RoomData]:
    """Return a copy of ``rooms`` with General Conditions items appended.

    The General Conditions room is located by name (or created) and always
    placed first; any further General Conditions rooms fold into it. No other
    room is changed. A non-numeric severity counts as 5.
    """
    gen = ids or new_id
    severity = clamp_severity(severity)

    general: Optional[RoomData] = None
    out: List[RoomData] = []
    for r in rooms:
        r = r.model_copy(deep=True)
        if not r.is_general:
            out.append(r)
        elif general is None:
            general = r
        else:
            logger.warning("logistics.enrich: folding extra General Conditions room \"%s\"", r.name)
            general = fold_room_items(general, r)
    if general is None:
        general = RoomData(
            id=gen(),
            name=GENERAL_CONDITIONS_NAME,
            narrative_synthesis=GENERAL_CONDITIONS_NARRATIVE,
        )

    stats = gather_stats(out)
    loss = (loss_type or "").lower()
    is_mitigation = job_type == "E" or stats.has_water_items

    existing = {it.code for it in general.items}
    new_items: List[LineItem] = []

    def add(category: str, selector: str, description: str, quantity: float, unit: str) -> None:
        code = f"{category} {selector}"
        if code in existing:
            return
        existing.add(code)
        new_items.append(_logistics_item(gen, category, selector, description, quantity, unit))

    # 1. Debris removal: dumpster vs pickup loads
    if stats.demo_qty > dumpster_threshold:
        add("DMO", "DTRLR", "Dumpster load - approx. 30 yards, inc. dump fees", 1, "EA")
    elif stats.demo_qty > 0:
        loads = max(1, math.ceil(stats.demo_qty / load_size))
        add("DMO", "DBR", "Debris Removal - pickup or trailer load", loads, "EA")

    # 2. Portable toilet
    if "fire" in loss or "smoke" in loss or severity >= 9:
        add("TMP", "TLT", "Portable toilet rental - per month", 1, "MO")

    # 3. Supervision
    trades = len(stats.trade_categories)
    if trades > 2:
        add("LAB", "SUP", f"Residential Supervision ({trades} trades)", trades * 4, "HR")

    # 4. Temporary fencing
    if context == "Exterior" and severity > 7:
        add("TMP", "FNC", "Temporary fencing - chain link", 100, "LF")

    # 5. Containment & negative air, always as a pair
    if stats.demo_qty > 0 or severity >= 5 or "mold" in loss or "sewage" in loss:
        add("WTR", "BARR", "Containment Barrier - plastic", 150, "SF")
        add("WTR", "NAFAN", "Negative air fan/scrubber", 3, "EA")

    # 6. Equipment setup
    if stats.rooms_with_equipment > 0:
        hours = max(2, 2 + stats.rooms_with_equipment * 0.5)
        add("WTR", "EQ", "Equipment setup, take down, and monitoring", hours, "HR")

    # 7. Emergency service call
    if is_mitigation:
        add("WTR", "ESRVD", "Emergency service call - during business hours", 1, "EA")

    # 8. Floor protection
    if stats.demo_qty > 0 or is_mitigation:
        add("DMO", "MASKFL", "Masking - floor - per square foot (Walkway)", 150, "SF")

    # 9. Content manipulation
    if (is_mitigation or stats.implicit_demo_qty > 100) and stats.rooms_with_contents > 0:
        add("CON", "ROOM", "Content Manipulation - Average Room (Move & Reset)", stats.rooms_with_contents, "EA")

    general = general.model_copy(update={"items": [*general.items, *new_items]})
    logger.info(
        "logistics.enrich: demo_qty=%.1f implicit=%.1f trades=%d mitigation=%s added=%s",
        stats.demo_qty,
        stats.implicit_demo_qty,
        trades,
        is_mitigation,
        [it.code for it in new_items],
    )
    return [general, *out]
