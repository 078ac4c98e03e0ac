from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

import numpy as np
from sklearn.preprocessing import MultiLabelBinarizer

from fieldscope.ids import IdGenerator, new_id
from fieldscope.models import LineItem, RoomData, fold_room_items
from fieldscope.utils import get_logger

logger = get_logger(__name__)

SIMILARITY_THRESHOLD = 0.75
REVIEW_THRESHOLD = 0.6
MAX_MERGE_PASSES = 5
NARRATIVE_CAP = 250
NO_DAMAGE_MARKER = "No Visible Damage"
DEFAULT_TYPE_LIMITS: Dict[str, int] = {
    "bathroom": 3,
    "kitchen": 2,
    "laundry": 2,
    "garage": 2,
}

# Order matters: first match wins ("Master Bath" is a bathroom).
ROOM_TYPE_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("bathroom", re.compile(r"bath(room)?|powder|restroom|wc|lavatory|half\s*bath", re.I)),
    ("bedroom", re.compile(r"bed(room)?|master|guest\s*room|nursery", re.I)),
    ("kitchen", re.compile(r"kitchen|kitchenette", re.I)),
    ("living", re.compile(r"living|family|great\s*room|den|lounge", re.I)),
    ("laundry", re.compile(r"laundry|utility|mud\s*room", re.I)),
    ("hallway", re.compile(r"hall(way)?|corridor|passage|foyer|entry", re.I)),
    ("garage", re.compile(r"garage|carport", re.I)),
    ("basement", re.compile(r"basement|cellar|lower\s*level", re.I)),
    ("office", re.compile(r"office|study|home\s*office|workspace", re.I)),
    ("dining", re.compile(r"dining|breakfast\s*nook", re.I)),
    ("closet", re.compile(r"closet|storage|pantry|wardrobe", re.I)),
]

FLOORING_CATEGORIES = ("FCC", "FCV", "FCW", "FCT")


@dataclass
class DedupResult:
    rooms: List[RoomData] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    merge_count: int = 0


# ---------- Room classification ----------

def room_type(name: str) -> str:
    """Bucket a room name ("Bathroom 2" -> "bathroom")."""
    normalized = (name or "").lower().strip()
    for rtype, pattern in ROOM_TYPE_PATTERNS:
        if pattern.search(normalized):
            return rtype
    # Fallback: first word, digits stripped
    return re.split(r"[\s\d]+", normalized)[0] or "unknown"


def room_number(name: str) -> int:
    """Trailing ordinal of a room name ("Bathroom 2" -> 2), 999 when absent."""
    numbers = re.findall(r"\d+", name or "")
    return int(numbers[-1]) if numbers else 999


# ---------- Signatures & similarity ----------

def _quantity_bucket(qty: float) -> str:
    if qty <= 10:
        return "S"
    if qty <= 50:
        return "M"
    if qty <= 100:
        return "L"
    if qty <= 500:
        return "XL"
    return "XXL"


def item_signature(items: List[LineItem]) -> Set[str]:
    out = set()
    for it in items:
        clean_selector = re.sub(r"[^A-Z0-9]", "", (it.selector or "").upper())
        out.add(f"{it.category}:{clean_selector}:{_quantity_bucket(it.quantity)}")
    return out


def similarity(room_a: RoomData, room_b: RoomData) -> float:
    """Jaccard coefficient of the two rooms' item signatures."""
    if not room_a.items and not room_b.items:
        # both inspected, no damage
        return 1.0
    if not room_a.items or not room_b.items:
        return 0.0
    sig_a = item_signature(room_a.items)
    sig_b = item_signature(room_b.items)
    return len(sig_a & sig_b) / len(sig_a | sig_b)


def similarity_matrix(rooms: List[RoomData]) -> np.ndarray:
    """Pairwise Jaccard similarities; agrees with :func:`similarity` entry by entry."""
    n = len(rooms)
    if n == 0:
        return np.zeros((0, 0), dtype=float)
    sigs = [sorted(item_signature(r.items)) for r in rooms]
    if not any(sigs):
        return np.ones((n, n), dtype=float)
    x = MultiLabelBinarizer().fit_transform(sigs).astype(float)
    inter = x @ x.T
    sizes = x.sum(axis=1)
    union = sizes[:, None] + sizes[None, :] - inter
    return np.divide(inter, union, out=np.ones_like(inter), where=union > 0)


def are_likely_duplicates(room_a: RoomData, room_b: RoomData, *, threshold: float = SIMILARITY_THRESHOLD) -> bool:
    if room_a.is_general or room_b.is_general:
        return False
    if room_type(room_a.name) != room_type(room_b.name):
        return False
    return similarity(room_a, room_b) >= threshold


# ---------- Merge ----------

def merge_rooms(
    room_a: RoomData,
    room_b: RoomData,
    *,
    ids: Optional[IdGenerator] = None,
    narrative_cap: int = NARRATIVE_CAP,
) -> RoomData:
    """Merge two duplicate rooms; the lower-numbered room keeps its id and name."""
    gen = ids or new_id
    if room_number(room_a.name) <= room_number(room_b.name):
        primary, secondary = room_a, room_b
    else:
        primary, secondary = room_b, room_a

    by_key: Dict[str, LineItem] = {}
    for it in [*primary.items, *secondary.items]:
        key = f"{it.category}:{it.selector}"
        existing = by_key.get(key)
        if existing is None:
            by_key[key] = it.model_copy(update={"id": gen()})
        elif it.quantity > existing.quantity:
            by_key[key] = it.model_copy(update={"id": existing.id})

    narratives: List[str] = []
    for text in (primary.narrative_synthesis, secondary.narrative_synthesis):
        if text and text.strip() and text not in narratives:
            narratives.append(text)

    return primary.model_copy(
        update={
            "timestamp_in": primary.timestamp_in or secondary.timestamp_in,
            "timestamp_out": primary.timestamp_out or secondary.timestamp_out,
            "dimensions_estimated": primary.dimensions_estimated or secondary.dimensions_estimated,
            "narrative_synthesis": " ".join(narratives)[:narrative_cap],
            "flagged_issues": list(dict.fromkeys([*primary.flagged_issues, *secondary.flagged_issues])),
            "items": list(by_key.values()),
        }
    )


# ---------- Diagnostics ----------

def detect_patterns(
    rooms: List[RoomData],
    *,
    merge_threshold: float = SIMILARITY_THRESHOLD,
    review_threshold: float = REVIEW_THRESHOLD,
    type_limits: Optional[Dict[str, int]] = None,
) -> Tuple[List[RoomData], List[str]]:
    """Flag hallucination patterns on the pre-merge room list.

    Returns copies of the rooms (empty rooms get a "no damage" narrative
    prefix) together with the warning strings.
    """
    limits = DEFAULT_TYPE_LIMITS if type_limits is None else type_limits
    warnings: List[str] = []

    by_type: Dict[str, List[int]] = {}
    for idx, r in enumerate(rooms):
        by_type.setdefault(room_type(r.name), []).append(idx)

    for rtype, idxs in by_type.items():
        limit = limits.get(rtype)
        if limit and len(idxs) > limit:
            warnings.append(f"{len(idxs)} {rtype} rooms detected - verify the walkthrough shows multiple {rtype} rooms")

    for rtype, idxs in by_type.items():
        candidates = [rooms[i] for i in idxs if not rooms[i].is_general]
        if len(candidates) < 2:
            continue
        sims = similarity_matrix(candidates)
        for a in range(len(candidates)):
            for b in range(a + 1, len(candidates)):
                sim = float(sims[a, b])
                if review_threshold < sim < merge_threshold:
                    warnings.append(
                        f'"{candidates[a].name}" and "{candidates[b].name}" are {sim:.0%} similar'
                        " - verify they are different rooms"
                    )

    marked: List[RoomData] = []
    empty_names: List[str] = []
    for r in rooms:
        if not r.items and not r.is_general:
            empty_names.append(r.name)
            if NO_DAMAGE_MARKER not in r.narrative_synthesis:
                narrative = f"Inspected - {NO_DAMAGE_MARKER}. {r.narrative_synthesis}".strip()
                r = r.model_copy(update={"narrative_synthesis": narrative})
        marked.append(r.model_copy())
    if empty_names:
        warnings.append(f"{len(empty_names)} room(s) inspected with no damage: {', '.join(empty_names)}")

    return marked, warnings


def room_confidence(room: RoomData) -> int:
    """Reality score 0-100: how likely the room is a real, distinct space."""
    score = 100

    if len(room.items) > 20:
        score -= min(30, (len(room.items) - 20) * 2)

    # Carpet and vinyl in the same room is contradictory
    families = set()
    for it in room.items:
        if it.category in FLOORING_CATEGORIES:
            families.add(it.category)
        elif it.category == "WTR" and it.selector.startswith(FLOORING_CATEGORIES):
            families.add(it.selector[:3])
    if len(families) > 1:
        score -= 20

    if room.timestamp_in and room.timestamp_in != "00:00":
        score += 5
    if len(room.narrative_synthesis or "") > 20:
        score += 5

    return max(0, min(100, score))


# ---------- Entry point ----------

def sanitize_rooms(
    rooms: List[RoomData],
    *,
    merge_threshold: float = SIMILARITY_THRESHOLD,
    review_threshold: float = REVIEW_THRESHOLD,
    max_passes: int = MAX_MERGE_PASSES,
    narrative_cap: int = NARRATIVE_CAP,
    type_limits: Optional[Dict[str, int]] = None,
    ids: Optional[IdGenerator] = None,
) -> DedupResult:
    """Detect and merge ghost rooms.

    Merging repeats until a pass finds nothing or ``max_passes`` is hit; any
    near-duplicates left over surface through the review warnings only.
    """
    if not rooms:
        return DedupResult()

    marked, warnings = detect_patterns(
        rooms,
        merge_threshold=merge_threshold,
        review_threshold=review_threshold,
        type_limits=type_limits,
    )

    general: Optional[RoomData] = None
    working: List[RoomData] = []
    for r in marked:
        if not r.is_general:
            working.append(r)
        elif general is None:
            general = r
        else:
            general = fold_room_items(general, r)
            warnings.append(f'Folded duplicate General Conditions room "{r.name}" into "{general.name}"')

    merge_count = 0
    passes = 0
    did_merge = True
    while did_merge and passes < max_passes:
        did_merge = False
        passes += 1
        next_rooms: List[RoomData] = []
        consumed: Set[int] = set()
        for i in range(len(working)):
            if i in consumed:
                continue
            current = working[i]
            for j in range(i + 1, len(working)):
                if j in consumed:
                    continue
                other = working[j]
                if not are_likely_duplicates(current, other, threshold=merge_threshold):
                    continue
                sim = similarity(current, other)
                merged = merge_rooms(current, other, ids=ids, narrative_cap=narrative_cap)
                warnings.append(f'Merged "{current.name}" + "{other.name}" ({sim:.0%} similar) -> "{merged.name}"')
                current = merged
                consumed.add(j)
                did_merge = True
                merge_count += 1
            consumed.add(i)
            next_rooms.append(current)
        working = next_rooms

    if did_merge and passes >= max_passes:
        logger.warning("dedup.merge: pass limit reached passes=%d, remaining pairs left for review", passes)

    final_rooms = [general, *working] if general is not None else working
    if merge_count > 0:
        warnings.insert(0, f"Deduplication complete: {merge_count} ghost room(s) merged")

    logger.info(
        "dedup.merge: rooms=%d->%d merges=%d passes=%d warnings=%d",
        len(rooms),
        len(final_rooms),
        merge_count,
        passes,
        len(warnings),
    )
    return DedupResult(rooms=final_rooms, warnings=warnings, merge_count=merge_count)
