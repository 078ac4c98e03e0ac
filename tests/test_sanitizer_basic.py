from fieldscope.models import Confidence, LineItem
from fieldscope.stages.sanitizer import DOWNGRADE_MARKER, sanitize_item, sanitize_scope
from fieldscope.models import RoomData


def test_sanitize_strips_symbols_and_uppercases():
    out = sanitize_item(LineItem(category=" wtr ", selector="dhm>", confidence="High"))
    assert out.category == "WTR"
    assert out.selector == "DHM"
    assert out.code == "WTR DHM"
    assert out.confidence == Confidence.HIGH


def test_sanitize_applies_aliases_and_overrides():
    assert sanitize_item(LineItem(category="PNT", selector="WALL-")).code == "PNT P2"
    assert sanitize_item(LineItem(category="PNT", selector="W")).code == "PNT P2"
    assert sanitize_item(LineItem(category="FCC", selector="AV-")).code == "FCC AV"
    assert sanitize_item(LineItem(category="FLR", selector="")).code == "FCC AV"


def test_bare_category_alias_needs_empty_selector():
    out = sanitize_item(LineItem(category="FLR", selector="LVT", confidence="High"))
    assert out.code == "FLR LVT"
    assert out.confidence == Confidence.LOW
    assert "Auto-Downgraded: Code FLR not in standard database" in out.reasoning


def test_unknown_category_is_downgraded_and_reasoning_appended():
    item = LineItem(category="XYZ", selector="ABC", confidence="High", reasoning="Seen in frame 12")
    out = sanitize_item(item)
    assert out.confidence == Confidence.LOW
    assert out.reasoning.startswith("Seen in frame 12")
    assert "Auto-Downgraded: Code XYZ not in standard database" in out.reasoning
    # input untouched
    assert item.confidence == Confidence.HIGH
    assert item.category == "XYZ"


def test_empty_codes_fall_back_to_unk():
    out = sanitize_item(LineItem(category="", selector="--"))
    assert out.category == "UNK"
    assert out.selector == "UNK"
    assert out.confidence == Confidence.LOW


def test_sanitize_is_idempotent():
    items = [
        LineItem(category="xyz", selector="a-b-", confidence="Medium"),
        LineItem(category="PNT", selector="WALL-", reasoning="paint"),
        LineItem(category="FLR", selector=""),
        LineItem(category="", selector=""),
    ]
    for item in items:
        once = sanitize_item(item)
        twice = sanitize_item(once)
        assert twice == once
        assert twice.reasoning.count(DOWNGRADE_MARKER) <= 1


def test_sanitize_never_upgrades_confidence():
    out = sanitize_item(LineItem(category="WTR", selector="EXTW", confidence="Low"))
    assert out.confidence == Confidence.LOW
    assert DOWNGRADE_MARKER not in out.reasoning


def test_sanitize_scope_keeps_room_identity():
    room = RoomData(id="r1", name="Kitchen", items=[LineItem(id="i1", category="dry", selector="1/2")])
    out = sanitize_scope([room])
    assert out[0].id == "r1"
    assert out[0].items[0].id == "i1"
    assert out[0].items[0].code == "DRY 12"
    assert room.items[0].category == "dry"
