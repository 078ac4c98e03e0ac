from fieldscope.models import LineItem
from fieldscope.stages.audit import audit_gaps


def _items(*codes):
    return [LineItem(category=c.split()[0], selector=c.split()[1], quantity=1) for c in codes]


def test_extraction_without_antimicrobial_flagged_once():
    warnings = audit_gaps(_items("WTR EXTW", "WTR DHM"))
    assert len(warnings) == 1
    assert "antimicrobial" in warnings[0]
    assert "WTR EXTW" in warnings[0]


def test_antimicrobial_alternates_satisfy_pairing():
    assert audit_gaps(_items("WTR EXTW", "WTR GRD")) == []
    assert audit_gaps(_items("WTR EXTW", "WTR GRMIC")) == []


def test_carpet_without_pad_flagged():
    warnings = audit_gaps(_items("FCC AV"))
    assert warnings == ["Audit Flag: Carpet replaced (FCC AV) but Pad (FCC PAD) is missing."]
    assert audit_gaps(_items("FCC AV", "FCC PAD")) == []


def test_no_items_no_warnings():
    assert audit_gaps([]) == []
