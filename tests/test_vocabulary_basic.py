import pytest

from fieldscope.models import Confidence, LineItem
from fieldscope.stages.audit import audit_gaps
from fieldscope.stages.sanitizer import sanitize_item
from fieldscope.vocabulary import default_vocabulary, load_vocabulary

FIXTURE = """
version: "test-1"
categories:
  ABC: {name: Alpha, description: first}
  XYZ: {name: Omega}
aliases:
  "ABC OLD": {category: ABC, selector: NEW}
  "LAZY": {category: XYZ, selector: ONE}
overrides:
  - category: XYZ
    selectors: [TWO, DOS]
    selector: "2"
gap_rules:
  - when: "ABC NEW"
    requires_any: ["XYZ 2"]
    message: "ABC NEW needs XYZ 2"
"""


@pytest.fixture()
def vocab(tmp_path):
    path = tmp_path / "vocab.yaml"
    path.write_text(FIXTURE, encoding="utf-8")
    return load_vocabulary(str(path))


def test_default_vocabulary_tables():
    v = default_vocabulary()
    assert v.version
    assert len(v.categories) >= 29
    assert v.category("wtr").name == "Water Extraction"
    assert v.category("WTR").code == "WTR"
    assert v.category("NOPE") is None
    assert v.resolve_alias("PNT", "WALL") == ("PNT", "P2")
    assert v.resolve_alias("DRY", "12") == ("DRY", "12")


def test_fixture_vocabulary_drives_sanitizer(vocab):
    assert sanitize_item(LineItem(category="abc", selector="old-"), vocab).code == "ABC NEW"
    assert sanitize_item(LineItem(category="lazy", selector=""), vocab).code == "XYZ ONE"
    assert vocab.resolve_alias("LAZY", "X") == ("LAZY", "X")
    assert sanitize_item(LineItem(category="XYZ", selector="dos"), vocab).code == "XYZ 2"
    # WTR is not in the fixture table
    out = sanitize_item(LineItem(category="WTR", selector="EXTW", confidence="High"), vocab)
    assert out.confidence == Confidence.LOW


def test_fixture_vocabulary_drives_audit(vocab):
    items = [LineItem(category="ABC", selector="NEW")]
    assert audit_gaps(items, vocab) == ["ABC NEW needs XYZ 2"]
    assert audit_gaps(items + [LineItem(category="XYZ", selector="2")], vocab) == []


def test_invalid_vocabulary_rejected(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("categories: {}\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_vocabulary(str(path))
