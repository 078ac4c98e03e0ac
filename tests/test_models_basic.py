from fieldscope.models import Activity, Confidence, LineItem, ProjectMetadata, RoomData, parse_code


def test_activity_accepts_symbols_and_names():
    assert LineItem(activity="-").activity == Activity.REMOVE
    assert LineItem(activity="+").activity == Activity.REPLACE
    assert LineItem(activity="&").activity == Activity.DETACH_RESET
    assert LineItem(activity="Detach & Reset").activity == Activity.DETACH_RESET
    assert LineItem(activity="remove").activity == Activity.REMOVE
    assert LineItem(activity="demolish").activity == Activity.REPLACE
    assert Activity.REMOVE.symbol == "-"


def test_confidence_and_quantity_coercion():
    assert LineItem(confidence="High").confidence == Confidence.HIGH
    assert LineItem(confidence=None).confidence == Confidence.MEDIUM
    assert LineItem(quantity="12.5").quantity == 12.5
    assert LineItem(quantity="lots").quantity == 0.0
    assert LineItem(quantity=-3).quantity == 0.0
    assert LineItem(quantity=float("nan")).quantity == 0.0


def test_code_is_computed_and_split_from_raw_code():
    item = LineItem.model_validate({"code": "WTR DHM", "quantity": 3})
    assert (item.category, item.selector) == ("WTR", "DHM")
    assert item.code == "WTR DHM"
    assert item.model_dump()["code"] == "WTR DHM"
    assert parse_code("EXTW") == ("UNK", "EXTW")
    assert parse_code("dmo fnc bbb") == ("DMO", "FNC BBB")


def test_ids_are_generated_when_missing():
    a = LineItem()
    b = LineItem(id="")
    assert a.id and b.id and a.id != b.id
    assert RoomData(name="Kitchen").id


def test_room_tolerates_malformed_fields():
    room = RoomData.model_validate({
        "name": None,
        "timestamp_in": 42,
        "flagged_issues": ["mold", "mold", None, "odor"],
        "items": [{"category": "WTR", "selector": "EXTW"}, "garbage", 7],
    })
    assert room.name == ""
    assert room.timestamp_in == "42"
    assert room.flagged_issues == ["mold", "odor"]
    assert len(room.items) == 1


def test_general_conditions_detection():
    assert RoomData(name="General Conditions").is_general
    assert RoomData(name="LOGISTICS").is_general
    assert not RoomData(name="Kitchen").is_general


def test_metadata_severity_is_clamped():
    assert ProjectMetadata(severity_score=14).severity_score == 10
    assert ProjectMetadata(severity_score="x").severity_score == 5
    assert ProjectMetadata(loss_type_inference=None).loss_type_inference == "Water"
