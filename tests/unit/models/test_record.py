import pytest
from pydantic import ValidationError

from linksync.models.record import Record


def _make_record(values: dict | None = None) -> Record:
    return Record(record_id="r1", model_id="m1", values=values or {})


def test_link_ids_deduplicates_preserving_order() -> None:
    record = _make_record({"books": ["b2", "b1", "b2", "b3", "b1"]})

    assert record.link_ids("books") == ["b2", "b1", "b3"]


def test_link_ids_for_absent_field_is_empty() -> None:
    record = _make_record({"full_name": "Ursula"})

    assert record.link_ids("books") == []


def test_link_ids_for_null_value_is_empty() -> None:
    record = _make_record({"books": None})

    assert record.link_ids("books") == []


def test_link_ids_accepts_single_id() -> None:
    record = _make_record({"books": "b1"})

    assert record.link_ids("books") == ["b1"]


@pytest.mark.parametrize("value", [5, {"id": "b1"}])
def test_link_ids_rejects_non_list_value(value: object) -> None:
    record = _make_record({"books": value})

    with pytest.raises(ValueError, match="books"):
        record.link_ids("books")


def test_record_requires_identifiers() -> None:
    with pytest.raises(ValidationError):
        Record(record_id="", model_id="m1")


def test_record_parses_wire_format() -> None:
    record = Record.model_validate({"_id": "r1", "_rev": "1-a", "modelId": "m1", "values": {"books": ["b1"]}})

    assert record.record_id == "r1"
    assert record.rev == "1-a"
    assert record.to_record()["modelId"] == "m1"
