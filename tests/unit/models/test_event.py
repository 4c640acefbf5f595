import pytest
from pydantic import ValidationError

from linksync.models.enums import LinkEventKind
from linksync.models.event import LinkEvent


def test_event_parses_wire_payload() -> None:
    event = LinkEvent.model_validate(
        {
            "instanceId": "inst_1",
            "kind": "record:save",
            "eventData": {
                "modelId": "m1",
                "record": {"_id": "r1", "modelId": "m1", "values": {"books": ["b1"]}},
            },
        }
    )

    assert event.kind == LinkEventKind.RECORD_SAVED
    assert event.model_id == "m1"
    assert event.event_data.model is None
    assert event.event_data.record.record_id == "r1"


def test_event_rejects_unknown_kind() -> None:
    with pytest.raises(ValidationError):
        LinkEvent.model_validate(
            {"instanceId": "inst_1", "kind": "record:archive", "eventData": {"modelId": "m1"}}
        )
