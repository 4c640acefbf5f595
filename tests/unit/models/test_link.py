from linksync.models.link import LinkDocument, LinkSide, make_link_document


def _make_link() -> LinkDocument:
    return make_link_document("m1", "books", "r1", "m2", "author", "b1")


def test_make_link_document_builds_both_sides() -> None:
    link = _make_link()

    assert link.side1 == LinkSide(model_id="m1", field_name="books", record_id="r1")
    assert link.side2 == LinkSide(model_id="m2", field_name="author", record_id="b1")
    assert link.link_id is None
    assert link.deleted is False


def test_identity_ignores_side_order() -> None:
    forward = _make_link()
    backward = make_link_document("m2", "author", "b1", "m1", "books", "r1")

    assert forward.identity() == backward.identity()


def test_other_side_is_found_from_either_direction() -> None:
    link = _make_link()

    assert link.other_side("m1", "books", "r1").record_id == "b1"
    assert link.other_side("m2", "author", "b1").record_id == "r1"
    assert link.other_side("m3") is None


def test_references_treats_none_as_wildcard() -> None:
    link = _make_link()

    assert link.references("m1")
    assert link.references("m2", record_id="b1")
    assert not link.references("m2", field_name="books")


def test_tombstone_serializes_deleted_flag() -> None:
    link = _make_link().with_identity("l1", "1-a").tombstone()

    record = link.to_record()

    assert record["_id"] == "l1"
    assert record["_rev"] == "1-a"
    assert record["_deleted"] is True
    assert record["side1"] == {"modelId": "m1", "fieldName": "books", "recordId": "r1"}
