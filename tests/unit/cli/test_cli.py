"""Tests for the linksync CLI."""

import json
from pathlib import Path

from typer.testing import CliRunner

from linksync.cli import app

runner = CliRunner()

AUTHOR = {
    "_id": "m1",
    "name": "Author",
    "schema": {"books": {"type": "link", "modelId": "m2", "fieldName": "author"}},
}
BOOK = {"_id": "m2", "name": "Book", "schema": {"title": {"type": "text"}}}


def _write_event(tmp_path: Path, name: str, kind: str, event_data: dict) -> str:
    path = tmp_path / f"{name}.json"
    path.write_text(json.dumps({"instanceId": "inst_1", "kind": kind, "eventData": event_data}))
    return str(path)


def _apply(data_dir: Path, event_file: str, *extra: str):
    return runner.invoke(app, ["apply", event_file, "--data-dir", str(data_dir), *extra])


def test_version() -> None:
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert result.output.startswith("linksync ")


def test_init_creates_instance_database(tmp_path: Path) -> None:
    result = runner.invoke(app, ["init", "inst_1", "--data-dir", str(tmp_path)])

    assert result.exit_code == 0
    assert (tmp_path / "inst_1.db").exists()


def test_apply_missing_file_fails(tmp_path: Path) -> None:
    result = _apply(tmp_path, str(tmp_path / "missing.json"))

    assert result.exit_code == 1


def test_apply_invalid_event_fails(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"kind": "record:save"}))

    result = _apply(tmp_path, str(path))

    assert result.exit_code == 1


def test_end_to_end_link_sync(tmp_path: Path) -> None:
    data_dir = tmp_path / "data"

    book = _apply(data_dir, _write_event(tmp_path, "book", "model:save", {"modelId": "m2", "model": BOOK}), "--persist")
    author = _apply(
        data_dir, _write_event(tmp_path, "author", "model:save", {"modelId": "m1", "model": AUTHOR}), "--persist"
    )
    record = _apply(
        data_dir,
        _write_event(
            tmp_path,
            "record",
            "record:save",
            {"modelId": "m1", "record": {"_id": "r1", "modelId": "m1", "values": {"books": ["b1", "b2"]}}},
        ),
        "--persist",
    )
    listed = runner.invoke(app, ["links", "inst_1", "m2", "--field", "author", "--data-dir", str(data_dir)])

    assert book.exit_code == 0
    assert "Skipped" in book.output
    assert author.exit_code == 0
    assert "updated 1 linked models" in author.output
    assert record.exit_code == 0
    assert "Created 2 links" in record.output
    assert listed.exit_code == 0
    lines = [json.loads(line) for line in listed.output.splitlines() if line.startswith("{")]
    assert sorted(line["side2"]["recordId"] for line in lines) == ["b1", "b2"]


def test_model_save_with_missing_linked_model_fails(tmp_path: Path) -> None:
    result = _apply(
        tmp_path / "data",
        _write_event(tmp_path, "author", "model:save", {"modelId": "m1", "model": AUTHOR}),
        "--persist",
    )

    assert result.exit_code == 1
    assert "Failed" in result.output
