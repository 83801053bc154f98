"""Integration tests for the prebrief CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest

from core.models import PersonDraft
from prebrief.cli import RESULT_SCHEMA_PATH, main as cli_main
from storage import SQLiteProfileStore


def _json_lines(stdout: str) -> list[dict]:
    """Parse JSON log lines emitted by CLI commands."""
    lines = [line.strip() for line in stdout.splitlines() if line.strip()]
    return [json.loads(line) for line in lines]


def _cli_events(stdout: str, event_type: str) -> list[dict]:
    return [item for item in _json_lines(stdout) if item["event_type"] == event_type]


@pytest.mark.integration
def test_resolve_twice_hits_exact_email(tmp_path, capsys):
    db_path = tmp_path / "prebrief.db"

    assert cli_main(["resolve", "sarah@insightpartners.com", "--db", str(db_path), "--run-id", "run-cli-1"]) == 0
    first = _cli_events(capsys.readouterr().out, "cli_resolve_completed")
    assert cli_main(["resolve", "sarah@insightpartners.com", "--db", str(db_path)]) == 0
    second = _cli_events(capsys.readouterr().out, "cli_resolve_completed")

    assert first[0]["run_id"] == "run-cli-1"
    assert first[0]["result"]["method"] == "domain_match"
    assert first[0]["result"]["company"]["name"] == "Insightpartners"
    assert first[0]["storage"] == {"type": "database", "available": True, "store": "sqlite"}
    assert second[0]["result"]["method"] == "exact_email"
    assert second[0]["result"]["person"]["id"] == first[0]["result"]["person"]["id"]


@pytest.mark.integration
def test_resolve_with_name_and_config(tmp_path, capsys):
    db_path = tmp_path / "prebrief.db"
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"internal_domain_marker": "acme"}), encoding="utf-8")

    exit_code = cli_main(
        [
            "resolve",
            "jo@acme.io",
            "--name",
            "Jo Park",
            "--db",
            str(db_path),
            "--config",
            str(config_path),
        ]
    )

    assert exit_code == 0
    [event] = _cli_events(capsys.readouterr().out, "cli_resolve_completed")
    assert event["result"]["method"] == "internal_inference"
    assert event["result"]["person"]["person_type"] == "internal"
    assert event["result"]["person"]["name"] == "Jo Park"


@pytest.mark.integration
def test_resolve_batch_writes_valid_jsonl(tmp_path, capsys):
    db_path = tmp_path / "prebrief.db"
    attendee_path = tmp_path / "attendees.json"
    output_path = tmp_path / "out" / "resolutions.jsonl"
    attendee_path.write_text(
        json.dumps(
            [
                {"email": "sarah@insightpartners.com", "display_name": "Sarah Chen"},
                {"email": "unknown@gmail.com"},
                {"email": "kim.lee@gmail.com", "name": "Kim Lee"},
            ]
        ),
        encoding="utf-8",
    )

    exit_code = cli_main(
        ["resolve-batch", str(attendee_path), "--output", str(output_path), "--db", str(db_path)]
    )

    assert exit_code == 0
    rows = [json.loads(line) for line in output_path.read_text(encoding="utf-8").splitlines()]
    schema = json.loads(Path(RESULT_SCHEMA_PATH).read_text(encoding="utf-8"))
    for row in rows:
        jsonschema.validate(row, schema)
    assert [row["method"] for row in rows] == ["domain_match", "unresolved", "unresolved"]
    assert rows[1]["person"] is None
    assert rows[2]["confidence"] == 0.25

    [event] = _cli_events(capsys.readouterr().out, "cli_resolve_batch_completed")
    assert event["resolved"] == 3
    assert event["created"] == 2
    assert event["methods"] == {"domain_match": 1, "unresolved": 2}


@pytest.mark.integration
def test_override_add_then_resolve(tmp_path, capsys):
    db_path = tmp_path / "prebrief.db"
    store = SQLiteProfileStore(db_path)
    person = store.create_person(PersonDraft(name="Alex Thompson", emails=["alex@scalevp.com"], confidence=0.9))

    exit_code = cli_main(
        [
            "override",
            "add",
            "--source",
            "Assistant@ScaleVP.com",
            "--type",
            "person_merge",
            "--person",
            person.id,
            "--reason",
            "EA books meetings for Alex",
            "--confidence",
            "0.95",
            "--db",
            str(db_path),
        ]
    )
    assert exit_code == 0
    [added] = _cli_events(capsys.readouterr().out, "cli_override_added")
    assert added["source_identifier"] == "assistant@scalevp.com"
    assert added["target_person_id"] == person.id

    assert cli_main(["resolve", "assistant@scalevp.com", "--db", str(db_path)]) == 0
    [resolved] = _cli_events(capsys.readouterr().out, "cli_resolve_completed")
    assert resolved["result"]["method"] == "manual_override"
    assert resolved["result"]["confidence"] == 0.95
    assert resolved["result"]["person"]["id"] == person.id


@pytest.mark.integration
@pytest.mark.parametrize(
    ("argv", "error_type"),
    [
        (["override", "add", "--source", "x@y.com", "--type", "alias_link"], "ValueError"),
        (["override", "add", "--source", "x@y.com", "--type", "alias_link", "--person", "missing"], "ValueError"),
        (["resolve", "   "], "InvalidAttendeeError"),
        (["resolve-batch", "missing-attendees.json"], "FileNotFoundError"),
    ],
)
def test_cli_errors_emit_event(tmp_path, capsys, argv, error_type):
    db_path = tmp_path / "prebrief.db"
    argv = [*argv, "--db", str(db_path)]
    if argv[0] == "resolve-batch":
        argv[1] = str(tmp_path / argv[1])

    assert cli_main(argv) == 1

    [event] = _cli_events(capsys.readouterr().out, "cli_error")
    assert event["error_type"] == error_type
    assert event["level"] == "error"


@pytest.mark.integration
def test_no_command_prints_help(capsys):
    assert cli_main([]) == 0
    assert "prebrief" in capsys.readouterr().out
