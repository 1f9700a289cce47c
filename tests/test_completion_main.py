"""Tests for the command-line entry point."""

import json

import pytest

from task_completion import completion_main


@pytest.fixture(autouse=True)
def offline(monkeypatch):
    monkeypatch.setattr(completion_main, "build_embedding_provider", lambda: None)
    monkeypatch.setattr(completion_main, "build_classifier", lambda: None)
    monkeypatch.delenv("TASK_COMPLETION_MIN_MATCH_RATIO", raising=False)


SNAPSHOT = {
    "userId": "u1",
    "transcript": "Alice: Send contract to Acme is done.",
    "tasks": [{"id": "t1", "userId": "u1", "title": "Send contract to Acme", "assigneeName": "Alice", "status": "todo"}],
    "meetings": [],
    "chatSessions": [],
}


def write_json(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_detect_writes_suggestions(tmp_path):
    input_file = write_json(tmp_path / "snapshot.json", SNAPSHOT)
    output_file = tmp_path / "completions.json"
    completion_main.main(["detect", input_file, str(output_file)])

    payload = json.loads(output_file.read_text(encoding="utf-8"))
    assert [suggestion["title"] for suggestion in payload["suggestions"]] == ["Send contract to Acme"]
    assert payload["suggestions"][0]["completionTargets"][0] == {
        "sourceType": "task", "sourceSessionId": "t1", "taskId": "t1",
    }
    assert payload["diagnostics"]["arbitration"]["direct_matches"] == 1


def test_apply_marks_targets_done(tmp_path):
    input_file = write_json(tmp_path / "snapshot.json", SNAPSHOT)
    detected = tmp_path / "completions.json"
    completion_main.main(["detect", input_file, str(detected)])

    snapshot = {**SNAPSHOT, "suggestions": json.loads(detected.read_text(encoding="utf-8"))["suggestions"]}
    apply_input = write_json(tmp_path / "confirmed.json", snapshot)
    applied = tmp_path / "applied.json"
    completion_main.main(["apply", apply_input, str(applied)])

    payload = json.loads(applied.read_text(encoding="utf-8"))
    assert payload["suggestions"] == []
    assert payload["tasks"][0]["status"] == "done"
    assert payload["tasks"][0]["completionSuggested"] is False


@pytest.mark.parametrize("argv", [[], ["detect"], ["explode", "x.json"]])
def test_usage_errors_exit(argv):
    with pytest.raises(SystemExit) as excinfo:
        completion_main.main(argv)
    assert excinfo.value.code == 1


def test_snapshot_without_user_exits(tmp_path):
    input_file = write_json(tmp_path / "snapshot.json", {"transcript": "x"})
    with pytest.raises(SystemExit):
        completion_main.main(["detect", input_file, str(tmp_path / "out.json")])


def test_missing_input_exits(tmp_path):
    with pytest.raises(SystemExit):
        completion_main.main(["apply", str(tmp_path / "missing.json")])
