"""Tests for the classifier precision/recall benchmark."""

import json

import pytest

from task_completion.benchmark import BenchmarkReport, evaluate, load_dataset, main
from task_completion.models import ClassifierMatch

from conftest import FakeClassifier

DATASET = [
    {
        "id": "contract",
        "transcript": "Alice: The contract went out this morning.",
        "candidates": [
            {"groupId": "cand_1", "title": "Send contract", "assigneeKey": "name:alice"},
            {"groupId": "cand_2", "title": "Review budget", "assigneeKey": "name:bob"},
        ],
        "expectedCompleted": ["cand_1"],
    },
    {
        "id": "in-progress",
        "transcript": "Bob: Still working on the budget.",
        "candidates": [{"groupId": "cand_1", "title": "Review budget", "assigneeKey": "name:bob"}],
        "expectedCompleted": [],
    },
]


@pytest.fixture
def dataset_path(tmp_path):
    path = tmp_path / "completion-benchmark.json"
    path.write_text(json.dumps(DATASET), encoding="utf-8")
    return path


def perfect(snippet_text, candidates):
    return [ClassifierMatch(group_id="cand_1")] if "contract" in snippet_text else []


def eager(snippet_text, candidates):
    return [ClassifierMatch(group_id=candidate.id) for candidate in candidates]


def test_perfect_classifier(dataset_path):
    report = evaluate(load_dataset(dataset_path), FakeClassifier(perfect))
    assert (report.tp, report.fp, report.fn) == (1, 0, 0)
    assert report.precision == 1.0
    assert report.recall == 1.0
    assert report.passes()


def test_eager_classifier_loses_precision(dataset_path):
    report = evaluate(load_dataset(dataset_path), FakeClassifier(eager))
    assert (report.tp, report.fp, report.fn) == (1, 2, 0)
    assert report.precision == pytest.approx(1 / 3)
    assert report.f1 == pytest.approx(0.5)
    assert not report.passes()


def test_candidates_reach_the_classifier(dataset_path):
    classifier = FakeClassifier(perfect)
    evaluate(load_dataset(dataset_path), classifier)
    snippet_text, candidates = classifier.calls[0]
    assert snippet_text == "Alice: The contract went out this morning."
    assert [(candidate.id, candidate.assignee_key) for candidate in candidates] == [
        ("cand_1", "name:alice"),
        ("cand_2", "name:bob"),
    ]


def test_empty_report_metrics():
    report = BenchmarkReport()
    assert (report.precision, report.recall, report.f1) == (0.0, 0.0, 0.0)


def test_empty_dataset_is_rejected(tmp_path):
    path = tmp_path / "empty.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_dataset(path)


def test_explicit_gates_override_defaults(dataset_path):
    assert main(str(dataset_path), FakeClassifier(eager), min_precision=0.3, min_recall=0.8) == 0


def test_gates_are_read_when_main_runs(dataset_path, monkeypatch):
    monkeypatch.setenv("COMPLETION_BENCH_MIN_PRECISION", "0.3")
    assert main(str(dataset_path), FakeClassifier(eager)) == 0
    monkeypatch.setenv("COMPLETION_BENCH_MIN_PRECISION", "0.9")
    assert main(str(dataset_path), FakeClassifier(eager)) == 1


def test_main_exit_codes(dataset_path, tmp_path, monkeypatch):
    monkeypatch.delenv("COMPLETION_BENCH_MIN_PRECISION", raising=False)
    monkeypatch.delenv("COMPLETION_BENCH_MIN_RECALL", raising=False)
    assert main(str(dataset_path), FakeClassifier(perfect)) == 0
    assert main(str(dataset_path), FakeClassifier(eager)) == 1
    assert main(str(tmp_path / "missing.json"), FakeClassifier(perfect)) == 1
