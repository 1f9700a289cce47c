"""Precision/recall benchmark for the completion classifier against a gold dataset.

Dataset format (JSON list):
[{"id": "...", "transcript": "...", "candidates": [{"groupId", "title", "assigneeKey"}],
  "expectedCompleted": ["groupId", ...]}]
"""
import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

from .classifier import CompletionClassifier, build_classifier
from .models import CamelModel, ClassifierCandidate

logger = logging.getLogger(__name__)

DEFAULT_MIN_PRECISION = 0.85
DEFAULT_MIN_RECALL = 0.8


class BenchmarkCandidate(CamelModel):
    group_id: str
    title: str
    assignee_key: str = ""


class BenchmarkCase(CamelModel):
    id: str
    transcript: str
    candidates: list[BenchmarkCandidate] = Field(default_factory=list)
    expected_completed: list[str] = Field(default_factory=list)


class CaseResult(BaseModel):
    id: str
    expected: int
    predicted: int
    tp: int
    fp: int
    fn: int


class BenchmarkReport(BaseModel):
    rows: list[CaseResult] = Field(default_factory=list)
    tp: int = 0
    fp: int = 0
    fn: int = 0

    @property
    def precision(self) -> float:
        return self.tp / (self.tp + self.fp) if self.tp + self.fp else 0.0

    @property
    def recall(self) -> float:
        return self.tp / (self.tp + self.fn) if self.tp + self.fn else 0.0

    @property
    def f1(self) -> float:
        total = self.precision + self.recall
        return 2 * self.precision * self.recall / total if total else 0.0

    def passes(self, min_precision: float = DEFAULT_MIN_PRECISION, min_recall: float = DEFAULT_MIN_RECALL) -> bool:
        return self.precision >= min_precision and self.recall >= min_recall


def load_dataset(path: str | Path) -> list[BenchmarkCase]:
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, list) or not data:
        raise ValueError("Benchmark dataset is empty.")
    return [BenchmarkCase.model_validate(item) for item in data]


def evaluate(cases: list[BenchmarkCase], classifier: CompletionClassifier) -> BenchmarkReport:
    report = BenchmarkReport()
    for case in cases:
        candidates = [
            ClassifierCandidate(id=item.group_id, title=item.title, assignee_key=item.assignee_key)
            for item in case.candidates
        ]
        predicted = {str(match.group_id) for match in classifier.classify(case.transcript, candidates)}
        expected = {str(group_id) for group_id in case.expected_completed}
        row = CaseResult(
            id=case.id,
            expected=len(expected),
            predicted=len(predicted),
            tp=len(predicted & expected),
            fp=len(predicted - expected),
            fn=len(expected - predicted),
        )
        report.rows.append(row)
        report.tp += row.tp
        report.fp += row.fp
        report.fn += row.fn
    return report


def main(
    dataset_path: str,
    classifier: CompletionClassifier | None = None,
    min_precision: float | None = None,
    min_recall: float | None = None,
) -> int:
    """Run the benchmark and return a process exit code.

    Gates default to COMPLETION_BENCH_MIN_PRECISION / COMPLETION_BENCH_MIN_RECALL,
    read when the benchmark runs.
    """
    if min_precision is None:
        min_precision = float(os.getenv("COMPLETION_BENCH_MIN_PRECISION", DEFAULT_MIN_PRECISION))
    if min_recall is None:
        min_recall = float(os.getenv("COMPLETION_BENCH_MIN_RECALL", DEFAULT_MIN_RECALL))
    if not Path(dataset_path).exists():
        logger.error("Dataset not found: %s", dataset_path)
        return 1
    classifier = classifier or build_classifier()
    if classifier is None:
        logger.error("A configured classifier is required to run the completion benchmark.")
        return 1

    report = evaluate(load_dataset(dataset_path), classifier)
    for row in report.rows:
        logger.info("%s expected=%d predicted=%d tp=%d fp=%d fn=%d", row.id, row.expected, row.predicted, row.tp, row.fp, row.fn)
    logger.info(
        "aggregate tp=%d fp=%d fn=%d precision=%.3f recall=%.3f f1=%.3f",
        report.tp, report.fp, report.fn, report.precision, report.recall, report.f1,
    )
    if not report.passes(min_precision, min_recall):
        logger.error("Benchmark gate failed (min precision %s, min recall %s).", min_precision, min_recall)
        return 1
    return 0
