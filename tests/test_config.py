"""Tests for derived thresholds and config overrides."""

import pytest
from pydantic import ValidationError

from task_completion.completion_config import CompletionConfig


def test_default_thresholds():
    config = CompletionConfig()
    assert config.selection_threshold == pytest.approx(0.6)
    assert config.minimum_candidate_score == pytest.approx(0.45)
    assert config.direct_match_threshold == pytest.approx(0.7)
    assert config.shortlist_threshold == pytest.approx(0.35)


@pytest.mark.parametrize("ratio, selection, minimum", [(0.1, 0.4, 0.45), (0.8, 0.8, 0.65), (2.0, 0.95, 0.8)])
def test_ratio_is_clamped(ratio, selection, minimum):
    config = CompletionConfig(min_match_ratio=ratio)
    assert config.selection_threshold == pytest.approx(selection)
    assert config.minimum_candidate_score == pytest.approx(minimum)


def test_shortlist_never_below_floor():
    config = CompletionConfig(min_match_ratio=0.4)
    assert config.shortlist_threshold == pytest.approx(0.35)
    assert CompletionConfig(shortlist_floor=0.5).shortlist_threshold == pytest.approx(0.5)


def test_with_overrides_ignores_none():
    config = CompletionConfig()
    assert config.with_overrides(min_match_ratio=None) is config
    stricter = config.with_overrides(min_match_ratio=0.8)
    assert stricter.min_match_ratio == 0.8
    assert config.min_match_ratio == 0.6


def test_config_is_frozen():
    with pytest.raises(ValidationError):
        CompletionConfig().min_match_ratio = 0.9


def test_from_env(monkeypatch):
    monkeypatch.setenv("TASK_COMPLETION_MIN_MATCH_RATIO", "0.7")
    monkeypatch.setenv("TASK_COMPLETION_MAX_ARBITRATION_SNIPPETS", "3")
    monkeypatch.setenv("OPENAI_EMBEDDINGS_MODEL", "custom-embed")
    config = CompletionConfig.from_env()
    assert config.min_match_ratio == 0.7
    assert config.max_arbitration_snippets == 3
    assert config.embedding_model == "custom-embed"


def test_from_env_covers_every_tunable(monkeypatch):
    monkeypatch.setenv("TASK_COMPLETION_SHORTLIST_SIZE", "6")
    monkeypatch.setenv("TASK_COMPLETION_SHORTLIST_FLOOR", "0.3")
    monkeypatch.setenv("TASK_COMPLETION_EMBEDDING_WEIGHT", "0.6")
    monkeypatch.setenv("TASK_COMPLETION_TOKEN_WEIGHT", "0.4")
    monkeypatch.setenv("TASK_COMPLETION_SINGLETON_BONUS", "0.02")
    monkeypatch.setenv("TASK_COMPLETION_ALLOW_UNASSIGNED", "true")
    config = CompletionConfig.from_env()
    assert config.shortlist_size == 6
    assert config.shortlist_floor == 0.3
    assert (config.embedding_weight, config.token_weight) == (0.6, 0.4)
    assert config.singleton_bonus == 0.02
    assert config.allow_unassigned is True


def test_from_env_rejects_garbage(monkeypatch):
    monkeypatch.setenv("TASK_COMPLETION_SHORTLIST_SIZE", "lots")
    with pytest.raises(ValidationError):
        CompletionConfig.from_env()
