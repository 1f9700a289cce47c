"""Tests for direct matching and bounded classifier arbitration."""

import pytest

from task_completion.arbitration import ArbitrationEngine, clamp_confidence, compact_title
from task_completion.models import (
    ClassifierMatch,
    CompletionCandidate,
    CompletionSnippet,
    RankedSnippet,
    ScoredCandidate,
    TaskEvidence,
)
from task_completion.ranker import RankingIndex
from task_completion.normalize import to_token_set

from conftest import FakeClassifier


def make_candidates(*titles):
    return [
        CompletionCandidate(
            group_id=f"cand_{i}", key=f"{title.lower()}|unassigned", assignee_key="unassigned", title=title
        )
        for i, title in enumerate(titles, start=1)
    ]


def ranked(text, *scores, speaker="Alice", timestamp=None):
    return RankedSnippet(
        snippet=CompletionSnippet(text=text, speaker=speaker, timestamp=timestamp),
        ranked=[
            ScoredCandidate(group_id=f"cand_{i}", score=score, token_score=score)
            for i, score in enumerate(scores, start=1)
        ],
    )


def token_index(config, candidates):
    return RankingIndex(
        config=config,
        provider=None,
        candidates=candidates,
        candidate_tokens={candidate.group_id: to_token_set(candidate.title) for candidate in candidates},
    )


class TestDirectMatches:
    def test_clear_winner_is_accepted_without_classifier(self, config):
        classifier = FakeClassifier()
        engine = ArbitrationEngine(classifier, config)
        accepted, diagnostics = engine.decide(
            [ranked("The contract is sent.", 0.82, 0.5, timestamp="00:01:02")],
            make_candidates("Send contract", "Review budget"),
        )
        assert len(accepted) == 1
        assert accepted[0].group_id == "cand_1"
        assert accepted[0].confidence == pytest.approx(0.82)
        assert accepted[0].source == "direct"
        assert accepted[0].evidence == TaskEvidence(snippet="The contract is sent.", speaker="Alice", timestamp="00:01:02")
        assert classifier.calls == []
        assert diagnostics.direct_matches == 1

    def test_low_score_is_dropped(self, config):
        classifier = FakeClassifier()
        accepted, diagnostics = ArbitrationEngine(classifier, config).decide(
            [ranked("Something is done.", 0.3, 0.1)], make_candidates("A task here", "Another task here")
        )
        assert accepted == []
        assert diagnostics.dropped == 1
        assert classifier.calls == []

    def test_higher_threshold_from_min_match_ratio(self, config):
        strict = config.with_overrides(min_match_ratio=0.9)
        classifier = FakeClassifier()
        accepted, diagnostics = ArbitrationEngine(classifier, strict).decide(
            [ranked("The contract is sent.", 0.78, 0.5)], make_candidates("Send contract", "Review budget")
        )
        assert accepted == []
        assert diagnostics.direct_matches == 0
        assert diagnostics.queued == 1


class TestClassifierArbitration:
    def test_ambiguous_snippet_goes_to_classifier(self, config):
        classifier = FakeClassifier([[ClassifierMatch(group_id="cand_2", confidence=0.9)]])
        accepted, diagnostics = ArbitrationEngine(classifier, config).decide(
            [ranked("the contract is sent.", 0.78, 0.74, 0.2)],
            make_candidates("Send contract", "Send contract copy", "Review budget"),
        )
        assert len(classifier.calls) == 1
        prompt_text, shortlist = classifier.calls[0]
        assert prompt_text == "Alice: the contract is sent."
        assert [item.id for item in shortlist] == ["cand_1", "cand_2"]
        assert [(item.group_id, item.source, item.confidence) for item in accepted] == [("cand_2", "arbitration", 0.9)]
        assert diagnostics.queued == 1

    def test_missing_confidence_uses_top_score(self, config):
        classifier = FakeClassifier([[ClassifierMatch(group_id="cand_1")]])
        accepted, _ = ArbitrationEngine(classifier, config).decide(
            [ranked("It is sent.", 0.6, 0.58)], make_candidates("Send contract", "Send invoice")
        )
        assert accepted[0].confidence == pytest.approx(0.6)

    def test_queue_is_capped_by_top_score(self, config):
        capped = config.with_overrides(max_arbitration_snippets=2)
        classifier = FakeClassifier()
        snippets = [ranked(f"Item {i} is done.", score, score) for i, score in enumerate([0.5, 0.66, 0.55, 0.6])]
        _, diagnostics = ArbitrationEngine(classifier, capped).decide(snippets, make_candidates("One task", "Two task"))
        assert [text for text, _ in classifier.calls] == ["Alice: Item 1 is done.", "Alice: Item 3 is done."]
        assert diagnostics.queued == 4
        assert diagnostics.dropped_by_cap == 2
        assert diagnostics.classifier_calls == 2

    def test_singleton_accepted_when_classifier_abstains(self, config):
        classifier = FakeClassifier([[]])
        accepted, diagnostics = ArbitrationEngine(classifier, config).decide(
            [ranked("The deck is done.", 0.55, 0.1)], make_candidates("Finish deck", "Review budget")
        )
        assert [(item.group_id, item.source) for item in accepted] == [("cand_1", "singleton")]
        assert diagnostics.singleton_accepts == 1

    def test_singleton_needs_bonus_over_minimum(self, config):
        classifier = FakeClassifier([[]])
        accepted, _ = ArbitrationEngine(classifier, config).decide(
            [ranked("The deck is done.", 0.47, 0.1)], make_candidates("Finish deck", "Review budget")
        )
        assert accepted == []

    def test_abstention_with_several_shortlisted_accepts_nothing(self, config):
        classifier = FakeClassifier([[]])
        accepted, _ = ArbitrationEngine(classifier, config).decide(
            [ranked("It is done.", 0.6, 0.58)], make_candidates("Finish deck", "Finish desk")
        )
        assert accepted == []

    def test_alias_ids_are_resolved(self, config):
        classifier = FakeClassifier([[ClassifierMatch(group_id=" CAND_2 ", confidence=0.7)]])
        accepted, diagnostics = ArbitrationEngine(classifier, config).decide(
            [ranked("It is done.", 0.6, 0.58)], make_candidates("Finish deck", "Finish desk")
        )
        assert [item.group_id for item in accepted] == ["cand_2"]
        assert diagnostics.unmatched_ids == 0

    def test_unknown_id_falls_back_to_best_unclaimed_candidate(self, config):
        candidates = make_candidates("Finish deck", "Review budget")
        classifier = FakeClassifier([[ClassifierMatch(
            group_id="task-42", evidence=TaskEvidence(snippet="Budget review finished"),
        )]])
        accepted, diagnostics = ArbitrationEngine(classifier, config).decide(
            [ranked("Budget review finished, deck too.", 0.6, 0.58)], candidates, token_index(config, candidates)
        )
        assert diagnostics.unmatched_ids == 1
        assert diagnostics.fallback_matches == 1
        assert [(item.group_id, item.source, item.confidence) for item in accepted] == [("cand_2", "fallback", 0.6)]
        assert accepted[0].evidence.speaker == "Alice"

    def test_unknown_id_without_close_candidate_is_dropped(self, config):
        candidates = make_candidates("Finish deck", "Review budget")
        classifier = FakeClassifier([[ClassifierMatch(group_id="nope", evidence=TaskEvidence(snippet="Lunch ordered"))]])
        accepted, diagnostics = ArbitrationEngine(classifier, config).decide(
            [ranked("Lunch ordered.", 0.6, 0.58)], candidates, token_index(config, candidates)
        )
        assert accepted == []
        assert diagnostics.fallback_matches == 0

    def test_duplicate_claims_keep_highest_confidence(self, config):
        classifier = FakeClassifier([
            [ClassifierMatch(group_id="cand_1", confidence=0.65)],
            [ClassifierMatch(group_id="cand_1", confidence=0.95, evidence=TaskEvidence(snippet="Deck done"))],
        ])
        accepted, _ = ArbitrationEngine(classifier, config).decide(
            [ranked("Deck is done.", 0.62, 0.6), ranked("Deck done today.", 0.61, 0.6)],
            make_candidates("Finish deck", "Finish desk"),
        )
        assert len(accepted) == 1
        assert accepted[0].confidence == pytest.approx(0.95)
        assert accepted[0].evidence.snippet == "Deck done"

    def test_classifier_failure_is_counted_and_skipped(self, config):
        classifier = FakeClassifier(fail=True)
        accepted, diagnostics = ArbitrationEngine(classifier, config).decide(
            [ranked("It is done.", 0.6, 0.58), ranked("The contract is sent.", 0.82, 0.5)],
            make_candidates("Send contract", "Send invoice"),
        )
        assert [item.source for item in accepted] == ["direct"]
        assert diagnostics.classifier_failures == 1

    def test_no_classifier_skips_queue(self, config):
        accepted, diagnostics = ArbitrationEngine(None, config).decide(
            [ranked("It is done.", 0.6, 0.58)], make_candidates("Send contract", "Send invoice")
        )
        assert accepted == []
        assert diagnostics.classifier_calls == 0
        assert diagnostics.classifier_failures == 1


def test_clamp_confidence():
    assert clamp_confidence(None) == 0.6
    assert clamp_confidence(1.7) == 1.0
    assert clamp_confidence(-2) == 0.0


def test_compact_title():
    assert compact_title("  Send   the\ncontract ") == "Send the contract"
    assert compact_title("x" * 120, 20) == "x" * 17 + "..."
