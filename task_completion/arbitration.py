"""Two-tier completion decisions: direct matches first, bounded LLM arbitration for the rest."""
import logging
import re
from dataclasses import dataclass

from .classifier import CompletionClassifier
from .completion_config import CompletionConfig
from .errors import ClassifierError
from .models import (
    AcceptedCompletion,
    ArbitrationDiagnostics,
    ClassifierCandidate,
    CompletionCandidate,
    CompletionSnippet,
    RankedSnippet,
    ScoredCandidate,
    TaskEvidence,
)
from .normalize import normalize_group_id
from .ranker import RankingIndex

logger = logging.getLogger(__name__)


def clamp_confidence(value: float | None, default: float = 0.6) -> float:
    if value is None:
        value = default
    return min(1.0, max(0.0, float(value)))


def compact_title(title: str, limit: int = 96) -> str:
    collapsed = re.sub(r"\s+", " ", title or "").strip()
    if len(collapsed) <= limit:
        return collapsed
    return collapsed[: max(0, limit - 3)].rstrip() + "..."


@dataclass
class ArbitrationItem:
    ranked: RankedSnippet
    shortlist: list[ScoredCandidate]

    @property
    def top_score(self) -> float:
        return self.ranked.top_score


@dataclass
class UnmatchedClaim:
    group_id: str
    confidence: float | None
    evidence: TaskEvidence


class ArbitrationEngine:
    """Turns ranked snippets into accepted completions.

    Unambiguous snippets are accepted without calling the classifier. Only
    ambiguous ones are queued, and at most `max_arbitration_snippets` of them
    reach the classifier in one run.
    """

    def __init__(self, classifier: CompletionClassifier | None, config: CompletionConfig | None = None):
        self.classifier = classifier
        self.config = config or CompletionConfig()

    def decide(
        self,
        ranked_snippets: list[RankedSnippet],
        candidates: list[CompletionCandidate],
        index: RankingIndex | None = None,
    ) -> tuple[list[AcceptedCompletion], ArbitrationDiagnostics]:
        config = self.config
        diagnostics = ArbitrationDiagnostics()
        by_id = {candidate.group_id: candidate for candidate in candidates}
        by_alias = {normalize_group_id(candidate.group_id): candidate for candidate in candidates}
        claims: dict[str, AcceptedCompletion] = {}

        def claim(accepted: AcceptedCompletion):
            existing = claims.get(accepted.group_id)
            if existing is None or accepted.confidence > existing.confidence:
                claims[accepted.group_id] = accepted

        queue: list[ArbitrationItem] = []
        for ranked in ranked_snippets:
            top_score = ranked.top_score
            if not ranked.ranked or top_score < config.minimum_candidate_score:
                diagnostics.dropped += 1
                continue
            if top_score >= config.direct_match_threshold and ranked.margin >= config.direct_match_margin:
                claim(AcceptedCompletion(
                    group_id=ranked.ranked[0].group_id,
                    confidence=clamp_confidence(top_score),
                    evidence=ranked.snippet.to_evidence(),
                    source="direct",
                ))
                diagnostics.direct_matches += 1
                continue
            shortlist = [
                scored for scored in ranked.ranked if scored.score >= config.shortlist_threshold
            ][: config.shortlist_size]
            queue.append(ArbitrationItem(ranked=ranked, shortlist=shortlist))

        queue.sort(key=lambda item: item.top_score, reverse=True)
        diagnostics.queued = len(queue)
        if len(queue) > config.max_arbitration_snippets:
            diagnostics.dropped_by_cap = len(queue) - config.max_arbitration_snippets
            queue = queue[: config.max_arbitration_snippets]

        unmatched: list[UnmatchedClaim] = []
        if queue and self.classifier is None:
            logger.warning(f"Arbitration: no classifier configured, skipping {len(queue)} ambiguous snippet(s)")
            diagnostics.classifier_failures += len(queue)
            queue = []

        for item in queue:
            snippet = item.ranked.snippet
            payload = [
                ClassifierCandidate(
                    id=scored.group_id,
                    title=compact_title(by_id[scored.group_id].title, config.compact_title_limit),
                    assignee_key=by_id[scored.group_id].assignee_key,
                )
                for scored in item.shortlist
            ]
            diagnostics.classifier_calls += 1
            try:
                matches = self.classifier.classify(snippet.prompt_text(), payload)
            except ClassifierError as e:
                logger.warning(f"Arbitration: classifier failed for snippet {snippet.text[:60]!r}: {e}")
                diagnostics.classifier_failures += 1
                continue

            if not matches:
                if len(item.shortlist) == 1 and item.top_score >= config.minimum_candidate_score + config.singleton_bonus:
                    claim(AcceptedCompletion(
                        group_id=item.shortlist[0].group_id,
                        confidence=clamp_confidence(item.top_score),
                        evidence=snippet.to_evidence(),
                        source="singleton",
                    ))
                    diagnostics.singleton_accepts += 1
                continue

            for match in matches:
                evidence = self._evidence(match.evidence, snippet)
                candidate = by_id.get(str(match.group_id)) or by_alias.get(normalize_group_id(str(match.group_id)))
                if candidate is None:
                    diagnostics.unmatched_ids += 1
                    unmatched.append(UnmatchedClaim(str(match.group_id), match.confidence, evidence))
                    continue
                claim(AcceptedCompletion(
                    group_id=candidate.group_id,
                    confidence=clamp_confidence(
                        match.confidence if match.confidence is not None else item.top_score
                    ),
                    evidence=evidence,
                    source="arbitration",
                ))

        if unmatched and index is not None:
            for entry in unmatched:
                best = index.score_unmatched(entry.evidence.snippet, exclude=set(claims))
                if best is None or best.score < config.minimum_candidate_score:
                    logger.info(f"Arbitration: dropping unknown id {entry.group_id!r}, no unmatched candidate close enough")
                    continue
                claim(AcceptedCompletion(
                    group_id=best.group_id,
                    confidence=clamp_confidence(entry.confidence, config.default_confidence),
                    evidence=entry.evidence,
                    source="fallback",
                ))
                diagnostics.fallback_matches += 1

        accepted = list(claims.values())
        diagnostics.accepted = len(accepted)
        logger.info(
            f"Arbitration: {diagnostics.direct_matches} direct, {diagnostics.queued} queued "
            f"({diagnostics.dropped_by_cap} over cap), {diagnostics.classifier_calls} classifier call(s), "
            f"{diagnostics.fallback_matches} fallback, {len(accepted)} accepted"
        )
        return accepted, diagnostics

    @staticmethod
    def _evidence(evidence: TaskEvidence | None, snippet: CompletionSnippet) -> TaskEvidence:
        if evidence is None or not evidence.snippet:
            return snippet.to_evidence()
        return TaskEvidence(
            snippet=evidence.snippet,
            speaker=evidence.speaker or snippet.speaker,
            timestamp=evidence.timestamp or snippet.timestamp,
        )
