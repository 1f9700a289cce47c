"""Hybrid lexical/embedding similarity between snippets and candidates."""
import logging
import math
from dataclasses import dataclass, field

from .completion_config import CompletionConfig
from .embeddings import EmbeddingProvider, embed_in_batches
from .models import (
    CompletionCandidate,
    CompletionSnippet,
    EmbeddingDiagnostics,
    RankedSnippet,
    ScoredCandidate,
    StandaloneTask,
)
from .normalize import to_token_set
from .stores import TaskStore

logger = logging.getLogger(__name__)


def build_embedding_text(title: str | None, description: str | None, limit: int = 800) -> str:
    parts = [part.strip() for part in (title, description) if isinstance(part, str) and part.strip()]
    combined = " ".join(parts)
    return combined[:limit] if len(combined) > limit else combined


def jaccard_similarity(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 0.0
    intersection = len(a & b)
    return intersection / (len(a) + len(b) - intersection)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if not norm_a or not norm_b:
        return 0.0
    return dot / (norm_a * norm_b)


@dataclass
class RankingIndex:
    """Per-run token sets and vectors for every candidate and snippet."""
    config: CompletionConfig
    provider: EmbeddingProvider | None
    candidates: list[CompletionCandidate]
    candidate_tokens: dict[str, set[str]] = field(default_factory=dict)
    candidate_vectors: dict[str, list[float]] = field(default_factory=dict)
    snippet_vectors: list[list[float] | None] = field(default_factory=list)
    embeddings_ready: bool = False

    def score(self, tokens: set[str], vector: list[float] | None, candidate: CompletionCandidate) -> ScoredCandidate:
        token_score = jaccard_similarity(tokens, self.candidate_tokens.get(candidate.group_id, set()))
        candidate_vector = self.candidate_vectors.get(candidate.group_id)
        if not self.embeddings_ready or vector is None or candidate_vector is None:
            return ScoredCandidate(group_id=candidate.group_id, score=token_score, token_score=token_score)
        embedding_score = cosine_similarity(vector, candidate_vector)
        score = embedding_score * self.config.embedding_weight + token_score * self.config.token_weight
        return ScoredCandidate(
            group_id=candidate.group_id,
            score=score,
            token_score=token_score,
            embedding_score=embedding_score,
        )

    def rank_text(
        self, text: str, vector: list[float] | None, exclude: set[str] | frozenset = frozenset()
    ) -> list[ScoredCandidate]:
        tokens = to_token_set(text)
        scored = [
            self.score(tokens, vector, candidate)
            for candidate in self.candidates
            if candidate.group_id not in exclude
        ]
        return sorted(scored, key=lambda item: item.score, reverse=True)

    def rank_snippets(self, snippets: list[CompletionSnippet]) -> list[RankedSnippet]:
        ranked = []
        for index, snippet in enumerate(snippets):
            vector = self.snippet_vectors[index] if index < len(self.snippet_vectors) else None
            ranked.append(RankedSnippet(snippet=snippet, ranked=self.rank_text(snippet.text, vector)))
        return ranked

    def score_unmatched(self, text: str, exclude: set[str]) -> ScoredCandidate | None:
        """Best candidate for free text among candidates not in `exclude`."""
        vector = None
        if self.embeddings_ready:
            vector = embed_in_batches(self.provider, [text], self.config.embedding_batch_size)[0]
        ranked = self.rank_text(text, vector, exclude)
        return ranked[0] if ranked else None


class SimilarityRanker:
    """Scores every (snippet, candidate) pair, reusing cached task embeddings."""

    def __init__(
        self,
        provider: EmbeddingProvider | None,
        task_store: TaskStore | None = None,
        config: CompletionConfig | None = None,
    ):
        self.provider = provider
        self.task_store = task_store
        self.config = config or CompletionConfig()

    def _task_vectors(
        self, tasks: list[StandaloneTask], diagnostics: EmbeddingDiagnostics
    ) -> dict[str, list[float]]:
        vectors: dict[str, list[float]] = {}
        pending: list[tuple[str, str]] = []
        for task in tasks:
            if not task.id or not task.title:
                continue
            if task.embedding and task.embedding_model == self.config.embedding_model:
                vectors[task.id] = task.embedding
                continue
            text = build_embedding_text(task.title, task.description, self.config.embedding_text_limit)
            if text:
                pending.append((task.id, text))
        diagnostics.tasks_cached = len(vectors)

        if pending and self.provider is not None:
            embedded = embed_in_batches(
                self.provider, [text for _, text in pending], self.config.embedding_batch_size
            )
            updates = [(task_id, vector) for (task_id, _), vector in zip(pending, embedded) if vector]
            if updates and self.task_store is not None:
                self.task_store.bulk_set_embedding(updates, self.config.embedding_model)
            vectors.update(updates)
            diagnostics.tasks_embedded = len(updates)
        return vectors

    def build_index(
        self,
        candidates: list[CompletionCandidate],
        snippets: list[CompletionSnippet],
        tasks: list[StandaloneTask] | None = None,
    ) -> tuple[RankingIndex, EmbeddingDiagnostics]:
        diagnostics = EmbeddingDiagnostics(model=self.config.embedding_model)
        index = RankingIndex(config=self.config, provider=self.provider, candidates=candidates)
        for candidate in candidates:
            text = build_embedding_text(candidate.title, candidate.description, self.config.embedding_text_limit)
            index.candidate_tokens[candidate.group_id] = to_token_set(text)

        if self.provider is None:
            logger.info("SimilarityRanker: no embedding provider, using token similarity only")
            index.snippet_vectors = [None] * len(snippets)
            return index, diagnostics

        task_vectors = self._task_vectors(tasks or [], diagnostics)
        pending: list[tuple[str, str]] = []
        for candidate in candidates:
            task_target = next((target for target in candidate.targets if target.source_type == "task"), None)
            if task_target is not None and task_target.task_id in task_vectors:
                index.candidate_vectors[candidate.group_id] = task_vectors[task_target.task_id]
                continue
            text = build_embedding_text(candidate.title, candidate.description, self.config.embedding_text_limit)
            if text:
                pending.append((candidate.group_id, text))
        if pending:
            embedded = embed_in_batches(
                self.provider, [text for _, text in pending], self.config.embedding_batch_size
            )
            for (group_id, _), vector in zip(pending, embedded):
                if vector:
                    index.candidate_vectors[group_id] = vector
                    diagnostics.candidates_embedded += 1

        index.snippet_vectors = embed_in_batches(
            self.provider, [snippet.text for snippet in snippets], self.config.embedding_batch_size
        )
        diagnostics.snippets_embedded = sum(1 for vector in index.snippet_vectors if vector)
        index.embeddings_ready = diagnostics.snippets_embedded > 0 and bool(index.candidate_vectors)
        diagnostics.embeddings_ready = index.embeddings_ready
        logger.info(
            f"SimilarityRanker: {len(index.candidate_vectors)}/{len(candidates)} candidate vector(s), "
            f"{diagnostics.snippets_embedded}/{len(snippets)} snippet vector(s), ready={index.embeddings_ready}"
        )
        return index, diagnostics
