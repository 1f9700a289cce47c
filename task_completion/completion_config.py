"""Tunables for completion detection.

The numbers here are starting points, not calibrated optima. Every value can be
overridden per call so tests and benchmarks can vary them deterministically.
"""
import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from . import llm_config


class CompletionConfig(BaseModel):
    """Thresholds, weights and limits used across the detection pipeline."""

    model_config = ConfigDict(frozen=True)

    min_match_ratio: float = Field(default=0.6, description="Caller-facing match strictness")
    direct_match_margin: float = Field(
        default=0.1, description="Required gap between the top two scores for a direct match"
    )
    max_arbitration_snippets: int = Field(
        default=12, description="At most this many snippets reach the classifier per run"
    )
    shortlist_size: int = Field(default=4, description="Candidates sent to the classifier per snippet")
    shortlist_floor: float = Field(default=0.32, description="Absolute lower bound for shortlisting")
    singleton_bonus: float = Field(
        default=0.05,
        description="Margin over the minimum score needed to keep a lone shortlisted candidate",
    )
    embedding_batch_size: int = Field(default=40, description="Texts per embedding request")
    embedding_weight: float = Field(default=0.75, description="Weight of cosine similarity")
    token_weight: float = Field(default=0.25, description="Weight of token Jaccard similarity")
    embedding_text_limit: int = Field(default=800, description="Max characters embedded per task")
    compact_title_limit: int = Field(default=96, description="Max title characters in prompts")
    default_confidence: float = Field(default=0.6, description="Confidence used when none is given")
    allow_unassigned: bool = Field(
        default=False,
        description="Allow unassigned tasks even when attendee matching is required",
    )
    embedding_model: str = Field(
        default=llm_config.EMBEDDING_MODEL_NAME,
        description="Model id cached embeddings must match to be reused",
    )

    @property
    def selection_threshold(self) -> float:
        return min(0.95, max(0.4, self.min_match_ratio))

    @property
    def minimum_candidate_score(self) -> float:
        return max(0.45, self.selection_threshold - 0.15)

    @property
    def direct_match_threshold(self) -> float:
        return max(self.minimum_candidate_score + 0.2, self.selection_threshold + 0.1)

    @property
    def shortlist_threshold(self) -> float:
        return max(self.shortlist_floor, self.minimum_candidate_score - 0.1)

    def with_overrides(self, **overrides) -> "CompletionConfig":
        """Return a copy with the non-None overrides applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        if not values:
            return self
        return self.model_copy(update=values)

    @classmethod
    def from_env(cls) -> "CompletionConfig":
        """Build a config from environment variables (CLI use only).

        Every field can be set as TASK_COMPLETION_<FIELD_NAME>, e.g.
        TASK_COMPLETION_SHORTLIST_FLOOR=0.3. The embedding model also falls
        back to OPENAI_EMBEDDINGS_MODEL. Values are validated like any other input.
        """
        load_dotenv()
        values = {}
        embedding_model = os.getenv("OPENAI_EMBEDDINGS_MODEL")
        if embedding_model:
            values["embedding_model"] = embedding_model
        for name in cls.model_fields:
            raw = os.getenv(f"TASK_COMPLETION_{name.upper()}")
            if raw is not None and raw.strip():
                values[name] = raw.strip()
        return cls.model_validate(values)
