"""Data models for task completion detection."""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SourceType = Literal["task", "meeting", "chat"]
SessionType = Literal["meeting", "chat"]


class CamelModel(BaseModel):
    """Base for models that mirror the camelCase documents in the task stores."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class TaskEvidence(CamelModel):
    """A transcript excerpt supporting a completion."""
    snippet: str = Field(description="Short transcript excerpt")
    speaker: str | None = Field(default=None, description="Who said it")
    timestamp: str | None = Field(default=None, description="Transcript timestamp, if any")


class TaskTarget(CamelModel):
    """Reference to one physical task record in one store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    source_type: SourceType = Field(description="Which store holds the task")
    source_session_id: str = Field(description="Meeting/chat id, or the task id for standalone tasks")
    task_id: str = Field(description="Task id within the store")
    source_session_name: str | None = Field(default=None, description="Meeting/chat title")

    @property
    def identity(self) -> tuple[str, str, str]:
        return (self.source_type, str(self.source_session_id), str(self.task_id))


class Assignee(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: str | None = None
    email: str | None = None


class TaskNode(CamelModel):
    """Normalized view of a task from any store.

    Unknown fields of the native document are preserved as extras so a node can
    be written back without losing data.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str | None = None
    title: str = ""
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    due_at: str | datetime | None = None
    assignee: Assignee | None = None
    assignee_name: str | None = None
    assignee_email: str | None = None
    subtasks: list["TaskNode"] = Field(default_factory=list)
    completion_suggested: bool | None = None
    completion_confidence: float | None = None
    completion_evidence: list[TaskEvidence] | None = None
    completion_targets: list[TaskTarget] | None = None

    @field_validator("title", mode="before")
    @classmethod
    def null_title_as_empty(cls, value):
        return "" if value is None else value

    @field_validator("subtasks", mode="before")
    @classmethod
    def null_subtasks_as_empty(cls, value):
        return [] if value is None else value

    @property
    def is_open(self) -> bool:
        return (self.status or "todo") != "done"

    @property
    def resolved_assignee_name(self) -> str | None:
        if self.assignee and self.assignee.name:
            return self.assignee.name
        return self.assignee_name or None

    @property
    def resolved_assignee_email(self) -> str | None:
        if self.assignee and self.assignee.email:
            return self.assignee.email
        return self.assignee_email or None


class StandaloneTask(TaskNode):
    """A record from the canonical task store."""
    user_id: str | None = None
    workspace_id: str | None = None
    embedding: list[float] | None = None
    embedding_model: str | None = None
    source_session_type: SessionType | None = None
    source_session_id: str | None = None
    source_task_id: str | None = None


class SessionDocument(CamelModel):
    """A meeting or chat session carrying a nested task tree."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    title: str | None = None
    user_id: str | None = None
    workspace_id: str | None = None
    tasks: list[TaskNode] = Field(default_factory=list)


class Attendee(CamelModel):
    name: str = ""
    email: str | None = None


class CompletionSnippet(BaseModel):
    """A transcript or summary sentence that plausibly reports a completion."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Sentence, with the previous line prepended for bare pronouns")
    speaker: str | None = Field(default=None, description="Speaker parsed from the line prefix")
    timestamp: str | None = Field(default=None, description="Timestamp parsed from the line prefix")

    def prompt_text(self) -> str:
        prefix = ""
        if self.timestamp:
            prefix += f"[{self.timestamp}] "
        if self.speaker:
            prefix += f"{self.speaker}: "
        return f"{prefix}{self.text}"

    def to_evidence(self) -> TaskEvidence:
        return TaskEvidence(snippet=self.text, speaker=self.speaker, timestamp=self.timestamp)


class CompletionCandidate(BaseModel):
    """One open task, deduplicated across the three stores."""
    group_id: str = Field(description="Run-scoped synthetic id")
    key: str = Field(description="normalized title | assignee key")
    assignee_key: str
    title: str
    description: str | None = None
    assignee_name: str | None = None
    assignee_email: str | None = None
    due_at: str | datetime | None = None
    priority: str | None = None
    source_rank: int = Field(default=2, description="0 standalone, 1 meeting, 2 chat")
    targets: list[TaskTarget] = Field(default_factory=list)


class ScoredCandidate(BaseModel):
    group_id: str
    score: float
    token_score: float
    embedding_score: float | None = None


class RankedSnippet(BaseModel):
    """All candidates for one snippet, best first."""
    snippet: CompletionSnippet
    ranked: list[ScoredCandidate] = Field(default_factory=list)

    @property
    def top_score(self) -> float:
        return self.ranked[0].score if self.ranked else 0.0

    @property
    def margin(self) -> float:
        if not self.ranked:
            return 0.0
        runner_up = self.ranked[1].score if len(self.ranked) > 1 else 0.0
        return self.ranked[0].score - runner_up


class ClassifierCandidate(CamelModel):
    id: str
    title: str
    assignee_key: str = ""


class ClassifierMatch(CamelModel):
    group_id: str = Field(description="Candidate id chosen by the classifier")
    confidence: float | None = Field(default=None, description="Confidence score (0.0-1.0)")
    evidence: TaskEvidence | None = Field(default=None, description="Supporting excerpt")


class ClassifierOutput(CamelModel):
    """Container for classifier matches (required by LangChain structured output)."""
    completed: list[ClassifierMatch] = Field(default_factory=list)


class AcceptedCompletion(BaseModel):
    group_id: str
    confidence: float
    evidence: TaskEvidence
    source: Literal["direct", "arbitration", "singleton", "fallback"]


class CompletionSuggestion(TaskNode):
    """A task the transcript reports as done, awaiting confirmation."""
    completion_suggested: bool = True
    completion_confidence: float = 0.0
    completion_evidence: list[TaskEvidence] = Field(default_factory=list)
    completion_targets: list[TaskTarget] = Field(default_factory=list)


class SourceStats(BaseModel):
    total: int = 0
    added: int = 0


class CandidateDiagnostics(BaseModel):
    task_count: int = 0
    meeting_count: int = 0
    chat_count: int = 0
    tasks: SourceStats = Field(default_factory=SourceStats)
    meetings: SourceStats = Field(default_factory=SourceStats)
    chats: SourceStats = Field(default_factory=SourceStats)
    candidate_count: int = 0
    attendee_fallback: bool = False


class SnippetDiagnostics(BaseModel):
    count: int = 0
    transcript_length: int = 0
    summary_length: int = 0


class EmbeddingDiagnostics(BaseModel):
    model: str = ""
    tasks_cached: int = 0
    tasks_embedded: int = 0
    candidates_embedded: int = 0
    snippets_embedded: int = 0
    embeddings_ready: bool = False


class SelectionDiagnostics(BaseModel):
    selection_threshold: float = 0.0
    minimum_candidate_score: float = 0.0
    direct_match_threshold: float = 0.0
    shortlist_threshold: float = 0.0


class ArbitrationDiagnostics(BaseModel):
    direct_matches: int = 0
    dropped: int = 0
    queued: int = 0
    dropped_by_cap: int = 0
    classifier_calls: int = 0
    classifier_failures: int = 0
    singleton_accepts: int = 0
    unmatched_ids: int = 0
    fallback_matches: int = 0
    accepted: int = 0


class CompletionDiagnostics(BaseModel):
    candidates: CandidateDiagnostics = Field(default_factory=CandidateDiagnostics)
    snippets: SnippetDiagnostics = Field(default_factory=SnippetDiagnostics)
    embeddings: EmbeddingDiagnostics = Field(default_factory=EmbeddingDiagnostics)
    selection: SelectionDiagnostics = Field(default_factory=SelectionDiagnostics)
    arbitration: ArbitrationDiagnostics = Field(default_factory=ArbitrationDiagnostics)


class DetectionResult(BaseModel):
    suggestions: list[CompletionSuggestion] = Field(default_factory=list)
    diagnostics: CompletionDiagnostics = Field(default_factory=CompletionDiagnostics)
