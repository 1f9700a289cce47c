"""LangGraph workflow for detecting completed tasks in a transcript."""
import logging
from typing import Iterable, Literal

from langgraph.graph import END, StateGraph

from .arbitration import ArbitrationEngine
from .candidates import CandidateAggregator
from .classifier import CompletionClassifier
from .completion_config import CompletionConfig
from .completion_state import CompletionState
from .cue_extractor import CueExtractor
from .embeddings import EmbeddingProvider
from .merger import build_suggestions
from .models import Attendee, CompletionDiagnostics, DetectionResult, SelectionDiagnostics
from .ranker import SimilarityRanker
from .stores import SessionStore, TaskStore
from .vocabulary import DEFAULT_VOCABULARY, CueVocabulary

logger = logging.getLogger(__name__)


class CompletionDetector:
    """Finds already-open tasks that a transcript reports as completed.

    Flow:
    ExtractSnippets → BuildCandidates → (nothing to match? END)
    → Rank → Arbitrate → BuildSuggestions

    Detection performs no destructive writes; the only store write is the
    embedding cache on standalone tasks.
    """

    def __init__(
        self,
        task_store: TaskStore,
        meeting_store: SessionStore,
        chat_store: SessionStore,
        embedding_provider: EmbeddingProvider | None = None,
        classifier: CompletionClassifier | None = None,
        config: CompletionConfig | None = None,
        vocabulary: CueVocabulary = DEFAULT_VOCABULARY,
    ):
        self.task_store = task_store
        self.meeting_store = meeting_store
        self.chat_store = chat_store
        self.embedding_provider = embedding_provider
        self.classifier = classifier
        self.config = config or CompletionConfig()
        self.extractor = CueExtractor(vocabulary)
        self.graph = self.create_graph()

    def create_graph(self):
        workflow = StateGraph(CompletionState)

        workflow.add_node("extract_snippets", self.extract_snippets_node)
        workflow.add_node("build_candidates", self.build_candidates_node)
        workflow.add_node("rank", self.rank_node)
        workflow.add_node("arbitrate", self.arbitrate_node)
        workflow.add_node("build_suggestions", self.build_suggestions_node)

        workflow.set_entry_point("extract_snippets")
        workflow.add_edge("extract_snippets", "build_candidates")
        workflow.add_conditional_edges(
            "build_candidates",
            self.should_rank,
            {
                "rank": "rank",
                "end": END,
            }
        )
        workflow.add_edge("rank", "arbitrate")
        workflow.add_edge("arbitrate", "build_suggestions")
        workflow.add_edge("build_suggestions", END)

        app = workflow.compile()
        logger.info("Completion workflow created successfully")
        return app

    def extract_snippets_node(self, state: CompletionState) -> CompletionState:
        """
        [1] EXTRACT SNIPPETS
        Role: Cue matching only (NO AI)
        """
        transcript = state.get("transcript", "")
        summary = state.get("summary") or ""
        snippets = self.extractor.extract(transcript, summary)
        diagnostics = state["diagnostics"]
        diagnostics.snippets.count = len(snippets)
        diagnostics.snippets.transcript_length = len(transcript)
        diagnostics.snippets.summary_length = len(summary)
        return {**state, "snippets": snippets}

    def build_candidates_node(self, state: CompletionState) -> CompletionState:
        """
        [2] BUILD CANDIDATES
        Role: Read the three stores and deduplicate open tasks
        """
        aggregator = CandidateAggregator(self.task_store, self.meeting_store, self.chat_store, state["config"])
        snapshot = aggregator.load(state["user_id"], state.get("workspace_id"))
        candidates, candidate_diagnostics = aggregator.build(
            snapshot,
            attendees=state.get("attendees", []),
            require_attendee_match=state.get("require_attendee_match", False),
            exclude_meeting_id=state.get("exclude_meeting_id"),
        )
        state["diagnostics"].candidates = candidate_diagnostics
        return {**state, "snapshot": snapshot, "candidates": candidates}

    def should_rank(self, state: CompletionState) -> Literal["rank", "end"]:
        if not state.get("snippets") or not state.get("candidates"):
            logger.info("Workflow: nothing to match, ending early")
            return "end"
        return "rank"

    def rank_node(self, state: CompletionState) -> CompletionState:
        """
        [3] RANK
        Role: Hybrid token/embedding scores for every snippet-candidate pair
        """
        ranker = SimilarityRanker(self.embedding_provider, self.task_store, state["config"])
        index, embedding_diagnostics = ranker.build_index(
            state["candidates"], state["snippets"], state["snapshot"].tasks
        )
        state["diagnostics"].embeddings = embedding_diagnostics
        ranked_snippets = index.rank_snippets(state["snippets"])
        return {**state, "ranking_index": index, "ranked_snippets": ranked_snippets}

    def arbitrate_node(self, state: CompletionState) -> CompletionState:
        """
        [4] ARBITRATE
        Role: Direct matches without AI, bounded classifier calls for the ambiguous rest
        """
        engine = ArbitrationEngine(self.classifier, state["config"])
        accepted, arbitration_diagnostics = engine.decide(
            state["ranked_snippets"], state["candidates"], state.get("ranking_index")
        )
        state["diagnostics"].arbitration = arbitration_diagnostics
        return {**state, "accepted": accepted}

    def build_suggestions_node(self, state: CompletionState) -> CompletionState:
        """
        [5] BUILD SUGGESTIONS
        Role: Enforce the suggestion schema
        """
        suggestions = build_suggestions(state.get("accepted", []), state["candidates"])
        logger.info(f"BuildSuggestions: {len(suggestions)} completion suggestion(s)")
        return {**state, "suggestions": suggestions}

    def detect(
        self,
        user_id: str,
        transcript: str,
        summary: str | None = None,
        attendees: Iterable[Attendee | dict] = (),
        exclude_meeting_id: str | None = None,
        require_attendee_match: bool = False,
        min_match_ratio: float | None = None,
        workspace_id: str | None = None,
    ) -> DetectionResult:
        config = self.config.with_overrides(min_match_ratio=min_match_ratio)
        diagnostics = CompletionDiagnostics(
            selection=SelectionDiagnostics(
                selection_threshold=config.selection_threshold,
                minimum_candidate_score=config.minimum_candidate_score,
                direct_match_threshold=config.direct_match_threshold,
                shortlist_threshold=config.shortlist_threshold,
            )
        )
        diagnostics.embeddings.model = config.embedding_model
        full_transcript = transcript.strip() if isinstance(transcript, str) else ""
        if not user_id or not full_transcript:
            return DetectionResult(diagnostics=diagnostics)

        logger.info("Starting completion detection workflow...")
        initial_state: CompletionState = {
            "user_id": user_id,
            "transcript": full_transcript,
            "summary": summary.strip() if isinstance(summary, str) else None,
            "attendees": [
                person if isinstance(person, Attendee) else Attendee.model_validate(person)
                for person in attendees
            ],
            "exclude_meeting_id": exclude_meeting_id,
            "require_attendee_match": require_attendee_match,
            "workspace_id": workspace_id,
            "config": config,
            "snippets": [],
            "candidates": [],
            "accepted": [],
            "suggestions": [],
            "diagnostics": diagnostics,
        }
        final_state = self.graph.invoke(initial_state)
        suggestions = final_state.get("suggestions", [])
        logger.info(f"Detection complete: {len(suggestions)} suggestion(s)")
        return DetectionResult(suggestions=suggestions, diagnostics=final_state.get("diagnostics", diagnostics))


def detect_completions(
    user_id: str,
    transcript: str,
    *,
    task_store: TaskStore,
    meeting_store: SessionStore,
    chat_store: SessionStore,
    embedding_provider: EmbeddingProvider | None = None,
    classifier: CompletionClassifier | None = None,
    config: CompletionConfig | None = None,
    summary: str | None = None,
    attendees: Iterable[Attendee | dict] = (),
    exclude_meeting_id: str | None = None,
    require_attendee_match: bool = False,
    min_match_ratio: float | None = None,
    workspace_id: str | None = None,
) -> DetectionResult:
    """Detect completions in a transcript against every open task of the user."""
    detector = CompletionDetector(
        task_store,
        meeting_store,
        chat_store,
        embedding_provider=embedding_provider,
        classifier=classifier,
        config=config,
    )
    return detector.detect(
        user_id,
        transcript,
        summary=summary,
        attendees=attendees,
        exclude_meeting_id=exclude_meeting_id,
        require_attendee_match=require_attendee_match,
        min_match_ratio=min_match_ratio,
        workspace_id=workspace_id,
    )
