"""Graph state definition for the completion detection workflow."""
from typing import Any, List, Optional, TypedDict

from .candidates import SourceSnapshot
from .completion_config import CompletionConfig
from .models import (
    AcceptedCompletion,
    Attendee,
    CompletionCandidate,
    CompletionDiagnostics,
    CompletionSnippet,
    CompletionSuggestion,
    RankedSnippet,
)


class CompletionState(TypedDict, total=False):
    """Global state for one detection run."""
    # Request
    user_id: str
    transcript: str
    summary: Optional[str]
    attendees: List[Attendee]
    exclude_meeting_id: Optional[str]
    require_attendee_match: bool
    workspace_id: Optional[str]
    config: CompletionConfig

    # Intermediate structures
    snippets: List[CompletionSnippet]  # Completion cues from transcript + summary
    snapshot: SourceSnapshot  # Raw store reads, reused for embedding caching
    candidates: List[CompletionCandidate]  # Deduplicated open tasks
    ranking_index: Any  # RankingIndex, needed again for fallback resolution
    ranked_snippets: List[RankedSnippet]

    # Final structures
    accepted: List[AcceptedCompletion]
    suggestions: List[CompletionSuggestion]
    diagnostics: CompletionDiagnostics
