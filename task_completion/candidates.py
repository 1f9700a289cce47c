"""Open-task aggregation across the standalone, meeting and chat stores."""
import logging
from dataclasses import dataclass, field
from typing import Iterable

from .completion_config import CompletionConfig
from .errors import StoreUnavailableError
from .models import (
    Attendee,
    CandidateDiagnostics,
    CompletionCandidate,
    SessionDocument,
    SourceStats,
    StandaloneTask,
    TaskNode,
    TaskTarget,
)
from .normalize import (
    build_assignee_key,
    candidate_key,
    is_placeholder_title,
    is_valid_title,
    normalize_assignee_name,
    normalize_email,
)
from .stores import SessionStore, TaskStore
from .task_tree import flatten_tasks

logger = logging.getLogger(__name__)

SOURCE_RANK = {"task": 0, "meeting": 1, "chat": 2}


@dataclass
class SourceSnapshot:
    """Everything read from the stores for one detection run."""
    tasks: list[StandaloneTask] = field(default_factory=list)
    meetings: list[SessionDocument] = field(default_factory=list)
    chats: list[SessionDocument] = field(default_factory=list)


@dataclass
class AttendeeFilter:
    names: set[str] = field(default_factory=set)
    emails: set[str] = field(default_factory=set)

    @classmethod
    def from_attendees(cls, attendees: Iterable[Attendee]) -> "AttendeeFilter":
        names = {normalize_assignee_name(person.name) for person in attendees}
        emails = {normalize_email(person.email) for person in attendees}
        return cls(names=names - {""}, emails=emails - {""})

    def __bool__(self) -> bool:
        return bool(self.names or self.emails)

    def matches(self, name: str | None, email: str | None, allow_unassigned: bool) -> bool:
        normalized_email = normalize_email(email)
        if normalized_email and normalized_email in self.emails:
            return True
        normalized_name = normalize_assignee_name(name)
        if normalized_name and normalized_name in self.names:
            return True
        return allow_unassigned and not normalized_email and not normalized_name


class CandidateAggregator:
    """Builds deduplicated completion candidates from the three task stores."""

    def __init__(
        self,
        task_store: TaskStore,
        meeting_store: SessionStore,
        chat_store: SessionStore,
        config: CompletionConfig | None = None,
    ):
        self.task_store = task_store
        self.meeting_store = meeting_store
        self.chat_store = chat_store
        self.config = config or CompletionConfig()

    def load(self, user_id: str, workspace_id: str | None = None) -> SourceSnapshot:
        """Read open standalone tasks and every meeting/chat document for the user."""
        try:
            return SourceSnapshot(
                tasks=self.task_store.list_open(user_id, workspace_id),
                meetings=self.meeting_store.list_all(user_id, workspace_id),
                chats=self.chat_store.list_all(user_id, workspace_id),
            )
        except StoreUnavailableError:
            raise
        except (ConnectionError, TimeoutError, OSError) as e:
            raise StoreUnavailableError(f"Task stores unreachable: {e}") from e

    def build(
        self,
        snapshot: SourceSnapshot,
        attendees: Iterable[Attendee] = (),
        require_attendee_match: bool = False,
        exclude_meeting_id: str | None = None,
    ) -> tuple[list[CompletionCandidate], CandidateDiagnostics]:
        attendee_filter = AttendeeFilter.from_attendees(attendees)
        restricted = require_attendee_match and bool(attendee_filter)
        allow_unassigned = not restricted or self.config.allow_unassigned

        candidates, diagnostics = self._build_once(
            snapshot, attendee_filter if restricted else None, allow_unassigned, exclude_meeting_id
        )
        if not candidates and restricted:
            logger.info("CandidateAggregator: no attendee-matched candidates, rebuilding with unassigned allowed")
            candidates, diagnostics = self._build_once(snapshot, None, True, exclude_meeting_id)
            diagnostics.attendee_fallback = True

        logger.info(
            f"CandidateAggregator: {len(candidates)} candidate(s) from {len(snapshot.tasks)} task(s), "
            f"{len(snapshot.meetings)} meeting(s), {len(snapshot.chats)} chat(s)"
        )
        return candidates, diagnostics

    def _build_once(
        self,
        snapshot: SourceSnapshot,
        attendee_filter: AttendeeFilter | None,
        allow_unassigned: bool,
        exclude_meeting_id: str | None,
    ) -> tuple[list[CompletionCandidate], CandidateDiagnostics]:
        candidates: dict[str, CompletionCandidate] = {}
        stats = {"task": SourceStats(), "meeting": SourceStats(), "chat": SourceStats()}

        def offer(task: TaskNode, target: TaskTarget):
            source_stats = stats[target.source_type]
            source_stats.total += 1
            if not task.is_open:
                return
            name, email = task.resolved_assignee_name, task.resolved_assignee_email
            if attendee_filter is not None and not attendee_filter.matches(name, email, allow_unassigned):
                return
            if self._upsert(candidates, task, target, allow_unassigned):
                source_stats.added += 1

        for task in snapshot.tasks:
            if not task.id:
                continue
            offer(task, TaskTarget(source_type="task", source_session_id=task.id, task_id=task.id))

        for session_type, sessions in (("meeting", snapshot.meetings), ("chat", snapshot.chats)):
            for session in sessions:
                if session_type == "meeting" and exclude_meeting_id and session.id == str(exclude_meeting_id):
                    continue
                for task in flatten_tasks(session.tasks):
                    if not task.id:
                        logger.debug(f"CandidateAggregator: skipping {session_type} task without id: {task.title!r}")
                        continue
                    offer(
                        task,
                        TaskTarget(
                            source_type=session_type,
                            source_session_id=session.id,
                            task_id=task.id,
                            source_session_name=session.title,
                        ),
                    )

        diagnostics = CandidateDiagnostics(
            task_count=len(snapshot.tasks),
            meeting_count=len(snapshot.meetings),
            chat_count=len(snapshot.chats),
            tasks=stats["task"],
            meetings=stats["meeting"],
            chats=stats["chat"],
            candidate_count=len(candidates),
        )
        return list(candidates.values()), diagnostics

    def _upsert(
        self,
        candidates: dict[str, CompletionCandidate],
        task: TaskNode,
        target: TaskTarget,
        allow_unassigned: bool,
    ) -> bool:
        """Add or merge one task instance. Returns True when a new candidate was created."""
        title = (task.title or "").strip()
        if not is_valid_title(title) or is_placeholder_title(title):
            return False
        assignee_key = build_assignee_key(
            task.resolved_assignee_name, task.resolved_assignee_email, allow_unassigned
        )
        if not assignee_key:
            return False

        key = candidate_key(title, assignee_key)
        rank = SOURCE_RANK[target.source_type]
        existing = candidates.get(key)
        if existing is None:
            candidates[key] = CompletionCandidate(
                group_id=f"cand_{len(candidates) + 1}",
                key=key,
                assignee_key=assignee_key,
                title=title,
                description=task.description,
                assignee_name=task.resolved_assignee_name,
                assignee_email=task.resolved_assignee_email,
                due_at=task.due_at,
                priority=task.priority,
                source_rank=rank,
                targets=[target],
            )
            return True

        if target.identity not in {item.identity for item in existing.targets}:
            existing.targets.append(target)

        incoming = (task.description or "").strip()
        longer = bool(incoming) and len(incoming) > len(existing.description or "")
        if longer or rank < existing.source_rank:
            existing.description = task.description or existing.description
            existing.due_at = task.due_at or existing.due_at
            existing.priority = task.priority or existing.priority
        existing.source_rank = min(existing.source_rank, rank)
        return False
