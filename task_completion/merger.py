"""Turning accepted completions into suggestions, merging them into task trees and applying them."""
import logging
import uuid
from dataclasses import dataclass

from .models import (
    AcceptedCompletion,
    CompletionCandidate,
    CompletionSuggestion,
    SessionType,
    TaskEvidence,
    TaskNode,
    TaskTarget,
)
from .normalize import build_assignee_key, normalize_title_key
from .stores import SessionStore, TaskStore
from .task_tree import TaskTree

logger = logging.getLogger(__name__)


def build_suggestions(
    accepted: list[AcceptedCompletion], candidates: list[CompletionCandidate]
) -> list[CompletionSuggestion]:
    by_id = {candidate.group_id: candidate for candidate in candidates}
    suggestions = []
    for item in accepted:
        candidate = by_id.get(item.group_id)
        if candidate is None:
            logger.warning(f"ResultMerger: accepted id {item.group_id!r} has no candidate, skipping")
            continue
        suggestions.append(CompletionSuggestion(
            id=str(uuid.uuid4()),
            title=candidate.title,
            description=candidate.description or None,
            priority=candidate.priority or "medium",
            due_at=candidate.due_at,
            status="todo",
            assignee_name=candidate.assignee_name,
            assignee_email=candidate.assignee_email,
            completion_suggested=True,
            completion_confidence=item.confidence,
            completion_evidence=[item.evidence],
            completion_targets=list(candidate.targets),
        ))
    return suggestions


def suggestion_match_key(task: TaskNode) -> str:
    assignee_key = build_assignee_key(task.resolved_assignee_name, task.resolved_assignee_email, True)
    return f"{normalize_title_key(task.title)}|{assignee_key}"


def merge_completion_suggestions(
    tasks: list[TaskNode], suggestions: list[CompletionSuggestion]
) -> list[TaskNode]:
    """Flag matching nodes for review and append unmatched suggestions as new roots.

    Task status is never changed here.
    """
    if not suggestions:
        return tasks

    pending: dict[str, CompletionSuggestion] = {}
    for suggestion in suggestions:
        pending[suggestion_match_key(suggestion)] = suggestion

    tree = TaskTree.from_nested(tasks)
    flagged: dict[str, CompletionSuggestion] = {}
    for key in tree.walk():
        match_key = suggestion_match_key(tree.nodes[key])
        if match_key in pending:
            flagged[key] = pending.pop(match_key)

    def flag(key: str, node: TaskNode) -> TaskNode:
        suggestion = flagged.get(key)
        if suggestion is None:
            return node
        return node.model_copy(update={
            "status": node.status or "todo",
            "completion_suggested": True,
            "completion_confidence": suggestion.completion_confidence,
            "completion_evidence": list(suggestion.completion_evidence),
            "completion_targets": list(suggestion.completion_targets),
        })

    merged = TaskTree(
        nodes={key: flag(key, node) for key, node in tree.nodes.items()},
        children=dict(tree.children),
        roots=tree.roots,
    )
    remaining = [
        suggestion.model_copy(update={
            "status": suggestion.status if suggestion.status and suggestion.status != "done" else "todo",
            "completion_suggested": True,
        })
        for suggestion in pending.values()
    ]
    if remaining:
        merged = merged.append_roots(remaining)
    return merged.to_nested()


def filter_tasks_for_session_sync(
    tasks: list[TaskNode], session_type: SessionType, session_id: str
) -> list[TaskNode]:
    """Drop suggestion nodes whose targets all belong to other sessions."""
    if not tasks:
        return tasks
    session_key = str(session_id)

    def keep(task: TaskNode) -> bool:
        if not task.completion_suggested:
            return True
        targets = task.completion_targets or []
        if not targets:
            return True
        return any(
            target.source_type == session_type and str(target.source_session_id) == session_key
            for target in targets
        )

    return TaskTree.from_nested(tasks).prune(keep).to_nested()


@dataclass
class ApplyResult:
    targets: int = 0
    tasks_updated: int = 0
    sessions_updated: int = 0


def _complete_node(node: TaskNode, evidence: list[TaskEvidence]) -> TaskNode:
    return node.model_copy(update={
        "status": "done",
        "completion_suggested": False,
        "completion_evidence": list(evidence),
    })


def _is_completed(node: TaskNode, evidence: list[TaskEvidence]) -> bool:
    return node.status == "done" and node.completion_suggested is False and node.completion_evidence == evidence


def apply_completion_targets(
    suggestions: list[CompletionSuggestion],
    user_id: str,
    task_store: TaskStore,
    meeting_store: SessionStore,
    chat_store: SessionStore,
) -> ApplyResult:
    """Mark every target of every confirmed suggestion as done, in whichever store it lives.

    Re-applying the same suggestions leaves the stores unchanged.
    """
    targets: dict[tuple[str, str, str], tuple[TaskTarget, list[TaskEvidence]]] = {}
    for suggestion in suggestions:
        for target in suggestion.completion_targets or []:
            targets.setdefault(target.identity, (target, list(suggestion.completion_evidence or [])))
    result = ApplyResult(targets=len(targets))
    if not targets:
        return result

    session_stores = {"meeting": meeting_store, "chat": chat_store}
    for target, evidence in targets.values():
        if target.source_type == "task":
            result.tasks_updated += task_store.bulk_set_status([target], "done", evidence)
            continue

        store = session_stores[target.source_type]
        session = store.get(user_id, target.source_session_id)
        if session is not None:
            tree = TaskTree.from_nested(session.tasks)
            changed = False

            def complete(node: TaskNode) -> TaskNode:
                nonlocal changed
                if node.id != str(target.task_id) or _is_completed(node, evidence):
                    return node
                changed = True
                return _complete_node(node, evidence)

            updated = tree.map_nodes(complete)
            if changed:
                store.update_task_tree(user_id, session.id, updated.to_nested())
                result.sessions_updated += 1
        # Standalone tasks mirrored from this session task complete with it.
        result.tasks_updated += task_store.bulk_set_status([target], "done", evidence)

    logger.info(
        f"ResultMerger: applied {result.targets} target(s), {result.tasks_updated} task record(s), "
        f"{result.sessions_updated} session tree(s)"
    )
    return result
