"""Store contracts and in-memory reference stores.

The detector only needs a narrow read/write contract against the canonical
task store and the two session stores. Each store adapts its native camelCase
documents into `StandaloneTask` / `SessionDocument` before they reach the
pipeline.
"""
import logging
from typing import Iterable, Protocol

from .models import SessionDocument, SessionType, StandaloneTask, TaskEvidence, TaskNode, TaskTarget

logger = logging.getLogger(__name__)


class TaskStore(Protocol):
    def list_open(self, user_id: str, workspace_id: str | None = None) -> list[StandaloneTask]: ...

    def bulk_set_embedding(self, updates: list[tuple[str, list[float]]], model_id: str) -> None: ...

    def bulk_set_status(
        self, targets: list[TaskTarget], status: str, evidence: list[TaskEvidence] | None = None
    ) -> int: ...


class SessionStore(Protocol):
    session_type: SessionType

    def list_all(self, user_id: str, workspace_id: str | None = None) -> list[SessionDocument]: ...

    def get(self, user_id: str, session_id: str) -> SessionDocument | None: ...

    def update_task_tree(self, user_id: str, session_id: str, tasks: list[TaskNode]) -> None: ...


def document_id(document: dict) -> str:
    raw = document.get("id") if document.get("id") is not None else document.get("_id")
    return "" if raw is None else str(raw)


def in_workspace(document: dict, workspace_id: str | None) -> bool:
    """Documents without a workspace are visible from every workspace."""
    if not workspace_id or not workspace_id.strip():
        return True
    value = document.get("workspaceId")
    return value is None or value == workspace_id


def _native_task(document: dict) -> dict:
    native = {key: value for key, value in document.items() if key != "_id"}
    native["id"] = document_id(document)
    return native


class InMemoryTaskStore:
    """Canonical task store over a list of native task documents."""

    def __init__(self, documents: Iterable[dict] = ()):
        self.documents = [dict(document) for document in documents]
        self.status_writes = 0

    def _owned(self, user_id: str | None) -> list[dict]:
        return [
            document for document in self.documents
            if user_id is None or str(document.get("userId")) == str(user_id)
        ]

    def list_open(self, user_id: str, workspace_id: str | None = None) -> list[StandaloneTask]:
        return [
            StandaloneTask.model_validate(_native_task(document))
            for document in self._owned(user_id)
            if document.get("status") != "done" and in_workspace(document, workspace_id)
        ]

    def bulk_set_embedding(self, updates: list[tuple[str, list[float]]], model_id: str) -> None:
        vectors = dict(updates)
        for document in self.documents:
            vector = vectors.get(document_id(document))
            if vector is not None:
                document["embedding"] = list(vector)
                document["embeddingModel"] = model_id
        logger.debug(f"TaskStore: cached {len(vectors)} embedding(s) for model {model_id}")

    def _matches(self, document: dict, target: TaskTarget) -> bool:
        if target.source_type == "task":
            return document_id(document) == str(target.task_id)
        return (
            document.get("sourceSessionType") == target.source_type
            and str(document.get("sourceSessionId")) == str(target.source_session_id)
            and (
                document_id(document) == str(target.task_id)
                or str(document.get("sourceTaskId")) == str(target.task_id)
            )
        )

    def bulk_set_status(
        self, targets: list[TaskTarget], status: str, evidence: list[TaskEvidence] | None = None
    ) -> int:
        updated = 0
        evidence_docs = [item.to_document() for item in evidence] if evidence else None
        for document in self.documents:
            if not any(self._matches(document, target) for target in targets):
                continue
            document["status"] = status
            document["completionSuggested"] = False
            if evidence_docs is not None:
                document["completionEvidence"] = evidence_docs
            updated += 1
        self.status_writes += 1
        return updated


class InMemorySessionStore:
    """Meeting or chat-session store; each document nests its task tree under `task_field`."""

    def __init__(self, session_type: SessionType, documents: Iterable[dict] = (), task_field: str | None = None):
        self.session_type = session_type
        self.task_field = task_field or ("extractedTasks" if session_type == "meeting" else "suggestedTasks")
        self.documents = [dict(document) for document in documents]
        self.tree_writes = 0

    def _to_session(self, document: dict) -> SessionDocument:
        return SessionDocument(
            id=document_id(document),
            title=document.get("title"),
            user_id=document.get("userId"),
            workspace_id=document.get("workspaceId"),
            tasks=[TaskNode.model_validate(task) for task in document.get(self.task_field) or []],
        )

    def _find(self, user_id: str, session_id: str) -> dict | None:
        for document in self.documents:
            if document_id(document) == str(session_id) and str(document.get("userId")) == str(user_id):
                return document
        return None

    def list_all(self, user_id: str, workspace_id: str | None = None) -> list[SessionDocument]:
        return [
            self._to_session(document)
            for document in self.documents
            if str(document.get("userId")) == str(user_id) and in_workspace(document, workspace_id)
        ]

    def get(self, user_id: str, session_id: str) -> SessionDocument | None:
        document = self._find(user_id, session_id)
        return self._to_session(document) if document else None

    def update_task_tree(self, user_id: str, session_id: str, tasks: list[TaskNode]) -> None:
        document = self._find(user_id, session_id)
        if document is None:
            logger.warning(f"SessionStore: {self.session_type} {session_id} not found, tree not written")
            return
        document[self.task_field] = [task.to_document() for task in tasks]
        self.tree_writes += 1
