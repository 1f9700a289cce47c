"""Shared fakes for completion detection tests."""
import pytest

from task_completion.completion_config import CompletionConfig
from task_completion.errors import ClassifierError, EmbeddingProviderError
from task_completion.stores import InMemorySessionStore, InMemoryTaskStore


class FakeEmbeddingProvider:
    """Returns fixed vectors per text and records every request."""

    def __init__(self, vectors=None, default=None, model_name="fake-embed", fail_on_call=None):
        self.vectors = vectors or {}
        self.default = default if default is not None else [0.0, 0.0, 0.0, 1.0]
        self.model_name = model_name
        self.fail_on_call = fail_on_call
        self.calls = []

    def embed(self, texts):
        self.calls.append(list(texts))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise EmbeddingProviderError("simulated outage")
        return [list(self.vectors.get(text, self.default)) for text in texts]


class FakeClassifier:
    """Answers from a queue (or a callable) and records every call."""

    def __init__(self, responses=None, fail=False):
        self.responses = responses
        self.fail = fail
        self.calls = []

    def classify(self, snippet_text, candidates):
        self.calls.append((snippet_text, list(candidates)))
        if self.fail:
            raise ClassifierError("simulated classifier outage")
        if callable(self.responses):
            return self.responses(snippet_text, candidates)
        if not self.responses:
            return []
        return self.responses.pop(0)


@pytest.fixture
def config():
    return CompletionConfig(embedding_model="fake-embed")


@pytest.fixture
def make_stores():
    def build(tasks=(), meetings=(), chats=()):
        return (
            InMemoryTaskStore(tasks),
            InMemorySessionStore("meeting", meetings),
            InMemorySessionStore("chat", chats),
        )

    return build
