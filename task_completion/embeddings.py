"""Embedding provider used by the similarity ranker."""
import logging
from typing import Protocol

from langchain_openai import OpenAIEmbeddings

from . import llm_config
from .errors import EmbeddingProviderError

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    model_name: str

    def embed(self, texts: list[str]) -> list[list[float]]: ...


class LangChainEmbeddingProvider:
    """OpenAI-compatible embeddings through LangChain."""

    def __init__(self, config: dict | None = None):
        config = config or llm_config.EMBEDDING_CONFIG
        self.model_name = config["model_name"]
        logger.info("Initializing embeddings: %s at %s", self.model_name, config["api_url"])
        self.client = OpenAIEmbeddings(
            model=self.model_name,
            base_url=config["api_url"],
            api_key=config["api_key"],
            timeout=config.get("timeout"),
            max_retries=0,
        )

    def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            vectors = self.client.embed_documents(texts)
        except Exception as e:
            raise EmbeddingProviderError(f"Embedding request failed: {e}") from e
        if len(vectors) != len(texts):
            raise EmbeddingProviderError(f"Expected {len(texts)} embeddings, got {len(vectors)}")
        return vectors


def build_embedding_provider(config: dict | None = None) -> LangChainEmbeddingProvider | None:
    """Provider from config, or None when no API key is configured."""
    config = config or llm_config.EMBEDDING_CONFIG
    if not config.get("api_key"):
        logger.warning("No embedding API key configured, similarity ranking will be lexical only")
        return None
    return LangChainEmbeddingProvider(config)


def embed_in_batches(
    provider: EmbeddingProvider | None, texts: list[str], batch_size: int = 40
) -> list[list[float] | None]:
    """Embed texts batch by batch; a failed batch leaves None for its texts."""
    results: list[list[float] | None] = [None] * len(texts)
    if provider is None or not texts:
        return results
    size = batch_size if batch_size > 0 else len(texts)
    for start in range(0, len(texts), size):
        batch = texts[start:start + size]
        try:
            vectors = provider.embed(batch)
        except EmbeddingProviderError as e:
            logger.warning(f"Embeddings: batch {start // size + 1} failed: {e}")
            continue
        if len(vectors) != len(batch):
            logger.warning(f"Embeddings: batch {start // size + 1} returned {len(vectors)} of {len(batch)} vectors")
            continue
        for offset, vector in enumerate(vectors):
            results[start + offset] = list(vector) if vector else None
    return results
