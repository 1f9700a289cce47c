"""Provider configuration for completion detection.

This file contains separate configurations for each external model the
detector talks to: the embedding provider used by the similarity ranker and
the chat model used for completion arbitration.
"""
import os
from dotenv import load_dotenv

load_dotenv()


# ============================================================================
# DEFAULT/COMMON CONFIGURATION
# ============================================================================
# These are used as fallbacks if provider-specific configs are not set

DEFAULT_API_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
DEFAULT_API_KEY = os.getenv("OPENAI_API_KEY", None)


# ============================================================================
# EMBEDDING PROVIDER CONFIGURATION
# ============================================================================
# Used by the similarity ranker for snippet and task vectors
# Needs: Stable model id (cached vectors are keyed by it)

EMBEDDING_MODEL_NAME = os.getenv("OPENAI_EMBEDDINGS_MODEL", "text-embedding-3-small")
EMBEDDING_API_URL = os.getenv("OPENAI_EMBEDDINGS_URL", DEFAULT_API_URL)
EMBEDDING_API_KEY = os.getenv("OPENAI_EMBEDDINGS_API_KEY", DEFAULT_API_KEY)
EMBEDDING_TIMEOUT = float(os.getenv("OPENAI_EMBEDDINGS_TIMEOUT", "30"))


# ============================================================================
# COMPLETION CLASSIFIER CONFIGURATION
# ============================================================================
# Used for arbitrating ambiguous snippets against a short candidate list
# Needs: Fast, low cost, conservative JSON output

CLASSIFIER_MODEL_NAME = os.getenv(
    "COMPLETION_AUDIT_MODEL", os.getenv("OPENAI_COMPLETION_AUDIT_MODEL", "gpt-4o-mini")
)
CLASSIFIER_API_URL = os.getenv("COMPLETION_AUDIT_API_URL", DEFAULT_API_URL)
CLASSIFIER_API_KEY = os.getenv("COMPLETION_AUDIT_API_KEY", DEFAULT_API_KEY)
CLASSIFIER_TEMPERATURE = float(os.getenv("COMPLETION_AUDIT_TEMPERATURE", "0"))  # Deterministic arbitration
CLASSIFIER_MAX_TOKENS = min(900, max(200, int(os.getenv("COMPLETION_AUDIT_MAX_TOKENS", "450"))))


# ============================================================================
# CONFIGURATION DICTIONARIES (for easy access)
# ============================================================================

EMBEDDING_CONFIG = {
    "model_name": EMBEDDING_MODEL_NAME,
    "api_url": EMBEDDING_API_URL,
    "api_key": EMBEDDING_API_KEY,
    "timeout": EMBEDDING_TIMEOUT,
}

CLASSIFIER_CONFIG = {
    "model_name": CLASSIFIER_MODEL_NAME,
    "api_url": CLASSIFIER_API_URL,
    "api_key": CLASSIFIER_API_KEY,
    "temperature": CLASSIFIER_TEMPERATURE,
    "max_tokens": CLASSIFIER_MAX_TOKENS,
}
