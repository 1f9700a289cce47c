"""LLM arbitration for ambiguous completion snippets using LangChain structured output."""
import json
import logging
from typing import Protocol

from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI

from . import llm_config
from .errors import ClassifierError
from .models import ClassifierCandidate, ClassifierMatch, ClassifierOutput

logger = logging.getLogger(__name__)


class CompletionClassifier(Protocol):
    def classify(self, snippet_text: str, candidates: list[ClassifierCandidate]) -> list[ClassifierMatch]: ...


SYSTEM_PROMPT = """You are a Completion Auditor. Decide which of the open task candidates the transcript excerpt reports as DONE.

Rules:
- Only select tasks from the provided candidate list. Do NOT invent tasks or ids.
- Match by meaning even if the excerpt uses different wording, abbreviations or minor misspellings.
- A task is completed ONLY if the excerpt clearly says it is finished: explicit completion words
  (done, finished, completed, wrapped up, shipped, resolved, closed, finalized) or clear completion
  statements (we bought it, it's live, it's in place, already handled, signed off, approved, deployed,
  published, submitted, sent).
- Work that is in progress, planned, blocked, failing, or merely discussed is NOT completed.
- Resolve "it", "that" or "this" to the best matching candidate in the list.
- Use assigneeKey only as a tie-breaker when two titles are similar.
- Be conservative. If completion is ambiguous, return no match.
- Never return more than 3 items for one short excerpt.

Return JSON only:
{{
  "completed": [
    {{
      "groupId": "candidate id",
      "confidence": 0.0,
      "evidence": {{"snippet": "short exact excerpt", "speaker": null, "timestamp": null}}
    }}
  ]
}}
"""


class LangChainCompletionClassifier:
    """Asks a chat model which shortlisted candidates a snippet completes."""

    def __init__(self, config: dict | None = None, llm=None):
        config = config or llm_config.CLASSIFIER_CONFIG
        if llm is None:
            logger.info("Initializing classifier model: %s at %s", config["model_name"], config["api_url"])
            llm = ChatOpenAI(
                base_url=config["api_url"],
                api_key=config["api_key"] or "not-needed",
                model=config["model_name"],
                temperature=config["temperature"],
                max_tokens=config["max_tokens"],
                max_retries=0,
            )
        self.llm = llm
        # Bind structured output to the model (must be a single Pydantic model, not List[...])
        self.structured_llm = self.llm.with_structured_output(ClassifierOutput, method="json_mode")
        self.prompt = ChatPromptTemplate.from_messages([
            ("system", SYSTEM_PROMPT),
            ("human", "Open task candidates (JSON):\n{candidates}\n\nTranscript excerpt:\n{snippet}"),
        ])

    def classify(self, snippet_text: str, candidates: list[ClassifierCandidate]) -> list[ClassifierMatch]:
        if not candidates:
            return []
        candidates_json = json.dumps(
            [candidate.model_dump(by_alias=True) for candidate in candidates], indent=2, ensure_ascii=False
        )
        chain = self.prompt | self.structured_llm
        try:
            result: ClassifierOutput = chain.invoke({"candidates": candidates_json, "snippet": snippet_text})
        except Exception as e:
            raise ClassifierError(f"Completion classifier failed: {e}") from e
        if result is None:
            return []
        logger.debug(f"Classifier: {len(result.completed)} match(es) for {len(candidates)} candidate(s)")
        return result.completed


def build_classifier(config: dict | None = None) -> LangChainCompletionClassifier | None:
    config = config or llm_config.CLASSIFIER_CONFIG
    if not config.get("api_key") and "api.openai.com" in (config.get("api_url") or ""):
        logger.warning("No classifier API key configured, ambiguous snippets will not be arbitrated")
        return None
    return LangChainCompletionClassifier(config)
