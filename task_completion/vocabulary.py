"""Cue and negation vocabulary for completion snippets.

The vocabulary is immutable and passed into the extractor, so alternative
phrase lists can be tried without touching module state.
"""
import re
from dataclasses import dataclass, field

COMPLETION_CUES = (
    "done", "complete", "completed", "finished", "resolved", "fixed", "shipped",
    "delivered", "launched", "closed", "closed out", "wrapped up", "wrapped",
    "already did", "already done", "already handled", "already taken care of",
    "handled", "taken care of", "sorted", "sorted out", "checked off", "signed off",
    "approved", "submitted", "sent", "filed", "paid", "merged", "deployed",
    "published", "released", "live", "ready", "in place", "all set", "good to go",
    "bought", "purchased", "acquired", "ordered", "booked", "scheduled", "set up",
    "setup", "implemented", "configured", "installed", "finalized",
)

NEGATORS = (
    "not", "never", "no", "hasn't", "haven't", "didn't", "isn't", "wasn't",
    "aren't", "weren't", "don't", "doesn't", "can't", "cannot", "won't",
)

NEGATABLE_CUES = (
    "done", "complete", "completed", "finished", "resolved", "fixed", "handled",
    "taken care of", "bought", "purchased", "ready", "live", "shipped", "delivered",
    "launched", "approved",
)

GENERIC_SUBJECTS = ("that", "it", "this", "task")
GENERIC_CUES = ("done", "complete", "completed", "finished", "resolved", "fixed")


def _alternation(phrases) -> str:
    # Longest first so multi-word phrases win over their prefixes.
    ordered = sorted(set(phrases), key=len, reverse=True)
    return "|".join(re.escape(phrase).replace("'", "['’]").replace(r"\ ", r"\s+") for phrase in ordered)


@dataclass(frozen=True)
class CueVocabulary:
    cues: tuple[str, ...] = COMPLETION_CUES
    negators: tuple[str, ...] = NEGATORS
    negatable_cues: tuple[str, ...] = NEGATABLE_CUES
    generic_subjects: tuple[str, ...] = GENERIC_SUBJECTS
    generic_cues: tuple[str, ...] = GENERIC_CUES
    negation_window: int = 32
    generic_max_tokens: int = 6
    cue_pattern: re.Pattern = field(init=False, repr=False, compare=False)
    negation_pattern: re.Pattern = field(init=False, repr=False, compare=False)
    generic_pattern: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(
            self, "cue_pattern", re.compile(rf"\b(?:{_alternation(self.cues)})\b", re.IGNORECASE)
        )
        object.__setattr__(
            self,
            "negation_pattern",
            re.compile(
                rf"\b(?:{_alternation(self.negators)})\b[^.!?]{{0,{self.negation_window}}}?"
                rf"\b(?:{_alternation(self.negatable_cues)})\b",
                re.IGNORECASE,
            ),
        )
        object.__setattr__(
            self,
            "generic_pattern",
            re.compile(
                rf"\b(?:{_alternation(self.generic_subjects)})\b.*\b(?:{_alternation(self.generic_cues)})\b",
                re.IGNORECASE,
            ),
        )

    def has_cue(self, sentence: str) -> bool:
        return bool(self.cue_pattern.search(sentence))

    def is_negated(self, sentence: str) -> bool:
        return bool(self.negation_pattern.search(sentence))

    def is_completion(self, sentence: str) -> bool:
        return self.has_cue(sentence) and not self.is_negated(sentence)


DEFAULT_VOCABULARY = CueVocabulary()
