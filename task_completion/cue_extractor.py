"""Completion cue extraction from transcripts and summaries."""
import logging
import re

from .models import CompletionSnippet
from .normalize import normalize_title_key
from .vocabulary import DEFAULT_VOCABULARY, CueVocabulary

logger = logging.getLogger(__name__)

# "HH:MM[:SS] - Speaker: text"; timestamp and speaker are independently optional
LINE_PATTERN = re.compile(
    r"^(?:(?P<timestamp>\d{1,2}:\d{2}(?::\d{2})?)\s*-\s*)?"
    r"(?:(?P<speaker>[^:.!?]{1,60}?):\s+)?"
    r"(?P<text>.+)$"
)
SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def parse_transcript_line(line: str) -> tuple[str, str | None, str | None]:
    """Split a line into (text, speaker, timestamp)."""
    match = LINE_PATTERN.match(line.strip())
    if not match:
        return line.strip(), None, None
    speaker = match.group("speaker")
    return (
        match.group("text").strip(),
        speaker.strip() if speaker else None,
        match.group("timestamp"),
    )


def split_sentences(text: str) -> list[str]:
    return [sentence.strip() for sentence in SENTENCE_BOUNDARY.split(text) if sentence.strip()]


class CueExtractor:
    """Finds sentences that plausibly report a task as finished."""

    def __init__(self, vocabulary: CueVocabulary = DEFAULT_VOCABULARY):
        self.vocabulary = vocabulary

    def is_generic(self, sentence: str) -> bool:
        """True for short pronoun-only completions such as "that's done"."""
        normalized = normalize_title_key(sentence)
        if not normalized:
            return True
        word_count = len(normalized.split(" "))
        return (
            word_count <= self.vocabulary.generic_max_tokens
            and bool(self.vocabulary.generic_pattern.search(sentence))
        )

    def extract_from_text(self, text: str | None) -> list[CompletionSnippet]:
        """Snippets from one source, in order, without cross-source dedup."""
        if not text:
            return []
        snippets = []
        previous_text = ""
        for raw_line in text.splitlines():
            if not raw_line.strip():
                continue
            line_text, speaker, timestamp = parse_transcript_line(raw_line)
            if not line_text:
                previous_text = ""
                continue
            for sentence in split_sentences(line_text):
                if not self.vocabulary.is_completion(sentence):
                    continue
                snippet_text = sentence
                if previous_text and self.is_generic(sentence):
                    snippet_text = f"{previous_text} {sentence}".strip()
                snippets.append(
                    CompletionSnippet(text=snippet_text, speaker=speaker, timestamp=timestamp)
                )
            previous_text = line_text
        return snippets

    def extract(self, transcript: str | None, summary: str | None = None) -> list[CompletionSnippet]:
        """Completion snippets from the transcript and the summary, deduplicated by normalized text."""
        combined = self.extract_from_text(transcript) + self.extract_from_text(summary)
        snippets = []
        seen = set()
        for snippet in combined:
            key = normalize_title_key(snippet.text)
            if not key or key in seen:
                continue
            seen.add(key)
            snippets.append(snippet)
        logger.info(f"CueExtractor: {len(snippets)} completion snippet(s) from {len(combined)} cue sentence(s)")
        return snippets
