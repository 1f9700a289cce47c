"""Text and identity normalization shared by the pipeline stages."""
import re

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

UNASSIGNED_LABELS = frozenset({
    "unassigned",
    "un assigned",
    "unknown",
    "none",
    "na",
    "n a",
    "tbd",
    "tba",
    "nobody",
})

STOPWORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "been", "but", "by", "for", "from",
    "had", "has", "have", "i", "i'm", "im", "in", "is", "it", "its", "me", "my",
    "of", "on", "or", "our", "s", "so", "that", "the", "their", "them", "then",
    "there", "this", "to", "up", "us", "was", "we", "were", "will", "with", "you",
    "your", "ve", "ll", "d", "m", "re", "t",
})

_GENERIC_TITLES = re.compile(
    r"^(action item|action items|task|tasks|todo|to do|item|items|next step|"
    r"meeting action|refined task|simplified task|root topic)$"
)
_GENERIC_NUMBERED_TITLES = re.compile(
    r"^(action item|task|todo|to do|item|next step|meeting action|refined task|"
    r"simplified task|root topic)\s*#?\d+$"
)
_LIST_MARKER = re.compile(r"^[0-9a-zA-Z]{1,2}[.)]?$")
_NUMERIC_OR_LETTER = re.compile(r"^(?:[0-9]+|[a-zA-Z])$")


def normalize_title_key(title: str | None) -> str:
    """Lower-case, replace punctuation with spaces and collapse whitespace."""
    if not title:
        return ""
    folded = _NON_ALNUM.sub(" ", title.lower().replace("’", "'"))
    return _WHITESPACE.sub(" ", folded).strip()


normalize_person_name_key = normalize_title_key


def normalize_email(value: str | None) -> str:
    return value.strip().lower() if value else ""


def normalize_assignee_name(value: str | None) -> str:
    """Folded display name, or "" when the value is one of the unassigned labels."""
    normalized = normalize_person_name_key(value)
    if not normalized or normalized in UNASSIGNED_LABELS:
        return ""
    return normalized


def build_assignee_key(name: str | None, email: str | None, allow_unassigned: bool = False) -> str:
    """Identity of an assignee: email first, then name, then the unassigned sentinel.

    Returns "" when the task is unassigned and unassigned tasks are not allowed.
    """
    normalized_email = normalize_email(email)
    if normalized_email:
        return f"email:{normalized_email}"
    normalized_name = normalize_assignee_name(name)
    if normalized_name:
        return f"name:{normalized_name}"
    return "unassigned" if allow_unassigned else ""


def candidate_key(title: str, assignee_key: str) -> str:
    return f"{normalize_title_key(title)}|{assignee_key}"


def is_placeholder_title(title: str | None) -> bool:
    if not title:
        return True
    trimmed = title.strip().lower()
    if not trimmed:
        return True
    return bool(_GENERIC_TITLES.match(trimmed) or _GENERIC_NUMBERED_TITLES.match(trimmed))


def is_valid_title(title: str | None) -> bool:
    if not title or not title.strip():
        return False
    if is_placeholder_title(title):
        return False
    trimmed = title.strip()
    if not re.search(r"[a-zA-Z]", trimmed):
        return False
    if _NUMERIC_OR_LETTER.match(trimmed):
        return False
    if len(trimmed) <= 3 and _LIST_MARKER.match(trimmed):
        return False
    return True


def to_token_set(text: str | None) -> set[str]:
    """Stopword-free bag of words."""
    normalized = normalize_title_key(text)
    if not normalized:
        return set()
    return {token for token in normalized.split(" ") if token and token not in STOPWORDS}


def normalize_group_id(value: str) -> str:
    return re.sub(r"[^a-z0-9_]", "", value.strip().lower())
