"""
Keyword-overlap duplicate detection for feature requests.

Local and synchronous: no embeddings, no remote call.
"""
import re
from typing import Iterable, List, Set, Tuple

STOP_WORDS = frozenset([
    "this", "that", "with", "have", "will", "from", "they", "been", "were",
    "said", "each", "which", "their", "time", "would", "there", "could", "other"
])

MIN_WORD_LENGTH = 4
DUPLICATE_THRESHOLD = 0.6

_PUNCTUATION = re.compile(r"[^\w\s]")


def extract_keywords(text: str) -> List[str]:
    """Lowercased words longer than three characters, stopwords removed, first-seen order"""
    words = _PUNCTUATION.sub("", (text or "").lower()).split()

    keywords = []
    seen: Set[str] = set()
    for word in words:
        if len(word) < MIN_WORD_LENGTH or word in STOP_WORDS or word in seen:
            continue
        seen.add(word)
        keywords.append(word)
    return keywords


def keyword_similarity(first: Iterable[str], second: Iterable[str]) -> float:
    """Shared keywords divided by the larger keyword set"""
    a, b = set(first), set(second)
    largest = max(len(a), len(b))
    if largest == 0:
        return 0.0
    return len(a & b) / largest


def detect_duplicates(
    title: str,
    description: str,
    existing: Iterable[Tuple[str, str, str]],
    threshold: float = DUPLICATE_THRESHOLD
) -> List[str]:
    """
    Return ids of existing requests whose keyword overlap exceeds ``threshold``.

    Args:
        existing: (id, title, description) tuples
    """
    keywords = extract_keywords(f"{title} {description}")
    duplicates = []

    for request_id, other_title, other_description in existing:
        other_keywords = extract_keywords(f"{other_title} {other_description}")
        if keyword_similarity(keywords, other_keywords) > threshold:
            duplicates.append(request_id)

    return duplicates
