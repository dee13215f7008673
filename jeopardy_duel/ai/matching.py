"""
Deterministic answer matching used when the LLM judge is unavailable.
"""

import re

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_QUESTION_PREFIX = re.compile(r"^(what|who|where|when)\s+(is|are|was|were)\s+")
_ARTICLE = re.compile(r"^(the|a|an)\s+")
_SPACES = re.compile(r"\s+")


def normalize_answer(text: str) -> str:
    """Lowercase, drop punctuation, the 'What is' wrapper and a leading article."""
    text = _NON_ALNUM.sub("", (text or "").lower())
    text = _SPACES.sub(" ", text).strip()
    text = _QUESTION_PREFIX.sub("", text)
    text = _ARTICLE.sub("", text)
    return text.strip()


def approximate_match(expected: str, candidate: str) -> bool:
    """True if either normalized answer contains the other as whole words. Blank answers never match."""
    expected_norm = normalize_answer(expected)
    candidate_norm = normalize_answer(candidate)
    if not expected_norm or not candidate_norm:
        return False
    expected_padded = f" {expected_norm} "
    candidate_padded = f" {candidate_norm} "
    return candidate_padded in expected_padded or expected_padded in candidate_padded
