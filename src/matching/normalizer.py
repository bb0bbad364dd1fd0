"""Text normalization shared by scoring and host validation."""

import re
import unicodedata
from functools import lru_cache
from typing import Iterable

_QUOTES_RE = re.compile(r"[’‘ʻ‚`]")
_DASHES_RE = re.compile(r"[-_–—]")
_PUNCT_RE = re.compile(r"[^\w\s']")
_SPACES_RE = re.compile(r"\s+")


def strip_accents(text):
    """Remove accents/diacritics (e.g. é -> e, ñ -> n)."""
    nfkd = unicodedata.normalize("NFKD", text)
    return "".join(c for c in nfkd if not unicodedata.combining(c))


def _clean(text: str) -> str:
    text = strip_accents(text).lower()
    text = _QUOTES_RE.sub("'", text)
    text = _DASHES_RE.sub(" ", text)
    text = _PUNCT_RE.sub(" ", text)
    return _SPACES_RE.sub(" ", text).strip()


@lru_cache(maxsize=8192)
def _fold(text: str) -> str:
    return _clean(text)


def fold(text: str | None) -> str:
    """Fold accents, case and punctuation but keep every word.

    >>> fold("TRIO Grupo-A (Nivel 3)")
    'trio grupo a nivel 3'
    """
    return _fold(text) if text else ""


@lru_cache(maxsize=16)
def _irrelevant_pattern(words: tuple[str, ...]) -> re.Pattern | None:
    cleaned = {_clean(w) for w in words if w}
    cleaned.discard("")
    if not cleaned:
        return None
    alternation = "|".join(re.escape(w) for w in sorted(cleaned, key=len, reverse=True))
    return re.compile(rf"\b(?:{alternation})\b")


@lru_cache(maxsize=8192)
def _normalize(text: str, words: tuple[str, ...]) -> str:
    cleaned = _clean(text)
    pattern = _irrelevant_pattern(words)
    if pattern is None:
        return cleaned
    reduced = _SPACES_RE.sub(" ", pattern.sub(" ", cleaned)).strip()
    return reduced or cleaned


def normalize(text: str | None, irrelevant_words: Iterable[str] = ()) -> str:
    """Normalize free text for comparison.

    Folds accents and case, turns dashes and punctuation into spaces and drops
    irrelevant words. When dropping those words would leave nothing (a program
    called just "English"), the text is kept with its words instead.

    >>> normalize("Inglés  Online - Nivel 3!", ["online"])
    'ingles nivel 3'
    """
    if not text:
        return ""
    return _normalize(text, tuple(irrelevant_words))


def tokens(text: str | None, irrelevant_words: Iterable[str] = ()) -> list[str]:
    normalized = normalize(text, irrelevant_words)
    return normalized.split() if normalized else []


def canonical(text: str | None) -> str:
    """Strict form with everything but letters and digits removed."""
    return re.sub(r"\W+", "", normalize(text))
