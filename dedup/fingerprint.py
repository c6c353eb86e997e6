"""
Approximate fingerprints for similarity checks.

A strategy turns normalized text into a short token and compares two tokens.
The publishing tracker only talks to the SimilarityStrategy interface, so a
stronger comparator (shingles, edit distance, embeddings) can replace the
positional hash without touching tracker logic.
"""

from abc import ABC, abstractmethod

from dedup.keys import normalize_title

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class SimilarityStrategy(ABC):
    @abstractmethod
    def fingerprint(self, text: str | None) -> str:
        """Deterministic token for text. Empty text gives an empty token."""
        ...

    @abstractmethod
    def similarity(self, a: str, b: str) -> float:
        """Similarity of two tokens in [0, 1]."""
        ...

    def name(self) -> str:
        return type(self).__name__


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, r = divmod(n, 36)
        digits.append(_BASE36[r])
    return "".join(reversed(digits))


def rolling_hash(text: str) -> str:
    """
    32-bit rolling hash (h = h*31 + c, signed wraparound), absolute value
    in base 36. Stable across processes, unlike hash().
    """
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))


class PositionalHashStrategy(SimilarityStrategy):
    """
    Rolling hash of the normalized text, compared character by character.

    The comparator is crude on purpose: it is cheap and symmetric, and it is
    not expected to track linguistic similarity. No collision resistance.
    """

    def fingerprint(self, text: str | None) -> str:
        normalized = normalize_title(text)
        if not normalized:
            return ""
        return rolling_hash(normalized)

    def similarity(self, a: str, b: str) -> float:
        longest = max(len(a), len(b))
        if longest == 0:
            return 1.0
        matches = sum(1 for x, y in zip(a, b) if x == y)
        return matches / longest


DEFAULT_STRATEGY = PositionalHashStrategy()
