from dedup.keys import (
    normalize_url,
    normalize_title,
    clean_url,
    composite_key,
    collection_keys,
    merge_keys,
)
from dedup.fingerprint import SimilarityStrategy, PositionalHashStrategy, DEFAULT_STRATEGY

__all__ = [
    "normalize_url",
    "normalize_title",
    "clean_url",
    "composite_key",
    "collection_keys",
    "merge_keys",
    "SimilarityStrategy",
    "PositionalHashStrategy",
    "DEFAULT_STRATEGY",
]
