"""
Key normalization. Pure functions, no state, never raise.

Every tracker derives its lookup keys from here, so the same raw item always
maps to the same keys across runs.
"""

import re
from urllib.parse import urlsplit

_NON_ALNUM_SPACE = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_url(url: str | None) -> str:
    """
    Reduce a URL to scheme://host/path for comparison.

    The whole query goes, attribution params (utm_*, ref, source) included,
    along with the fragment. Scheme and host are lowercased and a single
    trailing slash trimmed from a non-root path. Anything that does not parse
    as an absolute URL comes back unchanged.
    """
    if not url:
        return ""

    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return url

    if not parts.scheme or not parts.netloc:
        return url

    path = parts.path
    if path.endswith("/") and len(path) > 1:
        path = path[:-1]

    return f"{parts.scheme.lower()}://{parts.netloc.lower()}{path}"


def clean_url(url: str | None) -> str:
    """Query and fragment stripped, lowercased. Used by the URL guard."""
    if not url:
        return ""
    return url.split("?")[0].split("#")[0].lower()


def normalize_title(title: str | None) -> str:
    """Lowercase, punctuation removed, whitespace collapsed."""
    if not title:
        return ""
    text = _NON_ALNUM_SPACE.sub("", title.lower())
    return _WHITESPACE.sub(" ", text).strip()


def composite_key(source: str | None, link: str | None, title: str | None) -> str:
    """
    source:link:title identity used by the analysis and publishing trackers.
    Title is reduced to ASCII letters and digits only.
    """
    s = (source or "").lower()
    l = (link or "").lower()
    t = _NON_ALNUM.sub("", (title or "").lower())
    return f"{s}:{l}:{t}"


def collection_keys(source: str | None, link: str | None, title: str | None) -> tuple[str, str, str, str]:
    """
    The four keys an ingested item is recorded under.

    Any single hit means "already collected". This over-matches on purpose:
    two distinct items sharing only a normalized title collide on the
    title-only key. Re-ingesting costs nothing, re-publishing is spam.
    """
    src = source or "Unknown"
    nurl = normalize_url(link)
    ntitle = normalize_title(title)
    return (
        f"{src}:{nurl}:{ntitle}".lower(),
        f"{src}:{nurl}".lower(),
        ntitle,
        f"{src}:{ntitle}".lower(),
    )


def merge_keys(source: str | None, link: str | None, title: str | None) -> list[str]:
    """Keys for in-batch dedupe when merging sources. Empty keys are dropped."""
    url = link or ""
    t = title or ""
    src = source or "Unknown"
    keys = [
        url,
        t.lower().strip(),
        f"{src}:{t.lower().strip()}",
        url.split("?")[0],
        re.sub(r"[^\w\s]", "", t.lower()).strip(),
    ]
    return [k for k in keys if k]
