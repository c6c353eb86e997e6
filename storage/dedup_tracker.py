"""
Deduplication / publishing tracker.

Persisted in data/deduplication_tracker.json:
- published:      composite key -> {timestamp, source, title, link, status}
- content_hashes: fingerprint(content) -> {timestamp, source, title, link[, status]}
- title_hashes:   fingerprint(title) -> {timestamp, source, link}
- source_hashes:  lower(source) -> [timestamps], last 24h only

A record moves unknown -> processed -> published. A failed send leaves it at
processed, which is enough for the URL guard to block a retry. Similarity
checks compare one new item against every stored fingerprint; there is no
clustering, so "similar" is not transitive.
"""

import logging
import shutil
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable

from dedup.fingerprint import SimilarityStrategy, DEFAULT_STRATEGY
from dedup.keys import clean_url, composite_key
from models import (
    DedupCheck,
    DedupOptions,
    DuplicateEntry,
    FrequencyCheck,
    PublishFilterResult,
    SimilarityCheck,
)
from storage.state import load_json, save_json, parse_timestamp, isoformat, utcnow, ensure_dict

log = logging.getLogger(__name__)

TRACKER_FILE = "deduplication_tracker.json"
SECTIONS = ("published", "content_hashes", "title_hashes", "source_hashes")

THROTTLE_WINDOW = timedelta(hours=1)
SOURCE_HISTORY_WINDOW = timedelta(hours=24)


def _get(item: Any, name: str) -> str:
    if isinstance(item, dict):
        value = item.get(name)
    else:
        value = getattr(item, name, None)
    return value if isinstance(value, str) else ""


def _empty_state(now: datetime) -> dict:
    state = {section: {} for section in SECTIONS}
    state["lastUpdated"] = isoformat(now)
    return state


class DedupTracker:
    def __init__(
        self,
        data_dir: Path,
        strategy: SimilarityStrategy = DEFAULT_STRATEGY,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.data_dir = data_dir
        self.path = data_dir / TRACKER_FILE
        self.strategy = strategy
        self.clock = clock
        self.state = load_json(self.path, _empty_state(clock()))

    # ── sections (repaired lazily if a file was hand-edited) ──

    @property
    def published(self) -> dict:
        return ensure_dict(self.state, "published")

    @property
    def content_hashes(self) -> dict:
        return ensure_dict(self.state, "content_hashes")

    @property
    def title_hashes(self) -> dict:
        return ensure_dict(self.state, "title_hashes")

    @property
    def source_hashes(self) -> dict:
        return ensure_dict(self.state, "source_hashes")

    # ── individual checks ──

    def check_url_already_processed(self, url: str | None) -> bool:
        """
        True if any published record or content-hash record has a link that
        contains this URL (query and fragment stripped, case-insensitive).

        Substring containment: a short URL can match a longer one.
        """
        if not url:
            return False
        needle = clean_url(url)
        if not needle:
            return False
        for section in (self.published, self.content_hashes):
            for record in section.values():
                link = record.get("link") if isinstance(record, dict) else None
                if isinstance(link, str) and needle in link.lower():
                    return True
        return False

    def check_already_published(self, signal) -> bool:
        """Exact composite-key membership. A processed record counts too."""
        key = composite_key(_get(signal, "source"), _get(signal, "link"), _get(signal, "title"))
        return key in self.published

    def _check_similarity(self, text: str, index: dict, threshold: float, kind: str) -> SimilarityCheck:
        fp = self.strategy.fingerprint(text)
        if fp in index:
            return SimilarityCheck(True, 1.0, f"exact_{kind}_match", index[fp])
        for existing, record in index.items():
            score = self.strategy.similarity(fp, existing)
            if score >= threshold:
                return SimilarityCheck(True, score, f"similar_{kind}", record)
        return SimilarityCheck(False, 0.0)

    def check_content_similarity(self, content: str, threshold: float = 0.8) -> SimilarityCheck:
        return self._check_similarity(content, self.content_hashes, threshold, "content")

    def check_title_similarity(self, title: str, threshold: float = 0.9) -> SimilarityCheck:
        return self._check_similarity(title, self.title_hashes, threshold, "title")

    def check_source_frequency(self, source: str, max_per_hour: int = 3) -> FrequencyCheck:
        cutoff = self.clock() - THROTTLE_WINDOW
        history = self.source_hashes.get(source.lower().strip())
        if not isinstance(history, list):
            history = []
        recent = 0
        for stamp in history:
            ts = parse_timestamp(stamp)
            if ts is not None and ts > cutoff:
                recent += 1
        if recent >= max_per_hour:
            return FrequencyCheck(True, recent, max_per_hour, "source_frequency_limit")
        return FrequencyCheck(False, recent, max_per_hour)

    # ── combined ──

    def check_deduplication(self, signal, options: DedupOptions | None = None) -> DedupCheck:
        """
        Run the checks in a fixed order. URL guard and published membership
        short-circuit; content, title and source checks all run and their
        reasons accumulate.
        """
        opts = options or DedupOptions()
        result = DedupCheck()

        link = _get(signal, "link")
        if opts.check_url_processed and link and self.check_url_already_processed(link):
            result.is_duplicate = True
            result.reasons.append("url_already_processed")
            result.details["url_processed"] = True
            return result

        if opts.check_already_published and self.check_already_published(signal):
            result.is_duplicate = True
            result.reasons.append("already_published")
            result.details["already_published"] = True
            return result

        content = _get(signal, "content")
        if opts.check_content and content:
            check = self.check_content_similarity(content, opts.content_similarity_threshold)
            if check.is_duplicate:
                result.is_duplicate = True
                result.reasons.append(check.reason)
                result.details["content_similarity"] = check

        title = _get(signal, "title")
        if opts.check_title and title:
            check = self.check_title_similarity(title, opts.title_similarity_threshold)
            if check.is_duplicate:
                result.is_duplicate = True
                result.reasons.append(check.reason)
                result.details["title_similarity"] = check

        source = _get(signal, "source")
        if opts.check_source and source:
            check = self.check_source_frequency(source, opts.max_source_per_hour)
            if check.is_duplicate:
                result.is_duplicate = True
                result.reasons.append(check.reason)
                result.details["source_frequency"] = check

        return result

    # ── marking ──

    def mark_as_processed(self, signal):
        """Claim the item before the send. Safe to call repeatedly."""
        source, title, link = _get(signal, "source"), _get(signal, "title"), _get(signal, "link")
        now = isoformat(self.clock())

        self.published[composite_key(source, link, title)] = {
            "timestamp": now,
            "source": source,
            "title": title,
            "link": link,
            "status": "processed",
        }

        content = _get(signal, "content")
        if content:
            self.content_hashes[self.strategy.fingerprint(content)] = {
                "timestamp": now,
                "source": source,
                "title": title,
                "link": link,
                "status": "processed",
            }

    def mark_as_published(self, signal):
        source, title, link = _get(signal, "source"), _get(signal, "title"), _get(signal, "link")
        moment = self.clock()
        now = isoformat(moment)

        key = composite_key(source, link, title)
        previous = self.published.get(key)
        # re-marking a published identity must not count against its source again
        republish = isinstance(previous, dict) and previous.get("status") == "published"

        self.published[key] = {
            "timestamp": now,
            "source": source,
            "title": title,
            "link": link,
            "status": "published",
        }

        content = _get(signal, "content")
        if content:
            self.content_hashes[self.strategy.fingerprint(content)] = {
                "timestamp": now,
                "source": source,
                "title": title,
                "link": link,
            }

        if title:
            self.title_hashes[self.strategy.fingerprint(title)] = {
                "timestamp": now,
                "source": source,
                "link": link,
            }

        if source:
            source_key = source.lower().strip()
            history = self.source_hashes.get(source_key)
            if not isinstance(history, list):
                history = []
            if not republish:
                history.append(now)
            cutoff = moment - SOURCE_HISTORY_WINDOW
            kept = []
            for stamp in history:
                ts = parse_timestamp(stamp)
                if ts is not None and ts > cutoff:
                    kept.append(stamp)
            self.source_hashes[source_key] = kept

    # ── batch ──

    def filter_signals_for_publishing(self, signals: list, options: DedupOptions | None = None) -> PublishFilterResult:
        """
        Check signals in order. Stops as soon as `approved` reaches
        max_signals_per_run; anything after that point is neither approved
        nor reported as a duplicate.

        Nothing is marked here, so two near-identical items in the same
        batch can both be approved.
        """
        opts = options or DedupOptions()
        result = PublishFilterResult()
        log.info(f"Deduplication: checking {len(signals)} signals")

        for signal in signals:
            check = self.check_deduplication(signal, opts)
            title = _get(signal, "title")[:50]
            if check.is_duplicate:
                result.duplicates.append(DuplicateEntry(signal, check.reasons, check.details))
                log.debug(f"Skipped: {title} ({', '.join(check.reasons)})")
            else:
                result.approved.append(signal)
                log.debug(f"Approved: {title}")

            if len(result.approved) >= opts.max_signals_per_run:
                log.info(f"Reached max signals per run ({opts.max_signals_per_run})")
                break

        log.info(
            f"Deduplication: {len(result.approved)} approved, "
            f"{len(result.duplicates)} duplicates of {len(signals)}"
        )
        return result

    # ── inspection / maintenance ──

    def get_stats(self) -> dict:
        return {
            "published": len(self.published),
            "content_hashes": len(self.content_hashes),
            "title_hashes": len(self.title_hashes),
            "sources": len(self.source_hashes),
            "lastUpdated": self.state.get("lastUpdated"),
        }

    def duplicate_report(self, max_per_hour: int = 3) -> dict:
        """Grouped view of the tracker for manual inspection."""
        by_source: dict[str, list[str]] = defaultdict(list)
        by_status: Counter = Counter()
        for record in self.published.values():
            if not isinstance(record, dict):
                continue
            by_source[record.get("source") or "Unknown"].append(record.get("title") or "")
            by_status[record.get("status") or "published"] += 1

        busy_sources = {}
        for source in self.source_hashes:
            check = self.check_source_frequency(source, max_per_hour)
            if check.is_duplicate:
                busy_sources[source] = check.count

        return {
            "stats": self.get_stats(),
            "by_source": dict(sorted(by_source.items(), key=lambda kv: -len(kv[1]))),
            "by_status": dict(by_status),
            "busy_sources": busy_sources,
        }

    def reset(self, reason: str = "manual reset") -> Path | None:
        """
        Back up the current file and start from an empty structure.
        Returns the backup path, or None if there was nothing to back up.
        """
        now = self.clock()
        backup = None
        if self.path.exists():
            backup = self.data_dir / f"deduplication_tracker_backup_{now.strftime('%Y-%m-%d')}.json"
            shutil.copyfile(self.path, backup)
            log.info(f"Backed up deduplication tracker to {backup}")

        self.state = _empty_state(now)
        self.state["resetReason"] = reason
        self.state["resetTimestamp"] = isoformat(now)
        save_json(self.path, self.state)
        return backup

    def save(self):
        self.state["lastUpdated"] = isoformat(self.clock())
        save_json(self.path, self.state)

    def finalize(self) -> dict:
        self.save()
        return self.get_stats()
