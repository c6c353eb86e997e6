"""
Phase 1: collect.

Each collector runs in turn. A collector that raises counts as zero signals
for this run. Every source's batch is checked against the collection
tracker, then the new signals are merged, cut to the last 24 hours, merged
again with whatever today's batch already holds, prioritized and sorted.
"""

import logging
from collections import Counter
from dataclasses import replace
from datetime import datetime, timedelta

from collectors import Collector, GitHubCollector, RSSCollector, TelegramChannelCollector
from dedup.keys import merge_keys
from filters.scorer import calculate_priority, sort_signals
from models import CollectResult, Signal
from pipeline.session import PipelineSession
from storage.state import isoformat, parse_timestamp

log = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(hours=24)


def default_collectors(session: PipelineSession) -> list[Collector]:
    config = session.config
    return [
        GitHubCollector(session.store, config, clock=session.clock),
        TelegramChannelCollector(session.store, config, clock=session.clock),
        RSSCollector(session.store, config, clock=session.clock),
    ]


def merge_and_dedupe(batches: list[list[Signal]], stamp: str = "") -> list[Signal]:
    """
    Flatten batches, dropping any signal that shares a merge key with an
    earlier one. First occurrence wins. Signals without a time get `stamp`.
    """
    seen: set[str] = set()
    merged: list[Signal] = []
    duplicates = 0

    for batch in batches:
        for signal in batch:
            keys = merge_keys(signal.source, signal.link, signal.title)
            hit = next((k for k in keys if k in seen), None)
            if hit is not None:
                duplicates += 1
                log.debug(f"Duplicate in batch: {signal.title[:50]} (key: {hit})")
                continue
            seen.update(keys)
            if not signal.time and stamp:
                signal = replace(signal, time=stamp)
            merged.append(signal)

    log.info(f"Merged {len(merged)} unique signals, {duplicates} duplicates removed")
    return merged


def within_24h(signals: list[Signal], now: datetime) -> list[Signal]:
    """Signals posted in the last 24 hours. Unparsable times are dropped."""
    cutoff = now - RECENT_WINDOW
    kept = []
    for signal in signals:
        ts = parse_timestamp(signal.time)
        if ts is not None and ts >= cutoff:
            kept.append(signal)
    return kept


def build_summary(signals: list[Signal], errors: list[dict], timestamp: str) -> dict:
    return {
        "timestamp": timestamp,
        "total_signals": len(signals),
        "error_count": len(errors),
        "by_channel": dict(Counter(s.channel for s in signals)),
        "by_category": dict(Counter(s.category for s in signals)),
        "by_source": dict(Counter(s.source for s in signals).most_common()),
        "errors": errors,
    }


def run_collect(session: PipelineSession, collectors: list[Collector] | None = None) -> CollectResult:
    if collectors is None:
        collectors = default_collectors(session)

    stats = session.collection.get_stats()
    log.info(f"Collection tracker: {stats['today']} today, {stats['global']} global")

    now = session.clock()
    timestamp = isoformat(now)
    new_batches: list[list[Signal]] = []
    per_source: dict[str, dict] = {}
    skipped_total = 0
    errors: list[dict] = []

    for collector in collectors:
        clog = logging.getLogger(collector.name())
        try:
            raw = collector.collect()
        except Exception as e:
            clog.error(f"Collector {collector.name()} failed: {e}")
            errors.append({"source": collector.name(), "error": str(e)})
            raw = []
        errors.extend(collector.errors)

        result = session.collection.filter_new_signals(raw)
        new_batches.append(result.new_signals)
        skipped_total += len(result.skipped_signals)
        per_source[collector.name()] = {
            "new": len(result.new_signals),
            "skipped": len(result.skipped_signals),
        }
        clog.info(f"{len(result.new_signals)} new, {len(result.skipped_signals)} skipped ({len(raw)} total)")

    fresh = within_24h(merge_and_dedupe(new_batches, stamp=timestamp), now)

    existing = session.store.load_signals() or []
    if existing:
        log.info(f"Loaded {len(existing)} existing signals from today")

    merged = merge_and_dedupe([existing + fresh], stamp=timestamp)
    prioritized = [replace(s, priority=calculate_priority(s)) for s in merged]
    final = sort_signals(prioritized)

    summary = build_summary(final, errors, timestamp)
    summary["incremental"] = {
        "new_signals": len(fresh),
        "existing_signals": len(existing),
        "skipped_signals": skipped_total,
        "sources": per_source,
    }

    session.store.save_signals(final, summary, timestamp)
    session.collection.finalize()

    return CollectResult(
        signals=final,
        new_signals=fresh,
        existing_count=len(existing),
        skipped_count=skipped_total,
        summary=summary,
        errors=errors,
    )
