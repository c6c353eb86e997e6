"""
Collection tracker. Remembers which raw items were already ingested.

Two scopes, each its own JSON file:
- today:  data/<YYYY-MM-DD>/collection_tracker.json
- global: data/collection_tracker.json

Every item is recorded under the four keys from dedup.keys.collection_keys.
A hit in today's scope always counts. A hit in the global scope counts only
while it is fresh (7 days by default). Global entries older than the prune
window (30 days) are dropped on every mark.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable

from dedup.keys import collection_keys
from models import FilterResult
from storage.state import load_json, save_json, parse_timestamp, isoformat, utcnow, ensure_dict

log = logging.getLogger(__name__)

TRACKER_FILE = "collection_tracker.json"


class CollectionTracker:
    def __init__(
        self,
        data_dir: Path,
        today: str | None = None,
        clock: Callable[[], datetime] = utcnow,
        fresh_days: int = 7,
        prune_days: int = 30,
    ):
        self.clock = clock
        self.today = today or clock().strftime("%Y-%m-%d")
        self.global_path = data_dir / TRACKER_FILE
        self.today_path = data_dir / self.today / TRACKER_FILE
        self.fresh_window = timedelta(days=fresh_days)
        self.prune_window = timedelta(days=prune_days)

        self.global_state = load_json(self.global_path, {})
        self.today_state = load_json(self.today_path, {})
        self.last_updated = isoformat(clock())

    @staticmethod
    def _identity(signal) -> tuple[str, str, str]:
        if isinstance(signal, dict):
            return (
                signal.get("source") or signal.get("repo") or "",
                signal.get("link") or signal.get("url") or "",
                signal.get("title") or signal.get("judul") or "",
            )
        return signal.source, signal.link, signal.title

    def is_already_collected(self, signal) -> bool:
        keys = collection_keys(*self._identity(signal))

        today = ensure_dict(self.today_state, "collected")
        for key in keys:
            if key in today:
                log.debug(f"Found in today's collection: {key}")
                return True

        now = self.clock()
        collected = ensure_dict(self.global_state, "collected")
        for key in keys:
            if key not in collected:
                continue
            ts = parse_timestamp(collected[key])
            if ts is None:
                continue
            age = now - ts
            if age <= self.fresh_window:
                log.debug(f"Found in global collection ({age.total_seconds() / 86400:.1f} days ago): {key}")
                return True
        return False

    def mark_as_collected(self, signal):
        keys = collection_keys(*self._identity(signal))
        stamp = isoformat(self.clock())

        today = ensure_dict(self.today_state, "collected")
        collected = ensure_dict(self.global_state, "collected")
        for key in keys:
            today[key] = stamp
            collected[key] = stamp

        self._prune()

    def _prune(self):
        cutoff = self.clock() - self.prune_window
        collected = ensure_dict(self.global_state, "collected")
        stale = []
        for key, value in collected.items():
            ts = parse_timestamp(value)
            if ts is None or ts < cutoff:
                stale.append(key)
        for key in stale:
            del collected[key]

    def filter_new_signals(self, signals: list) -> FilterResult:
        """
        Split signals into new and already-collected. New ones are marked
        immediately, so a repeat later in the same batch is skipped.
        """
        result = FilterResult()
        for signal in signals:
            if self.is_already_collected(signal):
                result.skipped_signals.append(signal)
            else:
                result.new_signals.append(signal)
                self.mark_as_collected(signal)
        return result

    def get_stats(self) -> dict:
        return {
            "today": len(ensure_dict(self.today_state, "collected")),
            "global": len(ensure_dict(self.global_state, "collected")),
            "lastUpdated": self.last_updated,
        }

    def save(self):
        self.last_updated = isoformat(self.clock())
        self.global_state["lastUpdated"] = self.last_updated
        self.today_state["lastUpdated"] = self.last_updated
        save_json(self.global_path, self.global_state)
        save_json(self.today_path, self.today_state)

    def finalize(self) -> dict:
        self.save()
        stats = self.get_stats()
        log.info(f"Collection tracker: today={stats['today']} global={stats['global']}")
        return stats
