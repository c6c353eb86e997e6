"""
Analysis tracker. One entry per signal that went to the LLM, keyed by
source:link:title. Entries never expire.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable

from dedup.keys import composite_key
from models import FilterResult
from storage.state import load_json, save_json, isoformat, utcnow, ensure_dict

log = logging.getLogger(__name__)

TRACKER_FILE = "analysis_tracker.json"


def _identity(signal) -> tuple[str, str, str]:
    if isinstance(signal, dict):
        return signal.get("source", ""), signal.get("link", ""), signal.get("title", "")
    return signal.source, signal.link, signal.title


class AnalysisTracker:
    def __init__(self, data_dir: Path, today: str | None = None, clock: Callable[[], datetime] = utcnow):
        self.clock = clock
        self.today = today or clock().strftime("%Y-%m-%d")
        self.path = data_dir / TRACKER_FILE
        self.state = load_json(self.path, {"analyzed": {}, "lastUpdated": isoformat(clock())})

    @property
    def analyzed(self) -> dict:
        return ensure_dict(self.state, "analyzed")

    def is_already_analyzed(self, signal) -> bool:
        return composite_key(*_identity(signal)) in self.analyzed

    def mark_as_analyzed(self, signal, result: dict | None = None):
        self.analyzed[composite_key(*_identity(signal))] = {
            "timestamp": isoformat(self.clock()),
            "analysisResult": result,
        }

    def filter_new_signals(self, signals: list) -> FilterResult:
        """New signals are marked with an empty result right away."""
        result = FilterResult()
        for signal in signals:
            if self.is_already_analyzed(signal):
                result.skipped_signals.append(signal)
            else:
                result.new_signals.append(signal)
                self.mark_as_analyzed(signal)
        return result

    def get_stats(self) -> dict:
        today = 0
        for entry in self.analyzed.values():
            stamp = entry.get("timestamp", "") if isinstance(entry, dict) else ""
            if isinstance(stamp, str) and stamp.startswith(self.today):
                today += 1
        return {
            "today": today,
            "global": len(self.analyzed),
            "lastUpdated": self.state.get("lastUpdated"),
        }

    def save(self):
        self.state["lastUpdated"] = isoformat(self.clock())
        save_json(self.path, self.state)

    def finalize(self) -> dict:
        self.save()
        return self.get_stats()
