"""
Dated working files. Everything one day's runs produce lives in
data/<YYYY-MM-DD>/:

- daily_signals.json / .jsonl   the day's merged batch (phase 1)
- daily_summary.json            per-channel/category/source counts
- analysis.json                 LLM results (phase 2)
- analysis_summary.txt          human-readable scoring summary
- failed_messages.json          sends that failed (phase 3), for follow-up

Collector cursors are not dated: data/collector_state.json.
"""

import json
import logging
from pathlib import Path

from models import Signal
from storage.state import load_json, save_json

log = logging.getLogger(__name__)

SIGNALS_FILE = "daily_signals.json"
SIGNALS_JSONL = "daily_signals.jsonl"
SUMMARY_FILE = "daily_summary.json"
ANALYSIS_FILE = "analysis.json"
ANALYSIS_SUMMARY_FILE = "analysis_summary.txt"
FAILED_FILE = "failed_messages.json"
COLLECTOR_STATE_FILE = "collector_state.json"


class DailyStore:
    def __init__(self, data_dir: Path, today: str):
        self.data_dir = data_dir
        self.today = today
        self.day_dir = data_dir / today

    def path(self, name: str) -> Path:
        return self.day_dir / name

    # ── phase 1 ──

    def has_signals(self) -> bool:
        return self.path(SIGNALS_FILE).exists()

    def load_signals(self) -> list[Signal] | None:
        """The day's batch, or None if phase 1 has not written one yet."""
        if not self.has_signals():
            return None
        data = load_json(self.path(SIGNALS_FILE), {})
        return [Signal.from_dict(d) for d in data.get("signals", []) if isinstance(d, dict)]

    def save_signals(self, signals: list[Signal], summary: dict, timestamp: str):
        records = [s.to_dict() for s in signals]
        save_json(self.path(SIGNALS_FILE), {
            "timestamp": timestamp,
            "summary": summary,
            "signals": records,
        })
        lines = "\n".join(json.dumps(r, ensure_ascii=False) for r in records)
        self.path(SIGNALS_JSONL).write_text(lines, encoding="utf-8")
        save_json(self.path(SUMMARY_FILE), summary)
        log.info(f"Saved {len(records)} signals to {self.day_dir}/")

    # ── phase 2 ──

    def has_analysis(self) -> bool:
        return self.path(ANALYSIS_FILE).exists()

    def load_analysis(self) -> dict | None:
        if not self.has_analysis():
            return None
        return load_json(self.path(ANALYSIS_FILE), {})

    def save_analysis(self, analysis: dict, summary_text: str):
        save_json(self.path(ANALYSIS_FILE), analysis)
        self.path(ANALYSIS_SUMMARY_FILE).write_text(summary_text, encoding="utf-8")

    # ── phase 3 ──

    def load_failed(self) -> list[dict]:
        data = load_json(self.path(FAILED_FILE), {})
        failed = data.get("failed_messages", [])
        return [m for m in failed if isinstance(m, dict)] if isinstance(failed, list) else []

    def save_failed(self, failed: list[dict], timestamp: str):
        save_json(self.path(FAILED_FILE), {
            "timestamp": timestamp,
            "total_failed": len(failed),
            "failed_messages": failed,
        })
        log.info(f"Saved {len(failed)} failed messages to {self.path(FAILED_FILE)}")

    # ── collector cursors ──

    def load_collector_state(self, name: str) -> dict:
        state = load_json(self.data_dir / COLLECTOR_STATE_FILE, {})
        entry = state.get(name)
        return entry if isinstance(entry, dict) else {}

    def save_collector_state(self, name: str, entry: dict):
        path = self.data_dir / COLLECTOR_STATE_FILE
        state = load_json(path, {})
        state[name] = entry
        save_json(path, state)
