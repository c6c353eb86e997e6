"""
Tests for the publishing dedup tracker:
- URL guard, publish-once, similarity thresholds, source throttle
- batch filtering order and per-run cap
- processed -> published state machine, reset
"""

import json
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import sys

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dedup.fingerprint import SimilarityStrategy
from models import DedupOptions, Signal
from storage.dedup_tracker import DedupTracker
from storage.state import isoformat


T0 = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FixedSimilarity(SimilarityStrategy):
    """Fingerprint is the text itself; any two different texts score `value`."""

    def __init__(self, value: float):
        self.value = value

    def fingerprint(self, text):
        return (text or "").lower()

    def similarity(self, a, b):
        return 1.0 if a == b else self.value


# ──────────────────────────────────────────────
# Fixtures
# ──────────────────────────────────────────────

@pytest.fixture
def data_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(data_dir, clock):
    return DedupTracker(data_dir, clock=clock)


def _signal(source="A", link="http://x.com/post/1", title="Foo - Airdrop", content=""):
    return Signal(source=source, link=link, title=title, content=content)


# ──────────────────────────────────────────────
# URL guard
# ──────────────────────────────────────────────

class TestUrlGuard:
    def test_independent_of_title_and_source(self, tracker):
        tracker.mark_as_published(_signal(source="A", title="Original"))
        assert tracker.check_url_already_processed("http://x.com/post/1?utm_source=tg")

    def test_case_insensitive(self, tracker):
        tracker.mark_as_published(_signal(link="http://X.com/Post/1"))
        assert tracker.check_url_already_processed("http://x.com/post/1")

    def test_substring_overmatch(self, tracker):
        # A shorter URL is found inside a longer recorded one
        tracker.mark_as_published(_signal(link="http://x.com/12"))
        assert tracker.check_url_already_processed("http://x.com/1")

    def test_processed_record_counts(self, tracker):
        tracker.mark_as_processed(_signal())
        assert tracker.check_url_already_processed("http://x.com/post/1")

    def test_empty_url(self, tracker):
        tracker.mark_as_published(_signal())
        assert not tracker.check_url_already_processed("")
        assert not tracker.check_url_already_processed(None)

    def test_unknown_url(self, tracker):
        tracker.mark_as_published(_signal())
        assert not tracker.check_url_already_processed("http://other.com/post/1")


# ──────────────────────────────────────────────
# Publish-once and combined check
# ──────────────────────────────────────────────

class TestCheckDeduplication:
    def test_publish_once(self, tracker):
        s = _signal(link="")
        tracker.mark_as_published(s)
        assert tracker.check_already_published(s)
        check = tracker.check_deduplication(s)
        assert check.is_duplicate
        assert check.reasons == ["already_published"]
        assert check.details["already_published"] is True

    def test_url_guard_short_circuits(self, tracker):
        s = _signal()
        tracker.mark_as_published(s)
        check = tracker.check_deduplication(s)
        assert check.reasons == ["url_already_processed"]

    def test_published_when_url_guard_off(self, tracker):
        s = _signal()
        tracker.mark_as_published(s)
        check = tracker.check_deduplication(s, DedupOptions(check_url_processed=False))
        assert "already_published" in check.reasons

    def test_similarity_reasons_accumulate(self, data_dir, clock):
        tracker = DedupTracker(data_dir, strategy=FixedSimilarity(0.0), clock=clock)
        tracker.mark_as_published(_signal(source="S", link="http://a.com/1", title="Same Title", content="same body"))

        other = _signal(source="S", link="http://b.com/2", title="Same Title", content="same body")
        check = tracker.check_deduplication(other, DedupOptions(max_source_per_hour=1))
        assert check.reasons == ["exact_content_match", "exact_title_match", "source_frequency_limit"]
        assert set(check.details) == {"content_similarity", "title_similarity", "source_frequency"}

    def test_fresh_item_passes(self, tracker):
        check = tracker.check_deduplication(_signal(content="brand new"))
        assert not check.is_duplicate
        assert check.reasons == []

    def test_missing_fields_do_not_raise(self, tracker):
        check = tracker.check_deduplication({"title": None})
        assert not check.is_duplicate


class TestSimilarityThreshold:
    def test_equal_to_threshold_is_duplicate(self, data_dir, clock):
        tracker = DedupTracker(data_dir, strategy=FixedSimilarity(0.75), clock=clock)
        tracker.mark_as_published(_signal(content="alpha"))
        check = tracker.check_content_similarity("beta", threshold=0.75)
        assert check.is_duplicate
        assert check.reason == "similar_content"
        assert check.similarity == 0.75

    def test_below_threshold_is_not(self, data_dir, clock):
        tracker = DedupTracker(data_dir, strategy=FixedSimilarity(0.75), clock=clock)
        tracker.mark_as_published(_signal(content="alpha"))
        assert not tracker.check_content_similarity("beta", threshold=0.76).is_duplicate

    def test_exact_title_match(self, tracker):
        tracker.mark_as_published(_signal(title="Foo Launch"))
        check = tracker.check_title_similarity("foo, launch!")
        assert check.is_duplicate
        assert check.reason == "exact_title_match"
        assert check.original["link"] == "http://x.com/post/1"


# ──────────────────────────────────────────────
# Source throttle
# ──────────────────────────────────────────────

class TestSourceFrequency:
    def test_throttle_window(self, tracker, clock):
        tracker.mark_as_published(_signal(source="X"))
        assert tracker.check_source_frequency("X", 1).is_duplicate

        tracker.source_hashes["x"] = [isoformat(clock() - timedelta(hours=1, minutes=1))]
        assert not tracker.check_source_frequency("X", 1).is_duplicate

    def test_under_limit(self, tracker):
        tracker.mark_as_published(_signal(source="X"))
        check = tracker.check_source_frequency("x", 3)
        assert not check.is_duplicate
        assert check.count == 1

    def test_history_pruned_to_24h(self, tracker, clock):
        tracker.source_hashes["x"] = [isoformat(clock() - timedelta(hours=30)), "garbage"]
        tracker.mark_as_published(_signal(source="X"))
        assert tracker.source_hashes["x"] == [isoformat(clock())]

    def test_republish_does_not_grow_history(self, tracker):
        s = _signal(source="X")
        tracker.mark_as_published(s)
        tracker.mark_as_published(s)
        assert len(tracker.source_hashes["x"]) == 1
        assert not tracker.check_source_frequency("X", 2).is_duplicate

    def test_processed_then_published_counts_once(self, tracker):
        s = _signal(source="X")
        tracker.mark_as_processed(s)
        tracker.mark_as_published(s)
        assert len(tracker.source_hashes["x"]) == 1


# ──────────────────────────────────────────────
# Batch filtering
# ──────────────────────────────────────────────

class TestFilterSignalsForPublishing:
    def test_stops_at_cap(self, tracker):
        signals = [_signal(source=f"S{i}", link=f"http://x.com/{i}", title=f"Item {i}") for i in range(5)]
        result = tracker.filter_signals_for_publishing(signals, DedupOptions(max_signals_per_run=2))
        assert result.approved == signals[:2]
        assert result.duplicates == []

    def test_duplicates_reported_with_reasons(self, tracker):
        seen = _signal(source="A", link="http://x.com/post/1")
        tracker.mark_as_published(seen)
        fresh = _signal(source="B", link="http://y.com/2", title="Bar - Testnet")

        result = tracker.filter_signals_for_publishing([seen, fresh])
        assert result.approved == [fresh]
        assert len(result.duplicates) == 1
        assert result.duplicates[0].signal is seen
        assert result.duplicates[0].reasons == ["url_already_processed"]

    def test_does_not_mark(self, tracker):
        s = _signal()
        tracker.filter_signals_for_publishing([s])
        assert tracker.get_stats()["published"] == 0


# ──────────────────────────────────────────────
# State machine and maintenance
# ──────────────────────────────────────────────

class TestLifecycle:
    def test_processed_then_published(self, tracker):
        s = _signal(content="body")
        tracker.mark_as_processed(s)
        record = tracker.published["a:http://x.com/post/1:fooairdrop"]
        assert record["status"] == "processed"
        assert tracker.title_hashes == {}
        assert tracker.source_hashes == {}

        tracker.mark_as_published(s)
        assert tracker.published["a:http://x.com/post/1:fooairdrop"]["status"] == "published"
        assert len(tracker.title_hashes) == 1
        assert "a" in tracker.source_hashes

    def test_failed_send_stays_processed(self, tracker, data_dir):
        tracker.mark_as_processed(_signal())
        tracker.save()
        reloaded = DedupTracker(data_dir)
        report = reloaded.duplicate_report()
        assert report["by_status"] == {"processed": 1}

    def test_persisted_sections(self, tracker, data_dir):
        tracker.mark_as_published(_signal(content="body"))
        tracker.finalize()
        data = json.loads((data_dir / "deduplication_tracker.json").read_text())
        assert set(data) >= {"published", "content_hashes", "title_hashes", "source_hashes", "lastUpdated"}

    def test_reset_backs_up(self, tracker, data_dir):
        tracker.mark_as_published(_signal())
        tracker.save()

        backup = tracker.reset("too many dupes")
        assert backup == data_dir / "deduplication_tracker_backup_2026-03-10.json"
        assert backup.exists()
        assert tracker.get_stats()["published"] == 0

        data = json.loads((data_dir / "deduplication_tracker.json").read_text())
        assert data["resetReason"] == "too many dupes"
        assert data["published"] == {}

    def test_reset_without_file(self, tracker):
        assert tracker.reset() is None

    def test_corrupt_file_starts_fresh(self, data_dir, clock):
        (data_dir / "deduplication_tracker.json").write_text("not json at all")
        tracker = DedupTracker(data_dir, clock=clock)
        assert tracker.get_stats()["published"] == 0
        assert not tracker.check_deduplication(_signal()).is_duplicate

    def test_malformed_source_history(self, tracker):
        tracker.source_hashes["x"] = 5
        check = tracker.check_source_frequency("X", 1)
        assert not check.is_duplicate
        assert check.count == 0
        assert tracker.duplicate_report()["busy_sources"] == {}

        tracker.mark_as_published(_signal(source="X"))
        assert tracker.source_hashes["x"] == [isoformat(tracker.clock())]

    def test_duplicate_report_busy_sources(self, tracker):
        for i in range(3):
            tracker.mark_as_published(_signal(source="Busy", link=f"http://b.com/{i}", title=f"T{i}"))
        report = tracker.duplicate_report(max_per_hour=3)
        assert report["busy_sources"] == {"busy": 3}
        assert len(report["by_source"]["Busy"]) == 3
