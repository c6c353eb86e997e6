"""
Tests for the RSS collector: entry times, the 24h window and link dedupe.
Feeds are parsed from inline XML, no network.
"""

import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path

import feedparser
import pytest
import sys

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from collectors.rss import RSSCollector, _entry_time
from config.settings import Config
from storage.daily import DailyStore


T0 = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)

FEED_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>The Block</title>
<item><title>Beta raises seed round</title><link>https://example.org/news/beta</link>
<pubDate>Tue, 10 Mar 2026 11:30:00 GMT</pubDate></item>
<item><title>Beta raises seed round (repost)</title><link>https://example.org/news/beta</link>
<pubDate>Tue, 10 Mar 2026 11:00:00 GMT</pubDate></item>
<item><title>Old testnet news</title><link>https://example.org/news/old</link>
<pubDate>Mon, 09 Mar 2026 09:00:00 GMT</pubDate></item>
<item><title>No link here</title>
<pubDate>Tue, 10 Mar 2026 10:00:00 GMT</pubDate></item>
</channel></rss>"""


@pytest.fixture
def non_utc_host(monkeypatch):
    """Run with a local zone far from UTC, where local-time conversions show."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset not available")
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def collector():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Config(rss_feeds=[{"name": "The Block", "url": "https://example.org/feed", "category": "news core"}])
        c = RSSCollector(DailyStore(Path(tmpdir), "2026-03-10"), config, clock=lambda: T0)
        c._fetch = lambda url: feedparser.parse(FEED_XML)
        yield c


# ──────────────────────────────────────────────
# Entry times
# ──────────────────────────────────────────────

class TestEntryTime:
    def test_struct_time_is_utc(self, non_utc_host):
        entry = {"published_parsed": time.struct_time((2026, 3, 10, 11, 30, 0, 1, 69, 0))}
        assert _entry_time(entry) == datetime(2026, 3, 10, 11, 30, tzinfo=timezone.utc)

    def test_falls_back_to_updated(self):
        entry = {"published_parsed": None, "updated_parsed": time.struct_time((2026, 3, 9, 8, 0, 0, 0, 68, 0))}
        assert _entry_time(entry) == datetime(2026, 3, 9, 8, 0, tzinfo=timezone.utc)

    def test_no_dates(self):
        assert _entry_time({}) is None


# ──────────────────────────────────────────────
# Collection
# ──────────────────────────────────────────────

class TestRSSCollector:
    def test_recent_linked_entries_deduped(self, collector, non_utc_host):
        signals = collector.collect()
        assert [s.title for s in signals] == ["Beta raises seed round"]
        assert signals[0].time == "2026-03-10T11:30:00.000Z"
        assert signals[0].channel == "rss"
        assert signals[0].category == "news core"
        assert collector.errors == []

    def test_feed_error_recorded(self, collector):
        def boom(url):
            raise OSError("connection reset")
        collector._fetch = boom
        assert collector.collect() == []
        assert collector.errors == [{"source": "The Block", "error": "connection reset"}]
