"""
RSS/Atom feed collector. Uses feedparser.

Fetch each configured feed, keep entries from the last 24 hours that have
both a link and a title, dedupe by link across feeds.
"""

import calendar
import logging
from datetime import datetime, timezone

import feedparser
import requests

from collectors.base import Collector
from config.settings import Config
from filters.scorer import matches_news_topics
from models import Signal
from storage.daily import DailyStore
from storage.state import isoformat, utcnow

log = logging.getLogger(__name__)

MAX_TITLE = 140

# Feeds that mix crypto with general finance news
TOPIC_FILTERED_FEEDS = {"CoinTelegraph"}


def _entry_time(entry) -> datetime | None:
    """feedparser normalizes entry dates to UTC struct_time."""
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            try:
                return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
            except (ValueError, OverflowError):
                continue
    return None


class RSSCollector(Collector):
    def __init__(self, store: DailyStore, config: Config, clock=utcnow):
        super().__init__(store, clock)
        self._feeds = config.rss_feeds
        self._session = requests.Session()
        self._session.headers["User-Agent"] = "Mozilla/5.0 (compatible; early-signal/0.1)"
        self._session.headers["Accept"] = "application/rss+xml,application/xml;q=0.9,*/*;q=0.8"

    def name(self) -> str:
        return "rss"

    def collect(self) -> list[Signal]:
        signals: list[Signal] = []
        seen: set[str] = set()

        for feed in self._feeds:
            try:
                entries = self._collect_feed(feed)
            except Exception as e:
                log.warning(f"RSS error for {feed['name']}: {e}")
                self.errors.append({"source": feed["name"], "error": str(e)})
                continue

            for signal in entries:
                if signal.link in seen:
                    continue
                seen.add(signal.link)
                signals.append(signal)

        log.info(f"RSS: {len(signals)} signals from {len(self._feeds)} feeds")
        return signals

    def _fetch(self, url: str):
        resp = self._session.get(url, timeout=15)
        resp.raise_for_status()
        return feedparser.parse(resp.content)

    def _collect_feed(self, feed: dict) -> list[Signal]:
        """Parse a single feed, return recent entries as signals."""
        parsed = self._fetch(feed["url"])
        entries = parsed.entries

        if feed["name"] in TOPIC_FILTERED_FEEDS:
            entries = [
                e for e in entries
                if matches_news_topics(f"{e.get('title', '')} {e.get('summary', '')}")
            ]

        out = []
        for entry in entries:
            published = _entry_time(entry)
            if not self.is_recent(published):
                continue

            link = (entry.get("link") or "").strip()
            title = (entry.get("title") or "").strip()
            if not link or not title:
                continue

            out.append(Signal(
                source=feed["name"],
                title=title[:MAX_TITLE],
                link=link,
                time=isoformat(published),
                channel=self.name(),
                category=feed.get("category", "news core"),
            ))

        log.debug(f"{feed['name']}: {len(out)} recent of {len(parsed.entries)} entries")
        return out
