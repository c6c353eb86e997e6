"""
Telegram channel collector. Reads channel posts through the Bot API.

The bot must be a member (admin) of every watched channel; Telegram then
delivers each post as a `channel_post` update. getUpdates hands out each
update once per offset, so the next offset is persisted in
data/collector_state.json and posts are not re-read on the next run.

Kept posts: from a watched channel, within 24 hours, containing a link and
at least one crypto keyword. Title is the first line, cut to 100 chars.
"""

import logging
from datetime import datetime, timezone

import requests

from collectors.base import Collector
from config.settings import Config
from filters.scorer import first_link, has_crypto_keyword
from models import Signal
from storage.daily import DailyStore
from storage.state import isoformat, utcnow

log = logging.getLogger(__name__)

BASE_URL = "https://api.telegram.org/bot{token}/{method}"
MAX_TITLE = 100
PAGE_SIZE = 100


class TelegramChannelCollector(Collector):
    def __init__(self, store: DailyStore, config: Config, clock=utcnow, session: requests.Session | None = None):
        super().__init__(store, clock)
        self._token = config.telegram_reader_token
        self._channels = {str(c) for c in config.telegram_channels}
        self._session = session or requests.Session()
        self._session.headers["User-Agent"] = "early-signal/0.1"

    def name(self) -> str:
        return "telegram"

    def _get_updates(self, offset: int | None) -> list[dict]:
        params = {"limit": PAGE_SIZE, "timeout": 0, "allowed_updates": '["channel_post"]'}
        if offset is not None:
            params["offset"] = offset
        resp = self._session.get(
            BASE_URL.format(token=self._token, method="getUpdates"),
            params=params,
            timeout=30,
        )
        data = resp.json()
        if not data.get("ok"):
            raise requests.HTTPError(f"getUpdates failed: {data.get('description', resp.status_code)}")
        return data.get("result", [])

    def collect(self) -> list[Signal]:
        if not self._token:
            log.info("Telegram reader token not set, skipping")
            return []
        if not self._channels:
            log.info("No Telegram channels configured, skipping")
            return []

        state = self.store.load_collector_state(self.name())
        offset = state.get("offset")
        signals: list[Signal] = []
        seen_posts = 0

        while True:
            updates = self._get_updates(offset)
            if not updates:
                break
            for update in updates:
                offset = update.get("update_id", 0) + 1
                post = update.get("channel_post")
                if not post:
                    continue
                seen_posts += 1
                signal = self._to_signal(post)
                if signal is not None:
                    signals.append(signal)
            if len(updates) < PAGE_SIZE:
                break

        state["offset"] = offset
        state["last_collected"] = isoformat(self.clock())
        self.store.save_collector_state(self.name(), state)

        log.info(f"Telegram: {len(signals)} signals from {seen_posts} channel posts")
        return signals

    def _to_signal(self, post: dict) -> Signal | None:
        chat = post.get("chat") or {}
        chat_id = str(chat.get("id", ""))
        if chat_id not in self._channels and f"@{chat.get('username', '')}" not in self._channels:
            return None

        text = post.get("text") or post.get("caption") or ""
        if not text:
            return None

        posted = datetime.fromtimestamp(post.get("date", 0), tz=timezone.utc)
        if not self.is_recent(posted):
            return None

        link = first_link(text)
        if not link or not has_crypto_keyword(text):
            return None

        return Signal(
            source=chat.get("title") or f"Channel {chat_id}",
            title=text.split("\n")[0][:MAX_TITLE],
            link=link,
            time=isoformat(posted),
            channel=self.name(),
            message_id=str(post.get("message_id", "")),
        )
