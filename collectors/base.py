"""
Base collector interface. All collectors must implement this.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable

from models import Signal
from storage.daily import DailyStore
from storage.state import utcnow

RECENT_WINDOW = timedelta(hours=24)


class Collector(ABC):
    """
    A collector pulls signals from one source type.

    Contract:
    - collect() returns raw Signals from the last 24 hours. It does not
      dedupe against earlier runs; the collection tracker does that.
    - Collectors never call LLMs. All logic is deterministic.
    - A failure on one repo/feed/channel is appended to `errors` and the
      collector moves on. Only a failure of the whole source raises.
    """

    def __init__(self, store: DailyStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock
        self.errors: list[dict] = []

    @abstractmethod
    def collect(self) -> list[Signal]:
        ...

    @abstractmethod
    def name(self) -> str:
        """Collector name, used as channel and as key for state persistence."""
        ...

    def is_recent(self, ts: datetime | None) -> bool:
        return ts is not None and ts >= self.clock() - RECENT_WINDOW
