"""
One pipeline session: config, the day's date, the three trackers and the
dated store. Every phase takes the session explicitly.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable

from config.settings import Config
from storage.analysis_tracker import AnalysisTracker
from storage.collection_tracker import CollectionTracker
from storage.daily import DailyStore
from storage.dedup_tracker import DedupTracker
from storage.state import utcnow

log = logging.getLogger(__name__)


class PublishConfigError(Exception):
    """Bot token or channel id missing."""
    pass


class NoInputError(Exception):
    """The phase has nothing to act on: no batch or no analysis file for today."""
    pass


class PipelineSession:
    def __init__(self, config: Config, today: str | None = None, clock: Callable[[], datetime] = utcnow):
        self.config = config
        self.clock = clock
        self.today = today or clock().strftime("%Y-%m-%d")
        self.data_dir = Path(config.data_dir)

        self.store = DailyStore(self.data_dir, self.today)
        self.collection = CollectionTracker(
            self.data_dir,
            today=self.today,
            clock=clock,
            fresh_days=config.collection_fresh_days,
            prune_days=config.collection_prune_days,
        )
        self.analysis = AnalysisTracker(self.data_dir, today=self.today, clock=clock)
        self.dedup = DedupTracker(self.data_dir, clock=clock)

    @property
    def llm_usage_path(self) -> Path:
        return self.data_dir / f"llm_usage_{self.today}.json"
