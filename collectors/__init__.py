from collectors.base import Collector
from collectors.github import GitHubCollector
from collectors.rss import RSSCollector
from collectors.telegram import TelegramChannelCollector

__all__ = [
    "Collector",
    "GitHubCollector",
    "RSSCollector",
    "TelegramChannelCollector",
]
