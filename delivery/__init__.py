from delivery.output import (
    deliver_collect,
    deliver_analysis,
    deliver_publish,
    deliver_stats,
    deliver_duplicate_report,
    deliver_failed,
)
from delivery.telegram import TelegramPublisher, RetryPolicy

__all__ = [
    "deliver_collect",
    "deliver_analysis",
    "deliver_publish",
    "deliver_stats",
    "deliver_duplicate_report",
    "deliver_failed",
    "TelegramPublisher",
    "RetryPolicy",
]
