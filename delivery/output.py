"""
CLI output. Every command prints a short report to stdout.

Telegram is the delivery channel for subscribers; this is what the
operator running the cron job sees.
"""

import logging

from models import AnalyzeResult, CollectResult, PublishReport

log = logging.getLogger(__name__)

SEPARATOR = "─" * 60


def _header(title: str, subtitle: str | None = None):
    print(f"\n{SEPARATOR}")
    print(f"  {title}")
    if subtitle:
        print(f"  {subtitle}")
    print(SEPARATOR)


def deliver_collect(result: CollectResult):
    _header("SIGNAL COLLECTION", f"({len(result.signals)} signals in today's batch)")
    print(f"  New this run:      {len(result.new_signals)}")
    print(f"  Already in batch:  {result.existing_count}")
    print(f"  Skipped (seen):    {result.skipped_count}")
    for channel, count in result.summary.get("by_channel", {}).items():
        print(f"    {channel}: {count}")
    if result.errors:
        print(f"  Collector errors:  {len(result.errors)}")
        for err in result.errors:
            print(f"    {err.get('source', '?')}: {err.get('error', '')}")
    print(SEPARATOR)


def deliver_analysis(result: AnalyzeResult):
    _header("SIGNAL ANALYSIS")
    print(f"  New signals:           {result.new_signals}")
    print(f"  Unique after dedup:    {result.unique_signals}")
    print(f"  Duplicates filtered:   {result.duplicates_filtered}")
    print(f"  Already analyzed:      {result.skipped_signals}")
    if result.unscored_signals:
        print(f"  Consumed unscored:     {result.unscored_signals}")
    print(f"  Analyses produced:     {result.total_analyzed}")
    if result.run and result.run.errors:
        print(f"  Batch errors:          {len(result.run.errors)}")
    print(SEPARATOR)


def deliver_publish(report: PublishReport):
    _header("EARLY DETECTION PUBLISHING", report.generated_at.strftime("%Y-%m-%d %H:%M UTC"))
    print(f"  Hot:     {report.hot}")
    print(f"  Early:   {report.early}")
    print(f"  Watch:   {report.watch}")
    print(f"  Risk:    {report.risk}")
    print(f"  URL duplicates:      {report.url_duplicates}")
    print(f"  Content duplicates:  {report.content_duplicates}")
    print(f"  Skipped at send:     {report.guard_skipped}")
    print()
    print(f"  Messages: {report.sent}/{report.total} sent ({report.success_rate}%)")
    if report.failed_messages:
        print(f"  Failed:   {report.failed}")
        for msg in report.failed_messages:
            print(f"    [{msg.type}] {msg.error}")
    print(SEPARATOR)


def deliver_stats(collection: dict, analysis: dict, dedup: dict):
    _header("TRACKER STATS")
    print(f"  Collection:  today={collection['today']} global={collection['global']}")
    print(f"  Analysis:    today={analysis['today']} global={analysis['global']}")
    print(
        f"  Publishing:  published={dedup['published']} content={dedup['content_hashes']} "
        f"titles={dedup['title_hashes']} sources={dedup['sources']}"
    )
    print(f"  Last update: {dedup.get('lastUpdated') or 'never'}")
    print(SEPARATOR)


def deliver_duplicate_report(report: dict):
    stats = report["stats"]
    _header("DUPLICATE REPORT")
    print(f"  Published records: {stats['published']}")
    print(f"  Content hashes:    {stats['content_hashes']}")
    print(f"  Title hashes:      {stats['title_hashes']}")
    print()
    print("  By status:")
    for status, count in report["by_status"].items():
        print(f"    {status}: {count}")
    print("  By source:")
    for source, titles in report["by_source"].items():
        print(f"    {source}: {len(titles)}")
    if report["busy_sources"]:
        print("  Over the hourly limit:")
        for source, count in report["busy_sources"].items():
            print(f"    {source}: {count} in the last hour")
    print(SEPARATOR)


def deliver_failed(today: str, failed: list[dict]):
    _header("FAILED MESSAGES", today)
    if not failed:
        print("  No failed messages.")
    for i, msg in enumerate(failed, 1):
        score = msg.get("score")
        suffix = f" (score {score})" if score is not None else ""
        print(f"  {i}. [{msg.get('type', '?')}]{suffix} {msg.get('error') or ''}")
        first_line = (msg.get("message") or "").splitlines()[:1]
        if first_line:
            print(f"     {first_line[0][:80]}")
    print(SEPARATOR)
