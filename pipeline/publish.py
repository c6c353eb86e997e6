"""
Phase 3: publish.

Analyses are bucketed by score (1-10 scale), enriched with the fields the
dedup tracker keys on, filtered by URL and by the strict publishing dedup
pass, then sent one by one. Each send is bracketed by tracker writes:

    guard -> mark processed -> save -> send -> mark published -> save

so a crash mid-send leaves a "processed" record that blocks a resend, and a
failed send never reaches "published".
"""

import logging
import time
from dataclasses import replace
from typing import Callable

from dedup.keys import clean_url
from delivery.formatting import format_analysis_message, format_summary_message
from delivery.telegram import TelegramPublisher
from models import Analysis, DedupOptions, FailedMessage, PublishReport, Signal
from pipeline.session import NoInputError, PipelineSession, PublishConfigError
from storage.dedup_tracker import DedupTracker
from storage.state import isoformat

log = logging.getLogger(__name__)

TEST_MODE_TOKEN = "test_mode"

BUCKETS = ("hot", "early", "watch", "risk")

# bucket -> FailedMessage.type
MESSAGE_TYPES = {
    "hot": "hot_opportunity",
    "early": "early_signal",
    "watch": "watch",
    "risk": "risk",
}

EARLY_PROJECT_TYPES = (
    "Airdrop", "IDO", "ICO", "Testnet", "Mainnet",
    "Partnership", "Funding", "DeFi", "L2", "Bridge",
)
EARLY_PROJECT_NAME_HINTS = ("test", "beta", "alpha")


def bucket_for(analysis: Analysis) -> str:
    score = analysis.score_out_of_10
    if score >= 8:
        return "hot"
    if score >= 6:
        return "early"
    if score >= 4:
        return "watch"
    return "risk"


def categorize(analyses: list[Analysis]) -> dict[str, list[Analysis]]:
    buckets: dict[str, list[Analysis]] = {name: [] for name in BUCKETS}
    for analysis in analyses:
        buckets[bucket_for(analysis)].append(analysis)
    return buckets


def is_early_project(analysis: Analysis) -> bool:
    if any(t in analysis.opportunity_type for t in EARLY_PROJECT_TYPES):
        return True
    name = analysis.project_name.lower()
    return any(hint in name for hint in EARLY_PROJECT_NAME_HINTS)


def enrich_for_dedup(analysis: Analysis, signal: Signal | None) -> Analysis:
    """Fill source/title/link/content/url_key, the identity the dedup tracker sees."""
    link = analysis.primary_link
    return replace(
        analysis,
        source=signal.source if signal and signal.source else "Unknown",
        title=f"{analysis.project_name} - {analysis.opportunity_type}",
        link=link,
        content=f"{analysis.investment_angle} {analysis.reasoning}".strip(),
        url_key=clean_url(link),
    )


def url_prefilter(tracker: DedupTracker, analyses: list[Analysis]) -> tuple[list[Analysis], int, int]:
    """
    Drop analyses whose URL the tracker has seen in any earlier run, and
    repeats of a URL within this run.
    Returns (kept, in-run duplicates, already processed).
    """
    seen: set[str] = set()
    kept = []
    repeats = 0
    processed = 0
    for analysis in analyses:
        key = analysis.url_key
        if key and tracker.check_url_already_processed(key):
            processed += 1
            log.debug(f"Already processed: {key}")
            continue
        if key and key in seen:
            repeats += 1
            log.debug(f"URL repeated in this run: {key}")
            continue
        if key:
            seen.add(key)
        kept.append(analysis)

    log.info(f"URL filter: {len(kept)} kept, {repeats} repeated, {processed} already processed")
    return kept, repeats, processed


def publish_dedup_options(config) -> DedupOptions:
    return DedupOptions(
        content_similarity_threshold=config.publish_content_threshold,
        title_similarity_threshold=config.publish_title_threshold,
        max_source_per_hour=config.publish_max_source_per_hour,
        max_signals_per_run=config.publish_max_signals,
    )


def _load_analyses(session: PipelineSession) -> list[Analysis]:
    data = session.store.load_analysis()
    if data is None:
        raise NoInputError(f"No analysis for {session.today}. Run 'analyze' first.")

    raw = data.get("new_analyses")
    if not isinstance(raw, list) or not raw:
        raw = data.get("all_analyses")
        log.info("No new analyses recorded, using all analyses")
    if not isinstance(raw, list):
        raw = []
    return [Analysis.from_dict(d) for d in raw if isinstance(d, dict)]


def _send(report: PublishReport, publisher: TelegramPublisher, text: str,
          kind: str, label: str, score: int | None = None) -> bool:
    report.total += 1
    result = publisher.send(text)
    if result.success:
        report.sent += 1
        return True
    report.failed += 1
    report.failed_messages.append(FailedMessage(type=kind, message=label, error=result.error, score=score))
    log.error(f"Failed to send {kind} ({label}): {result.error}")
    return False


def run_publish(
    session: PipelineSession,
    publisher: TelegramPublisher | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> PublishReport:
    config = session.config
    if not config.telegram_token:
        raise PublishConfigError("TG_TOKEN is not set")
    if not config.telegram_channel_id:
        raise PublishConfigError("TELEGRAM_CHANNEL_ID is not set")
    if config.telegram_token == TEST_MODE_TOKEN:
        log.info("Test mode: skipping Telegram publishing")
        return PublishReport()

    analyses = _load_analyses(session)
    signals_by_link: dict[str, Signal] = {}
    for signal in session.store.load_signals() or []:
        if signal.link and signal.link not in signals_by_link:
            signals_by_link[signal.link] = signal

    buckets = categorize(analyses)
    early_projects = sum(1 for a in analyses if is_early_project(a) and a.score_out_of_10 >= 3)
    log.info(
        f"Categorized {len(analyses)} analyses: hot={len(buckets['hot'])} early={len(buckets['early'])} "
        f"watch={len(buckets['watch'])} risk={len(buckets['risk'])} early projects={early_projects}"
    )

    ordered = [a for name in BUCKETS for a in buckets[name]]
    enriched = [enrich_for_dedup(a, signals_by_link.get(a.primary_link)) for a in ordered]
    kept, repeats, processed = url_prefilter(session.dedup, enriched)

    options = publish_dedup_options(config)
    filtered = session.dedup.filter_signals_for_publishing(kept, options)
    final = categorize(filtered.approved)

    report = PublishReport(
        hot=len(final["hot"]),
        early=len(final["early"]),
        watch=len(final["watch"]),
        risk=len(final["risk"]),
        url_duplicates=repeats + processed,
        content_duplicates=len(filtered.duplicates),
    )

    if publisher is None:
        publisher = TelegramPublisher(config.telegram_token, config.telegram_channel_id)

    counts = {name: len(final[name]) for name in BUCKETS}
    summary = format_summary_message(len(analyses), len(filtered.approved), counts, report.duplicates)
    _send(report, publisher, summary, "summary", "Daily analysis summary")
    sleep(config.summary_delay)

    tracker = session.dedup
    for name in BUCKETS:
        items = final[name]
        if name == "risk":
            items = items[:config.max_risk_alerts]
        if items:
            log.info(f"Publishing {len(items)} {name} messages")

        for i, analysis in enumerate(items):
            label = f"{analysis.project_name} - {analysis.opportunity_type}"
            check = tracker.check_deduplication(analysis, options)
            if check.is_duplicate:
                report.guard_skipped += 1
                log.info(f"Skipping {label}: {', '.join(check.reasons)}")
                continue

            tracker.mark_as_processed(analysis)
            tracker.save()

            text = format_analysis_message(
                analysis,
                signals_by_link.get(analysis.primary_link),
                name,
                early_project=is_early_project(analysis),
                tz_name=config.display_timezone,
            )
            if _send(report, publisher, text, MESSAGE_TYPES[name], label, analysis.score_out_of_10):
                tracker.mark_as_published(analysis)
                tracker.save()
                log.info(f"Sent {name} {i + 1}/{len(items)}: {label}")

            if i < len(items) - 1:
                sleep(config.message_delay)

    if report.failed_messages:
        session.store.save_failed(
            [m.to_dict() for m in report.failed_messages],
            isoformat(session.clock()),
        )

    tracker.finalize()
    log.info(f"Published {report.sent}/{report.total} messages ({report.success_rate}% success)")
    return report
