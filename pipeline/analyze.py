"""
Phase 2: analyze.

Only signals the analysis tracker has not seen go further. Those pass a
cheap dedup check against what has already been published (content is the
title here, nothing is marked), and the survivors are scored by the LLM.
"""

import logging
from dataclasses import replace

from analysis.engine import Analyzer, summary_text
from llm.factory import create_provider
from llm.provider import LLMError
from models import AnalyzeResult, DedupOptions, Signal
from pipeline.session import NoInputError, PipelineSession

log = logging.getLogger(__name__)


def analysis_dedup_options(config) -> DedupOptions:
    return DedupOptions(
        content_similarity_threshold=config.analyze_content_threshold,
        title_similarity_threshold=config.analyze_title_threshold,
        max_source_per_hour=config.analyze_max_source_per_hour,
        max_signals_per_run=config.analyze_max_signals,
    )


def build_analyzer(session: PipelineSession) -> Analyzer | None:
    """The configured analyzer, or None when no LLM key is set."""
    config = session.config
    try:
        llm = create_provider(config, session.llm_usage_path)
    except LLMError as e:
        log.warning(f"LLM analysis skipped: {e}")
        return None
    return Analyzer(llm, batch_size=config.analysis_batch_size, batch_delay=config.analysis_batch_delay)


def _for_dedup(signal: Signal) -> Signal:
    return replace(signal, content=signal.title, source=signal.source or "Unknown")


def run_analyze(session: PipelineSession, analyzer: Analyzer | None = None) -> AnalyzeResult:
    signals = session.store.load_signals()
    if signals is None:
        raise NoInputError(f"No signals for {session.today}. Run 'collect' first.")
    log.info(f"Loaded {len(signals)} signals")

    filtered = session.analysis.filter_new_signals(signals)
    result = AnalyzeResult(
        run=None,
        new_signals=len(filtered.new_signals),
        skipped_signals=len(filtered.skipped_signals),
    )
    log.info(f"New signals to analyze: {result.new_signals}, already analyzed: {result.skipped_signals}")

    if not filtered.new_signals:
        log.info("No new signals to analyze")
        result.total_analyzed = session.analysis.finalize()["global"]
        return result

    dedup = session.dedup.filter_signals_for_publishing(
        [_for_dedup(s) for s in filtered.new_signals],
        analysis_dedup_options(session.config),
    )
    unique = dedup.approved
    result.unique_signals = len(unique)
    result.duplicates_filtered = len(dedup.duplicates)
    log.info(f"Unique signals for analysis: {len(unique)}, duplicates filtered: {len(dedup.duplicates)}")

    # filter_new_signals already marked every new signal; these will not come back
    result.unscored_signals = len(filtered.new_signals) - len(unique)
    over_cap = result.unscored_signals - result.duplicates_filtered
    if result.unscored_signals:
        log.info(
            f"{result.unscored_signals} signals marked analyzed without scoring "
            f"(duplicates: {result.duplicates_filtered}, over cap: {over_cap})"
        )

    if not unique:
        result.total_analyzed = session.analysis.finalize()["global"]
        return result

    if analyzer is None:
        analyzer = build_analyzer(session)

    if analyzer is None:
        result.unscored_signals += len(unique)
        log.warning(f"No analyzer available: {len(unique)} signals marked analyzed without scoring")
    else:
        run = analyzer.analyze(unique)
        by_link = {}
        for analysis in run.all_analyses:
            link = analysis.primary_link
            if link and link not in by_link:
                by_link[link] = analysis

        links = {s.link for s in unique if s.link}
        run.new_analyses = [a for a in run.all_analyses if a.primary_link in links]
        log.info(f"New analyses for publishing: {len(run.new_analyses)}")

        for signal in unique:
            match = by_link.get(signal.link) if signal.link else None
            session.analysis.mark_as_analyzed(signal, match.to_dict() if match else None)

        result.run = run
        payload = run.to_dict()
        payload["incremental_stats"] = {
            "new_signals": result.new_signals,
            "unique_signals": result.unique_signals,
            "duplicates_filtered": result.duplicates_filtered,
            "skipped_signals": result.skipped_signals,
            "unscored_signals": result.unscored_signals,
        }
        session.store.save_analysis(payload, summary_text(run, session.today))

    result.total_analyzed = session.analysis.finalize()["global"]
    return result
