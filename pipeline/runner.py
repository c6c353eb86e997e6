"""
Full run: collect -> analyze -> publish, stopping early when a phase
leaves nothing for the next one.
"""

import logging
import time

from pipeline.analyze import run_analyze
from pipeline.collect import run_collect
from pipeline.publish import run_publish
from pipeline.session import PipelineSession

log = logging.getLogger(__name__)


def run_all(session: PipelineSession, collectors=None, analyzer=None, publisher=None) -> dict:
    started = time.monotonic()
    summary: dict = {"timings": {}}

    t0 = time.monotonic()
    collected = run_collect(session, collectors)
    summary["timings"]["collect"] = round(time.monotonic() - t0, 1)
    summary["signals"] = len(collected.signals)
    log.info(f"Phase 1 complete: {len(collected.signals)} signals ({summary['timings']['collect']}s)")

    if not collected.signals:
        log.info("No signals collected. Skipping analysis and publishing.")
        summary["stopped_after"] = "collect"
        summary["duration"] = round(time.monotonic() - started, 1)
        return summary

    t0 = time.monotonic()
    analyzed = run_analyze(session, analyzer)
    summary["timings"]["analyze"] = round(time.monotonic() - t0, 1)
    summary["analyzed"] = len(analyzed.run.all_analyses) if analyzed.run else 0
    log.info(f"Phase 2 complete: {summary['analyzed']} analyses ({summary['timings']['analyze']}s)")

    if not summary["analyzed"]:
        log.info("No analysis results. Skipping publishing.")
        summary["stopped_after"] = "analyze"
        summary["duration"] = round(time.monotonic() - started, 1)
        return summary

    t0 = time.monotonic()
    report = run_publish(session, publisher)
    summary["timings"]["publish"] = round(time.monotonic() - t0, 1)
    summary["published"] = report.sent
    summary["report"] = report
    log.info(
        f"Phase 3 complete: {report.hot} hot, {report.early} early, {report.watch} watch, "
        f"{report.risk} risk ({summary['timings']['publish']}s)"
    )

    summary["duration"] = round(time.monotonic() - started, 1)
    return summary
