#!/usr/bin/env python3
"""
early-signal: crypto early-opportunity detection.

Usage:
    python main.py collect              # Phase 1: fetch signals into today's batch
    python main.py analyze              # Phase 2: score new signals with the LLM
    python main.py publish              # Phase 3: publish scored signals to Telegram
    python main.py run                  # collect + analyze + publish (for cron)
    python main.py stats                # Show tracker stats
    python main.py duplicates           # Show what the publishing tracker holds
    python main.py reset                # Back up and clear the publishing tracker
    python main.py failed               # List today's failed Telegram messages
"""

import argparse
import logging
import signal
import sys

from config.settings import load_config
from delivery import (
    deliver_analysis,
    deliver_collect,
    deliver_duplicate_report,
    deliver_failed,
    deliver_publish,
    deliver_stats,
)
from pipeline.analyze import run_analyze
from pipeline.collect import run_collect
from pipeline.publish import run_publish
from pipeline.runner import run_all
from pipeline.session import NoInputError, PipelineSession, PublishConfigError

log = logging.getLogger("early-signal")


def setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _on_timeout(signum, frame):
    log.error("Run timeout reached, aborting")
    sys.exit(1)


def set_run_timeout(seconds: int):
    """Abort the process after `seconds` of wall-clock time. 0 disables."""
    if seconds > 0 and hasattr(signal, "SIGALRM"):
        signal.signal(signal.SIGALRM, _on_timeout)
        signal.alarm(seconds)


def cmd_collect(session):
    deliver_collect(run_collect(session))


def cmd_analyze(session):
    deliver_analysis(run_analyze(session))


def cmd_publish(session):
    deliver_publish(run_publish(session))


def cmd_run(session):
    """Full pipeline. Meant for cron."""
    summary = run_all(session)
    report = summary.get("report")
    if report is not None:
        deliver_publish(report)
    print(f"Signals: {summary.get('signals', 0)}  Analyzed: {summary.get('analyzed', 0)}  "
          f"Published: {summary.get('published', 0)}  ({summary['duration']}s)")


def cmd_stats(session):
    deliver_stats(
        session.collection.get_stats(),
        session.analysis.get_stats(),
        session.dedup.get_stats(),
    )


def cmd_duplicates(session):
    deliver_duplicate_report(session.dedup.duplicate_report(session.config.publish_max_source_per_hour))


def cmd_reset(session, reason: str):
    backup = session.dedup.reset(reason)
    if backup:
        print(f"Backup written to {backup}")
    print(f"Deduplication tracker reset ({reason})")


def cmd_failed(session):
    deliver_failed(session.today, session.store.load_failed())


def cli():
    parser = argparse.ArgumentParser(
        prog="early-signal",
        description="Crypto early-opportunity detection: collect, score and publish signals",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    common.add_argument(
        "--timeout", type=int, default=None,
        help="Abort after this many seconds (default SIGNAL_RUN_TIMEOUT, 0 = none)",
    )

    sub = parser.add_subparsers(dest="command", help="Command to run")

    sub.add_parser("collect", parents=[common], help="Phase 1: fetch signals into today's batch")
    sub.add_parser("analyze", parents=[common], help="Phase 2: score new signals with the LLM")
    sub.add_parser("publish", parents=[common], help="Phase 3: publish scored signals to Telegram")
    sub.add_parser("run", parents=[common], help="Collect + analyze + publish (for cron)")
    sub.add_parser("stats", parents=[common], help="Show tracker stats")
    sub.add_parser("duplicates", parents=[common], help="Show the publishing tracker contents")

    reset_parser = sub.add_parser("reset", parents=[common], help="Back up and clear the publishing tracker")
    reset_parser.add_argument("--reason", type=str, default="manual reset", help="Recorded in the new file")

    sub.add_parser("failed", parents=[common], help="List today's failed Telegram messages")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.verbose)
    config = load_config()
    set_run_timeout(args.timeout if args.timeout is not None else config.run_timeout)

    session = PipelineSession(config)

    try:
        match args.command:
            case "collect":
                cmd_collect(session)
            case "analyze":
                cmd_analyze(session)
            case "publish":
                cmd_publish(session)
            case "run":
                cmd_run(session)
            case "stats":
                cmd_stats(session)
            case "duplicates":
                cmd_duplicates(session)
            case "reset":
                cmd_reset(session, args.reason)
            case "failed":
                cmd_failed(session)
            case _:
                parser.print_help()
    except (PublishConfigError, NoInputError) as e:
        log.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    cli()
