"""
Telegram message text. Legacy Markdown (*bold*); the publisher falls back
to plain text if Telegram rejects the entities.
"""

import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from models import Analysis, Signal
from storage.state import parse_timestamp

log = logging.getLogger(__name__)

SEPARATOR = "━" * 40

# bucket -> (marker, header)
CATEGORY_HEADERS: dict[str, tuple[str, str]] = {
    "hot": ("🟢", "🔥 HOT OPPORTUNITY"),
    "early": ("🟡", "⚡ EARLY SIGNAL"),
    "watch": ("🟠", "👀 WATCH CLOSELY"),
    "risk": ("🔴", "🚨 POTENTIAL RISK"),
    "early_project": ("🟢", "🚀 EARLY PROJECT"),
}

IMPORTANCE_MARKERS = {
    "Critical": "🚨",
    "High": "🔥",
    "Medium": "📈",
    "Low": "💡",
}


def _score_marker(score: int) -> str:
    if score >= 8:
        return "🔥"
    if score >= 6:
        return "⚡"
    if score >= 4:
        return "👀"
    return "🚨"


def format_posted_time(value: str, tz_name: str) -> str | None:
    ts = parse_timestamp(value)
    if ts is None:
        return None
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning(f"Unknown display timezone '{tz_name}', using UTC")
        tz = ZoneInfo("UTC")
    return ts.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S")


def format_analysis_message(
    analysis: Analysis,
    signal: Signal | None,
    bucket: str,
    early_project: bool = False,
    tz_name: str = "Europe/Zurich",
) -> str:
    score = analysis.score_out_of_10
    header_key = "early_project" if early_project and score >= 4 else bucket
    marker, header = CATEGORY_HEADERS.get(header_key, CATEGORY_HEADERS["watch"])

    source = signal.source if signal else (analysis.source or "Unknown")
    original_title = signal.title if signal else analysis.project_name
    posted = format_posted_time(signal.time, tz_name) if signal else None

    lines = [
        f"{marker} *{header}*",
        "",
        f"📝 *{original_title} | {analysis.project_name}*",
        "",
        f"🔗 *Link:* {analysis.primary_link or 'N/A'}",
        "",
        "📊 *Summary:*",
        analysis.investment_angle,
        "",
        "📈 *Analysis:*",
        f"   {_score_marker(score)} Score: {score}/10",
        f"   {IMPORTANCE_MARKERS.get(analysis.importance, '📊')} {analysis.importance}",
        f"   📊 Market Impact: {analysis.market_impact or 'Unknown'}",
    ]
    if early_project:
        lines.append(f"   🚀 Early Project Type: {analysis.opportunity_type}")
    lines.append("")
    lines.append(f"📡 *Source:* {source}")
    if posted:
        lines.append(f"🗓️ *Posted:* {posted} ({tz_name})")
    lines.append("")
    lines.append(SEPARATOR)
    return "\n".join(lines)


def format_summary_message(total: int, approved: int, counts: dict[str, int], duplicates: int) -> str:
    return "\n".join([
        "📊 *DAILY CRYPTO EARLY DETECTION ANALYSIS*",
        "",
        f"📈 *Total Signals Analyzed:* {total}",
        f"🔍 *After Deduplication:* {approved}",
        f"🔥 *Hot Opportunities:* {counts.get('hot', 0)}",
        f"⚡ *Early Signals:* {counts.get('early', 0)}",
        f"👀 *Watch Closely:* {counts.get('watch', 0)}",
        f"🚨 *Potential Risks:* {counts.get('risk', 0)}",
        f"❌ *Duplicates Filtered:* {duplicates}",
        "",
        SEPARATOR,
    ])
