"""
Core data types. No behavior beyond (de)serialization, just shapes.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


@dataclass
class Signal:
    """One observed external event, before scoring."""
    source: str
    title: str
    link: str = ""
    time: str = ""              # ISO timestamp of the original post
    channel: str = "unknown"    # github | telegram | rss
    category: str = "general"
    priority: int = 1           # derived by filters.scorer, not identity
    message_id: str = ""
    content: str = ""           # text used for similarity checks
    original: dict | None = None

    @classmethod
    def from_dict(cls, d: dict) -> "Signal":
        """
        Build a Signal from a raw collector dict or a persisted batch entry.
        Accepts the legacy aliases url/judul/repo. Missing fields become "".
        """
        priority = d.get("priority") or 1
        try:
            priority = int(priority)
        except (TypeError, ValueError):
            priority = 1

        return cls(
            source=_text(d.get("source") or d.get("repo") or ""),
            title=_text(d.get("title") or d.get("judul") or ""),
            link=_text(d.get("link") or d.get("url") or ""),
            time=_text(d.get("time") or d.get("published_at") or ""),
            channel=_text(d.get("channel") or "unknown"),
            category=_text(d.get("category") or "general"),
            priority=priority,
            message_id=_text(d.get("messageId") or d.get("message_id") or d.get("id") or ""),
            content=_text(d.get("content") or ""),
            original=d.get("originalSignal") or d.get("original"),
        )

    def to_dict(self) -> dict:
        d = {
            "source": self.source,
            "title": self.title,
            "link": self.link,
            "time": self.time,
            "messageId": self.message_id,
            "channel": self.channel,
            "category": self.category,
            "priority": self.priority,
        }
        if self.content:
            d["content"] = self.content
        if self.original is not None:
            d["originalSignal"] = self.original
        return d

    def __repr__(self) -> str:
        return f"Signal({self.source}, {self.title[:50]}, priority={self.priority})"


@dataclass
class Analysis:
    """An LLM judgment of one signal, enriched for dedup before publishing."""
    project_name: str
    opportunity_type: str
    importance: str             # Critical | High | Medium | Low
    investment_angle: str
    risk_level: str
    evidence: list[str] = field(default_factory=list)
    reasoning: str = ""
    score: int = 0              # 1-100
    market_impact: str = ""
    timeline: str = ""

    # Set by the publish phase from the originating Signal
    source: str = ""
    title: str = ""
    link: str = ""
    content: str = ""
    url_key: str = ""

    @property
    def score_out_of_10(self) -> int:
        # round-half-up, the way scores were always bucketed
        return int(self.score / 10 + 0.5)

    @property
    def primary_link(self) -> str:
        return self.evidence[0] if self.evidence else ""

    @classmethod
    def from_dict(cls, d: dict) -> "Analysis":
        evidence = d.get("evidence") or []
        if isinstance(evidence, str):
            evidence = [evidence]
        try:
            score = int(d.get("score", 0) or 0)
        except (TypeError, ValueError):
            score = 0
        return cls(
            project_name=_text(d.get("project_name") or "Unknown"),
            opportunity_type=_text(d.get("opportunity_type") or "Unknown"),
            importance=_text(d.get("importance") or "Low"),
            investment_angle=_text(d.get("investment_angle")),
            risk_level=_text(d.get("risk_level")),
            evidence=[_text(e) for e in evidence if e],
            reasoning=_text(d.get("reasoning")),
            score=score,
            market_impact=_text(d.get("market_impact")),
            timeline=_text(d.get("timeline")),
            source=_text(d.get("source")),
            title=_text(d.get("title")),
            link=_text(d.get("link")),
            content=_text(d.get("content")),
            url_key=_text(d.get("url_key")),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    def __repr__(self) -> str:
        return f"Analysis({self.project_name}, {self.opportunity_type}, score={self.score})"


# ── Tracker results ──

@dataclass
class FilterResult:
    """Output of a tracker's filter_new_signals pass."""
    new_signals: list = field(default_factory=list)
    skipped_signals: list = field(default_factory=list)


@dataclass
class SimilarityCheck:
    is_duplicate: bool
    similarity: float = 0.0
    reason: str = ""
    original: dict | None = None


@dataclass
class FrequencyCheck:
    is_duplicate: bool
    count: int
    limit: int
    reason: str = ""


@dataclass
class DedupCheck:
    """Combined verdict. `reasons` lists every check that fired, in check order."""
    is_duplicate: bool = False
    reasons: list[str] = field(default_factory=list)
    details: dict = field(default_factory=dict)


@dataclass
class DedupOptions:
    content_similarity_threshold: float = 0.8
    title_similarity_threshold: float = 0.9
    max_source_per_hour: int = 3
    max_signals_per_run: int = 50
    check_url_processed: bool = True
    check_already_published: bool = True
    check_content: bool = True
    check_title: bool = True
    check_source: bool = True


@dataclass
class DuplicateEntry:
    signal: Any
    reasons: list[str]
    details: dict


@dataclass
class PublishFilterResult:
    approved: list = field(default_factory=list)
    duplicates: list[DuplicateEntry] = field(default_factory=list)
    skipped: list = field(default_factory=list)


# ── Collaborator results ──

@dataclass
class SendResult:
    """What the publish collaborator reports. It never raises."""
    success: bool
    error: str | None = None
    message_id: int | None = None


@dataclass
class FailedMessage:
    type: str
    message: str
    error: str | None
    score: int | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "message": self.message,
            "error": self.error,
            "score": self.score,
        }


@dataclass
class PublishReport:
    """End-of-run report for phase 3."""
    hot: int = 0
    early: int = 0
    watch: int = 0
    risk: int = 0
    url_duplicates: int = 0
    content_duplicates: int = 0
    guard_skipped: int = 0
    total: int = 0
    sent: int = 0
    failed: int = 0
    failed_messages: list[FailedMessage] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def duplicates(self) -> int:
        return self.url_duplicates + self.content_duplicates

    @property
    def success_rate(self) -> int:
        if self.total == 0:
            return 0
        return round(self.sent / self.total * 100)


@dataclass
class CollectResult:
    signals: list[Signal]
    new_signals: list[Signal]
    existing_count: int
    skipped_count: int
    summary: dict
    errors: list[dict] = field(default_factory=list)


@dataclass
class AnalysisRun:
    """Output of one scoring pass over a list of signals."""
    total_signals: int
    analyzed_signals: int = 0
    all_analyses: list[Analysis] = field(default_factory=list)
    new_analyses: list[Analysis] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "total_signals": self.total_signals,
            "analyzed_signals": self.analyzed_signals,
            "all_analyses": [a.to_dict() for a in self.all_analyses],
            "new_analyses": [a.to_dict() for a in self.new_analyses],
            "errors": self.errors,
        }


@dataclass
class AnalyzeResult:
    run: AnalysisRun | None
    new_signals: int = 0
    unique_signals: int = 0
    duplicates_filtered: int = 0
    skipped_signals: int = 0
    total_analyzed: int = 0
    unscored_signals: int = 0   # marked analyzed but never sent to the LLM
