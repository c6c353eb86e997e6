"""
Scoring engine. Takes signals + LLM provider, produces Analysis objects.

Signals go to the model in batches (10 by default), one call per batch.
A batch that fails is recorded in the run's errors and the rest continue.
"""

import json
import logging
import re
import time
from typing import Callable

from analysis.prompts import ANALYSIS_SYSTEM, ANALYSIS_USER, ANALYSIS_REPAIR
from llm.provider import LLMProvider, LLMError
from models import Analysis, AnalysisRun, Signal

log = logging.getLogger(__name__)

VALID_IMPORTANCE = {"Critical", "High", "Medium", "Low"}


def _format_signals_for_prompt(signals: list[Signal]) -> str:
    lines = []
    for i, s in enumerate(signals, 1):
        lines.append(
            f"{i}. {s.title or 'Untitled'}\n"
            f"   Source: {s.source}\n"
            f"   URL: {s.link or 'No URL'}\n"
            f"   Channel: {s.channel or 'Unknown'}\n"
            f"   Category: {s.category or 'Unknown'}\n"
            f"   Priority: {s.priority}"
        )
    return "\n\n".join(lines)


def _extract_json_array(text: str) -> str:
    """
    Extract a JSON array from LLM response text.
    Handles markdown code fences and leading/trailing text. A lone object
    is wrapped into a one-element array.
    """
    text = re.sub(r"```(?:json)?\s*\n?", "", text)
    text = text.strip()

    start = text.find("[")
    if start == -1:
        if text.startswith("{") and text.endswith("}"):
            return f"[{text}]"
        raise ValueError("No JSON array found in response")

    depth = 0
    end = -1
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                end = i + 1
                break

    if end == -1:
        raise ValueError("Unbalanced brackets in JSON array")

    return text[start:end]


def _validate_analysis_dict(d: dict) -> list[str]:
    """Validate one analysis dict. Returns list of error messages."""
    errors = []
    for field in ("project_name", "opportunity_type"):
        if not isinstance(d.get(field), str) or not d[field].strip():
            errors.append(f"Missing or empty required field: {field}")

    score = d.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        errors.append(f"score must be a number, got {type(score).__name__}")
    elif not (1 <= score <= 100):
        errors.append(f"score must be 1-100, got {score}")

    evidence = d.get("evidence")
    if evidence is not None and not isinstance(evidence, (list, str)):
        errors.append("evidence must be an array of URLs")

    importance = d.get("importance")
    if importance is not None and importance not in VALID_IMPORTANCE:
        errors.append(f"importance must be one of {sorted(VALID_IMPORTANCE)}, got '{importance}'")

    return errors


def parse_analyses_json(raw_text: str) -> list[Analysis]:
    """
    Parse an LLM response into Analysis objects. Invalid items are dropped
    with a warning. Raises ValueError if nothing usable comes back.
    """
    data = json.loads(_extract_json_array(raw_text))
    if not isinstance(data, list):
        raise ValueError(f"Expected JSON array, got {type(data).__name__}")

    analyses = []
    all_errors = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            all_errors.append(f"Item {i}: expected object, got {type(item).__name__}")
            continue
        errors = _validate_analysis_dict(item)
        if errors:
            all_errors.append(f"Item {i} ({item.get('project_name', '?')}): {'; '.join(errors)}")
            continue
        analyses.append(Analysis.from_dict(item))

    if all_errors and not analyses:
        raise ValueError(
            f"All {len(data)} analyses failed validation:\n" + "\n".join(all_errors)
        )
    elif all_errors:
        log.warning(
            f"{len(all_errors)} analyses failed validation (kept {len(analyses)}):\n"
            + "\n".join(all_errors)
        )
    return analyses


class Analyzer:
    def __init__(
        self,
        llm: LLMProvider,
        batch_size: int = 10,
        batch_delay: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._llm = llm
        self._batch_size = max(1, batch_size)
        self._batch_delay = batch_delay
        self._sleep = sleep

    def analyze(self, signals: list[Signal]) -> AnalysisRun:
        run = AnalysisRun(total_signals=len(signals))
        batches = [signals[i:i + self._batch_size] for i in range(0, len(signals), self._batch_size)]
        log.info(f"Scoring {len(signals)} signals in {len(batches)} batches with {self._llm.name()}")

        for index, batch in enumerate(batches):
            try:
                analyses = self._score_batch(batch)
            except (LLMError, ValueError) as e:
                log.error(f"Batch {index + 1}/{len(batches)} failed: {e}")
                run.errors.append({"batch_index": index, "error": str(e)})
            else:
                run.all_analyses.extend(analyses)
                run.analyzed_signals += len(batch)
                log.info(f"Batch {index + 1}/{len(batches)}: {len(analyses)} analyses")

            if index < len(batches) - 1 and self._batch_delay:
                self._sleep(self._batch_delay)

        return run

    def _score_batch(self, batch: list[Signal]) -> list[Analysis]:
        """
        One LLM call for the batch. On a parse failure, retry once with a
        repair prompt.
        """
        prompt = ANALYSIS_USER.format(count=len(batch), signals=_format_signals_for_prompt(batch))
        response = self._llm.complete(
            system_prompt=ANALYSIS_SYSTEM,
            user_prompt=prompt,
            temperature=0.2,
            max_tokens=8000,
        )
        log.debug(f"Batch scored: {response.input_tokens} in, {response.output_tokens} out ({response.model})")

        try:
            return parse_analyses_json(response.text)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            first_error = str(e)
            log.warning(f"JSON parse failed: {first_error}. Attempting repair.")

        repair = self._llm.complete(
            system_prompt=ANALYSIS_SYSTEM,
            user_prompt=ANALYSIS_REPAIR.format(error=first_error, raw=response.text[:500]),
            temperature=0.1,
            max_tokens=8000,
        )
        analyses = parse_analyses_json(repair.text)
        log.info("Repair succeeded.")
        return analyses


# ── Summary text ──

def _bucket(analyses: list[Analysis], low: int, high: int) -> list[Analysis]:
    picked = [a for a in analyses if low <= a.score_out_of_10 <= high]
    return sorted(picked, key=lambda a: a.score, reverse=True)[:20]


def _describe(analyses: list[Analysis]) -> str:
    if not analyses:
        return "(none)\n"
    lines = []
    for i, a in enumerate(analyses, 1):
        lines.append(f"{i}. {a.project_name} (Score: {a.score_out_of_10}/10)")
        lines.append(f"   Type: {a.opportunity_type}")
        lines.append(f"   Importance: {a.importance}")
        lines.append(f"   Market Impact: {a.market_impact or 'Unknown'}")
        lines.append(f"   Timeline: {a.timeline or 'Unknown'}")
        lines.append(f"   Investment Angle: {a.investment_angle}")
        lines.append(f"   Risk: {a.risk_level}")
        lines.append(f"   Evidence: {', '.join(a.evidence) if a.evidence else 'None'}")
        lines.append(f"   Reasoning: {a.reasoning}")
        lines.append("")
    return "\n".join(lines)


def scoring_distribution(analyses: list[Analysis]) -> dict[str, int]:
    """good 7-10, check 4-6, scam 1-3 on the 10-point scale."""
    dist = {"good": 0, "check": 0, "scam": 0}
    for a in analyses:
        s = a.score_out_of_10
        if s >= 7:
            dist["good"] += 1
        elif s >= 4:
            dist["check"] += 1
        else:
            dist["scam"] += 1
    return dist


def summary_text(run: AnalysisRun, today: str) -> str:
    dist = scoring_distribution(run.all_analyses)
    header = f"Signal Analysis Results - {today}"
    return "\n".join([
        header,
        "=" * len(header),
        "",
        f"Total Signals Analyzed: {run.analyzed_signals}/{run.total_signals}",
        f"Analyses: {len(run.all_analyses)} ({len(run.new_analyses)} new)",
        f"Errors: {len(run.errors)}",
        "",
        "SCORING DISTRIBUTION:",
        f"Good Opportunities (7-10): {dist['good']}",
        f"Need Manual Check (4-6): {dist['check']}",
        f"Potential Scams (1-3): {dist['scam']}",
        "",
        "TOP OPPORTUNITIES (Score 7-10):",
        _describe(_bucket(run.all_analyses, 7, 10)),
        "NEED MANUAL CHECK (Score 4-6):",
        _describe(_bucket(run.all_analyses, 4, 6)),
        "POTENTIAL SCAMS (Score 1-3):",
        _describe(_bucket(run.all_analyses, 0, 3)),
    ])
