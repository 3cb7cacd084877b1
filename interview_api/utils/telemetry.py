"""
Lightweight telemetry for the interview flow and the LLM layer.
"""

from __future__ import annotations

from collections import Counter, deque
from datetime import datetime, timezone
from typing import Any, Optional

MAX_RECENT_ERRORS = 50

_counters = Counter()
_question_sources = Counter()
_parse_failures = Counter()
_provider_failures = Counter()
_recent_errors: deque[dict[str, Any]] = deque(maxlen=MAX_RECENT_ERRORS)


def record_question_source(source: str, stage: Optional[str] = None) -> None:
    """source: ai / cache / fallback / emergency / serious / clarification"""
    _counters["question_total"] += 1
    _question_sources[source or "unknown"] += 1
    if stage:
        _counters[f"question_stage_{stage}"] += 1


def record_joke_detected() -> None:
    _counters["joke_detected_total"] += 1


def record_clarification(reason: str) -> None:
    _counters["clarification_total"] += 1
    _counters[f"clarification:{reason[:40]}"] += 1


def record_evaluation(fallback: bool) -> None:
    _counters["evaluation_total"] += 1
    if fallback:
        _counters["evaluation_fallback"] += 1


def record_parse_failure(context: str, reason: Optional[str] = None) -> None:
    _counters["parse_failure_total"] += 1
    key = context or "unknown"
    if reason:
        _parse_failures[f"{key}:{reason[:120]}"] += 1
    else:
        _parse_failures[key] += 1


def record_provider_failure(provider: str, error_type: str) -> None:
    _counters["llm_failure_total"] += 1
    _provider_failures[f"{provider}:{error_type}"] += 1


def record_error(context: str, message: str, extra: Optional[dict] = None) -> None:
    _counters["error_total"] += 1
    _recent_errors.append(
        {
            "context": context,
            "message": message[:500],
            "extra": extra or {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


def recent_errors(limit: int = MAX_RECENT_ERRORS) -> list[dict[str, Any]]:
    """新しい順に返す。"""
    items = list(_recent_errors)
    items.reverse()
    return items[: max(limit, 0)]


def clear_errors() -> int:
    count = len(_recent_errors)
    _recent_errors.clear()
    return count


def snapshot() -> dict[str, Any]:
    return {
        "counters": dict(_counters),
        "question_sources": dict(_question_sources),
        "parse_failures": dict(_parse_failures),
        "provider_failures": dict(_provider_failures),
        "recent_error_count": len(_recent_errors),
    }


def reset() -> None:
    _counters.clear()
    _question_sources.clear()
    _parse_failures.clear()
    _provider_failures.clear()
    _recent_errors.clear()
