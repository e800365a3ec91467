"""Generic matcher for catalog rules.

Payload facts (totals, weekend flag, per-tool breakdowns, day buckets) are
extracted once per evaluation; ``match_rule`` then checks one rule against
them and returns the grant metadata, or None when the rule does not fire.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from wakawars.achievements.catalog import (
    KIND_AVERAGE,
    KIND_BREAKDOWN,
    KIND_DAY_STREAK,
    KIND_DOMINANT,
    KIND_TOTAL,
    AchievementRule,
)
from wakawars.provider.payload import BREAKDOWN_KEYS, StatsPayload, active_breakdown
from wakawars.stats.date_keys import parse_date_key

DEFAULT_WEEKEND_DAYS = frozenset({4, 5, 6})  # Friday, Saturday, Sunday

_SINGULAR = {"editors": "editor", "languages": "language", "projects": "project"}


@dataclass(frozen=True)
class StatFacts:
    total_seconds: float
    daily_average_seconds: float = 0.0
    is_weekend: bool = False
    breakdowns: dict[str, list[tuple[str, float]]] = field(default_factory=dict)
    day_seconds: tuple[float, ...] = ()

    def active_names(self, key: str) -> list[str]:
        return [name for name, _ in self.breakdowns.get(key, [])]


def is_weekend_date_key(date_key: str, weekend_days: Iterable[int] = DEFAULT_WEEKEND_DAYS) -> bool:
    parsed = parse_date_key(date_key)
    if parsed is None:
        return False
    return parsed.weekday() in set(weekend_days)


def _breakdowns(decoded: StatsPayload) -> dict[str, list[tuple[str, float]]]:
    return {key: active_breakdown(decoded.breakdown(key)) for key in BREAKDOWN_KEYS}


def build_day_facts(
    total_seconds: float,
    date_key: str,
    payload: dict[str, Any] | None,
    weekend_days: Iterable[int] = DEFAULT_WEEKEND_DAYS,
) -> StatFacts:
    decoded = StatsPayload.from_daily(payload or {})
    return StatFacts(
        total_seconds=total_seconds,
        is_weekend=is_weekend_date_key(date_key, weekend_days),
        breakdowns=_breakdowns(decoded),
    )


def build_week_facts(
    total_seconds: float,
    daily_average_seconds: float,
    payload: dict[str, Any] | None,
) -> StatFacts:
    decoded = StatsPayload.from_weekly(payload or {})
    return StatFacts(
        total_seconds=total_seconds,
        daily_average_seconds=daily_average_seconds,
        breakdowns=_breakdowns(decoded),
        day_seconds=tuple(decoded.day_seconds),
    )


def match_rule(rule: AchievementRule, facts: StatFacts) -> dict[str, Any] | None:
    """Return grant metadata if ``rule`` fires for ``facts``."""
    if rule.kind == KIND_AVERAGE:
        if facts.daily_average_seconds < rule.threshold_seconds:
            return None
        return {
            "total_seconds": facts.total_seconds,
            "daily_average_seconds": facts.daily_average_seconds,
            "threshold_seconds": rule.threshold_seconds,
        }

    if rule.kind == KIND_DAY_STREAK:
        if rule.day_threshold_seconds > 0:
            qualifying = sum(1 for s in facts.day_seconds if s >= rule.day_threshold_seconds)
        else:
            qualifying = sum(1 for s in facts.day_seconds if s > 0)
        if qualifying < rule.required_days:
            return None
        return {
            "active_day_count": qualifying,
            "day_threshold_seconds": rule.day_threshold_seconds,
            "daily_average_seconds": facts.daily_average_seconds,
        }

    if facts.total_seconds < rule.threshold_seconds:
        return None
    metadata: dict[str, Any] = {
        "total_seconds": facts.total_seconds,
        "threshold_seconds": rule.threshold_seconds,
    }

    if rule.kind == KIND_TOTAL:
        if rule.weekend_only and not facts.is_weekend:
            return None
        return metadata

    if rule.kind == KIND_BREAKDOWN:
        names = facts.active_names(rule.breakdown or "")
        if rule.min_count is not None and len(names) < rule.min_count:
            return None
        if rule.max_count is not None and len(names) > rule.max_count:
            return None
        if rule.max_count == 1:
            metadata[_SINGULAR[rule.breakdown or ""]] = names[0]
        else:
            metadata[rule.breakdown or ""] = names
        return metadata

    if rule.kind == KIND_DOMINANT:
        entries = sorted(facts.breakdowns.get(rule.breakdown or "", []), key=lambda e: e[1], reverse=True)
        if not entries or facts.total_seconds <= 0:
            return None
        top_name, top_seconds = entries[0]
        share = top_seconds / facts.total_seconds
        if share < (rule.share or 0):
            return None
        metadata[f"dominant_{_SINGULAR[rule.breakdown or '']}"] = top_name
        metadata["share"] = share
        return metadata

    raise ValueError(f"Unknown rule kind: {rule.kind}")


def evaluate_rules(
    rules: Iterable[AchievementRule],
    facts: StatFacts,
) -> list[tuple[AchievementRule, dict[str, Any]]]:
    """All rules that fire, in catalog order, with their metadata."""
    matched = []
    for rule in rules:
        metadata = match_rule(rule, facts)
        if metadata is not None:
            matched.append((rule, metadata))
    return matched
