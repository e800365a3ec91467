"""Achievement catalog.

Each rule is data: a context (daily or weekly), a kind understood by
``wakawars.achievements.rules.match_rule``, and the thresholds that kind
reads. Adding an achievement means adding a row here, not a code path.
"""

from __future__ import annotations

from dataclasses import dataclass

HOUR = 60 * 60

CONTEXT_DAILY = "daily"
CONTEXT_WEEKLY = "weekly"

# Rule kinds
KIND_TOTAL = "total"  # total_seconds >= threshold
KIND_AVERAGE = "average"  # daily_average_seconds >= threshold
KIND_BREAKDOWN = "breakdown"  # total >= threshold and distinct-name count within bounds
KIND_DOMINANT = "dominant"  # total >= threshold and top entry share >= share
KIND_DAY_STREAK = "day_streak"  # every day bucket at or over day threshold


@dataclass(frozen=True)
class AchievementRule:
    id: str
    title: str
    description: str
    icon: str
    context: str
    kind: str
    threshold_seconds: float = 0
    weekend_only: bool = False
    breakdown: str | None = None
    min_count: int | None = None
    max_count: int | None = None
    share: float | None = None
    day_threshold_seconds: float = 0
    required_days: int = 7


def _daily_total(id: str, title: str, description: str, icon: str, hours: int) -> AchievementRule:
    return AchievementRule(id, title, description, icon, CONTEXT_DAILY, KIND_TOTAL, threshold_seconds=hours * HOUR)


def _weekly_total(id: str, title: str, description: str, icon: str, hours: int) -> AchievementRule:
    return AchievementRule(id, title, description, icon, CONTEXT_WEEKLY, KIND_TOTAL, threshold_seconds=hours * HOUR)


ACHIEVEMENT_CATALOG: tuple[AchievementRule, ...] = (
    # --- Daily time ---
    _daily_total("quick-boot-4h", "Quick Boot", "Log 4 focused hours in a day.", "4H", 4),
    _daily_total("focus-reactor-6h", "Focus Reactor", "Cross 6 hours in a day.", "6H", 6),
    _daily_total("streak-forge-8h", "Green Wall: Day One", "Drop 8 focused hours in a single day.", "8H", 8),
    _daily_total("overclocked-core-10h", "Overclocked Core", "Pass 10 coding hours in one day.", "10H", 10),
    _daily_total("merge-mountain-12h", "Merge Mountain Prime", "Ship 12 hours in a single day.", "12H", 12),
    _daily_total("night-shift-14h", "Night Shift", "Reach 14 hours in a single day.", "14H", 14),
    _daily_total("legendary-commit-16h", "Merge Overlord", "Survive a 16-hour coding day.", "16H", 16),
    _daily_total("boss-raid-20h", "Boss Raid", "Survive a 20-hour marathon day.", "20H", 20),
    # --- Weekend ---
    AchievementRule(
        "weekend-warrior-8h", "Weekend Warrior", "Hit 8 hours on a weekend day.", "WKND",
        CONTEXT_DAILY, KIND_TOTAL, threshold_seconds=8 * HOUR, weekend_only=True,
    ),
    AchievementRule(
        "weekend-overdrive-12h", "Weekend Overdrive", "Hit 12 hours on a weekend day.", "WK12",
        CONTEXT_DAILY, KIND_TOTAL, threshold_seconds=12 * HOUR, weekend_only=True,
    ),
    # --- Daily tool diversity ---
    AchievementRule(
        "solo-day-8h", "Solo Day", "Hit 8 daily hours using one editor.", "1APP",
        CONTEXT_DAILY, KIND_BREAKDOWN, threshold_seconds=8 * HOUR, breakdown="editors", min_count=1, max_count=1,
    ),
    AchievementRule(
        "switchblade-day-8h", "Switchblade Day", "Hit 8 daily hours while using 3+ editors.", "3APP",
        CONTEXT_DAILY, KIND_BREAKDOWN, threshold_seconds=8 * HOUR, breakdown="editors", min_count=3,
    ),
    AchievementRule(
        "mono-language-day-8h", "Mono Language", "Hit 8 daily hours using one language.", "1LNG",
        CONTEXT_DAILY, KIND_BREAKDOWN, threshold_seconds=8 * HOUR, breakdown="languages", min_count=1, max_count=1,
    ),
    AchievementRule(
        "language-juggler-day-8h", "Language Juggler", "Hit 8 daily hours across 4+ languages.", "4LNG",
        CONTEXT_DAILY, KIND_BREAKDOWN, threshold_seconds=8 * HOUR, breakdown="languages", min_count=4,
    ),
    AchievementRule(
        "deep-focus-day-8h", "Deep Focus", "Hit 8 daily hours while staying in one project.", "1PRJ",
        CONTEXT_DAILY, KIND_BREAKDOWN, threshold_seconds=8 * HOUR, breakdown="projects", min_count=1, max_count=1,
    ),
    # --- Weekly time ---
    _weekly_total("workweek-warrior-40h", "Workweek Warrior", "Hit 40 hours in one week.", "40W", 40),
    _weekly_total("ship-it-60h", "Ship It 60", "Hit 60 hours in one week.", "60W", 60),
    _weekly_total("green-wall-80h", "Green Wall Supreme", "Break the 80-hour weekly barrier.", "80W", 80),
    _weekly_total("graph-overflow-100h", "Graph Overflow", "Break 100 hours in one week.", "100W", 100),
    _weekly_total("matrix-120h", "Matrix 120", "Reach 120 weekly hours.", "120W", 120),
    # --- Weekly diversity ---
    AchievementRule(
        "mono-stack-80h", "Solo Stack Hero", "Hit 80 weekly hours using only one editor.", "SOLO",
        CONTEXT_WEEKLY, KIND_BREAKDOWN, threshold_seconds=80 * HOUR, breakdown="editors", min_count=1, max_count=1,
    ),
    AchievementRule(
        "mono-stack-100h", "Solo Stack Mythic", "Hit 100 weekly hours using one editor.", "SOLO+",
        CONTEXT_WEEKLY, KIND_BREAKDOWN, threshold_seconds=100 * HOUR, breakdown="editors", min_count=1, max_count=1,
    ),
    AchievementRule(
        "polyglot-stack-80h", "Polyglot Stack", "Hit 80 weekly hours with 3+ editors.", "POLY",
        CONTEXT_WEEKLY, KIND_BREAKDOWN, threshold_seconds=80 * HOUR, breakdown="editors", min_count=3,
    ),
    AchievementRule(
        "language-hydra-80h", "Language Hydra", "Hit 80 weekly hours across 5+ languages.", "LNG5",
        CONTEXT_WEEKLY, KIND_BREAKDOWN, threshold_seconds=80 * HOUR, breakdown="languages", min_count=5,
    ),
    AchievementRule(
        "language-spectrum-80h", "Language Spectrum", "Hit 80 weekly hours across 8+ languages.", "LNG8",
        CONTEXT_WEEKLY, KIND_BREAKDOWN, threshold_seconds=80 * HOUR, breakdown="languages", min_count=8,
    ),
    AchievementRule(
        "editor-arsenal-80h", "Editor Arsenal", "Hit 80 weekly hours while using 5+ editors.", "ED5",
        CONTEXT_WEEKLY, KIND_BREAKDOWN, threshold_seconds=80 * HOUR, breakdown="editors", min_count=5,
    ),
    AchievementRule(
        "project-monolith-80h", "Project Monolith", "Hit 80 weekly hours with one project dominating your time.",
        "MONO", CONTEXT_WEEKLY, KIND_DOMINANT, threshold_seconds=80 * HOUR, breakdown="projects", share=0.75,
    ),
    AchievementRule(
        "project-nomad-80h", "Project Nomad", "Hit 80 weekly hours across 6+ projects.", "PRJ6",
        CONTEXT_WEEKLY, KIND_BREAKDOWN, threshold_seconds=80 * HOUR, breakdown="projects", min_count=6,
    ),
    # --- Weekly consistency ---
    AchievementRule(
        "seven-sunrise-week", "Seven Sunrise", "Code every day in one week.", "7D",
        CONTEXT_WEEKLY, KIND_DAY_STREAK,
    ),
    AchievementRule(
        "iron-week-4h", "Iron Week", "Code at least 4 hours every day for a week.", "4HD",
        CONTEXT_WEEKLY, KIND_DAY_STREAK, day_threshold_seconds=4 * HOUR,
    ),
    AchievementRule(
        "marathon-pace-8h", "Marathon Pace", "Keep 8h/day average over a week.", "AVG8",
        CONTEXT_WEEKLY, KIND_AVERAGE, threshold_seconds=8 * HOUR,
    ),
    AchievementRule(
        "ultra-pace-10h", "Ultra Pace", "Keep 10h/day average over a week.", "AVG10",
        CONTEXT_WEEKLY, KIND_AVERAGE, threshold_seconds=10 * HOUR,
    ),
)

ACHIEVEMENTS_BY_ID: dict[str, AchievementRule] = {rule.id: rule for rule in ACHIEVEMENT_CATALOG}

DAILY_RULES: tuple[AchievementRule, ...] = tuple(r for r in ACHIEVEMENT_CATALOG if r.context == CONTEXT_DAILY)
WEEKLY_RULES: tuple[AchievementRule, ...] = tuple(r for r in ACHIEVEMENT_CATALOG if r.context == CONTEXT_WEEKLY)
