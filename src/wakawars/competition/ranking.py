"""Leaderboard ranking. Pure: no I/O, no clock.

Users with status ``ok`` are ranked by total seconds, highest first; ties
keep their input order. ``delta_seconds`` is the gap to the leader, so it
is 0 for rank 1 and negative for everyone else. Any other status is listed
after the ranked block with no rank and a zero delta.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from wakawars.competition.schemas import LeaderboardEntry, LeaderboardResult, StatEntry

STATUS_ORDER: dict[str, int] = {
    "ok": 0,
    "private": 1,
    "not_found": 2,
    "error": 3,
}

DEFAULT_REWARD_TABLE: dict[int, int] = {1: 3, 2: 2, 3: 1}


def compute_leaderboard(
    stats: Sequence[StatEntry],
    self_user_id: int | None = None,
) -> LeaderboardResult:
    """Rank ``stats`` and pick out the viewer's own entry."""
    # sorted() is stable, so equal totals keep input order
    ranked = sorted((s for s in stats if s.status == "ok"), key=lambda s: -s.total_seconds)
    unranked = sorted(
        (s for s in stats if s.status != "ok"),
        key=lambda s: STATUS_ORDER.get(s.status, len(STATUS_ORDER)),
    )
    leader_seconds = ranked[0].total_seconds if ranked else 0.0

    entries: list[LeaderboardEntry] = []
    for position, stat in enumerate(ranked, start=1):
        entries.append(
            LeaderboardEntry(
                **stat.model_dump(),
                rank=position,
                delta_seconds=stat.total_seconds - leader_seconds,
                is_self=stat.user_id == self_user_id,
            )
        )
    for stat in unranked:
        entries.append(
            LeaderboardEntry(
                **stat.model_dump(),
                rank=None,
                delta_seconds=0.0,
                is_self=stat.user_id == self_user_id,
            )
        )

    self_entry = next((e for e in entries if e.is_self), None)
    return LeaderboardResult(entries=entries, self_entry=self_entry)


def rank_to_coins(rank: int | None, reward_table: Mapping[int, int] | None = None) -> int:
    """Coins for finishing at ``rank``; unranked and off-table ranks earn 0."""
    if rank is None:
        return 0
    table = DEFAULT_REWARD_TABLE if reward_table is None else reward_table
    return int(table.get(rank, 0))
