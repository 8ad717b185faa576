# services/ranking.py - grouping, best-attempt selection and dense rank assignment
"""
All ordering in the leaderboard goes through ``sorted`` with a key function.
``sorted`` is stable, so candidates the key cannot tell apart keep their
arrival order and re-running the same snapshot yields the same ranks.
"""

from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Sequence, Tuple, TypeVar

from services.leaderboard_models import AttemptRecord, LeaderboardEntry, QuizLeaderboardEntry

T = TypeVar("T")
SortKey = Callable[[T], Tuple]


def group_by_user(attempts: Iterable[AttemptRecord]) -> Dict[str, List[AttemptRecord]]:
    """Partition attempts by owner, keeping each user's attempts in arrival order."""
    groups: Dict[str, List[AttemptRecord]] = {}
    for attempt in attempts:
        groups.setdefault(attempt.user_id, []).append(attempt)
    return groups


def attempt_sort_key(attempt: AttemptRecord) -> Tuple[float, float]:
    # Higher percentage first, then faster
    return (-attempt.percentage, attempt.minutes)


def order_attempts(attempts: Sequence[AttemptRecord]) -> List[AttemptRecord]:
    return sorted(attempts, key=attempt_sort_key)


def select_best_attempt(attempts: Sequence[AttemptRecord]) -> Tuple[AttemptRecord, List[bool]]:
    """
    Pick the best attempt of a non-empty list.

    Returns the best record plus an ``is_best`` flag for every input position;
    exactly one flag is True even when records compare equal.
    """
    if not attempts:
        raise ValueError("select_best_attempt needs at least one attempt")
    best_index = min(range(len(attempts)), key=lambda i: attempt_sort_key(attempts[i]))
    flags = [i == best_index for i in range(len(attempts))]
    return attempts[best_index], flags


def global_sort_key(entry: LeaderboardEntry) -> Tuple[float, int]:
    return (-entry.average_score, -entry.total_quizzes)


def quiz_sort_key(entry: QuizLeaderboardEntry) -> Tuple[float, float]:
    return (-entry.percentage_score, entry.time_taken)


def assign_ranks(entries: Iterable[T], key: SortKey) -> List[T]:
    """Sort ``entries`` by ``key`` and return copies ranked 1..N."""
    ordered = sorted(entries, key=key)
    return [replace(entry, rank=position) for position, entry in enumerate(ordered, start=1)]
