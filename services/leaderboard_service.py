# services/leaderboard_service.py - global and per-quiz leaderboards computed on demand
"""
Leaderboard engine.

Each call fetches a fresh snapshot from the injected stores, aggregates it
and returns view models; nothing is cached or persisted between calls.
When the broad fetch is refused the call is retried once against the
caller's own records (see ``DegradedAccessFallback``) and the result is
flagged as degraded.
"""

import enum
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from services.badges import calculate_badges
from services.eligibility import is_eligible, resolve_display_name
from services.errors import (
    AccessDenied,
    FallbackFailed,
    LeaderboardError,
    NotFound,
    Unauthenticated,
    UpstreamFailure,
)
from services.leaderboard_models import (
    AttemptRecord,
    LeaderboardEntry,
    LeaderboardResult,
    LeaderboardStats,
    QuizLeaderboardEntry,
    QuizLeaderboardResult,
    QuizLeaderboardStats,
    UserProfile,
)
from services.ranking import (
    assign_ranks,
    global_sort_key,
    group_by_user,
    quiz_sort_key,
    select_best_attempt,
)
from services.stores import AttemptStore, ProfileStore
from services.time_window import TimeFilter, as_utc, filter_attempts, resolve_cutoff

logger = logging.getLogger(__name__)

R = TypeVar("R")

DEFAULT_FETCH_LIMIT = 500
DEFAULT_QUIZ_LIMIT = 50
DEFAULT_TOP_PERFORMERS = 10


def _round2(value: float) -> float:
    return round(value, 2)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccessMode(enum.Enum):
    FULL = "full"
    SELF_ONLY = "self_only"


class DegradedAccessFallback:
    """
    FULL -> SELF_ONLY state machine around one leaderboard computation.

    ``compute(mode)`` is first run in FULL mode. If the store refuses the
    broad fetch (``AccessDenied``) or fails (``UpstreamFailure``) the machine
    moves to SELF_ONLY and runs ``compute`` exactly once more. A failure in
    SELF_ONLY mode is final and surfaces as ``FallbackFailed``.
    """

    def __init__(self, view: str, caller_id: str):
        self.view = view
        self.caller_id = caller_id
        self.mode = AccessMode.FULL
        self.reason: Optional[LeaderboardError] = None

    @property
    def degraded(self) -> bool:
        return self.mode is AccessMode.SELF_ONLY

    @property
    def warning(self) -> Optional[str]:
        if not self.degraded:
            return None
        if isinstance(self.reason, AccessDenied):
            return "Only your own results are visible to you; ranks cover you alone, not every user."
        return "The full leaderboard is temporarily unavailable; ranks cover your own results only."

    def run(self, compute: Callable[[AccessMode], R]) -> R:
        if self.mode is not AccessMode.FULL:
            raise RuntimeError("fallback machine already used")
        try:
            return compute(AccessMode.FULL)
        except (AccessDenied, UpstreamFailure) as err:
            self.mode = AccessMode.SELF_ONLY
            self.reason = err
            logger.warning(
                "leaderboard_fallback view=%s caller=%s reason=%s error=%s",
                self.view, self.caller_id, type(err).__name__, err,
            )
        try:
            return compute(AccessMode.SELF_ONLY)
        except Unauthenticated:
            raise
        except LeaderboardError as fallback_err:
            logger.error(
                "leaderboard_fallback_failed view=%s caller=%s error=%s",
                self.view, self.caller_id, fallback_err,
            )
            raise FallbackFailed(self.reason) from fallback_err


class LeaderboardAggregator:
    """Builds the global cross-quiz leaderboard from one snapshot."""

    def aggregate(
        self,
        profiles: Iterable[UserProfile],
        attempts: Iterable[AttemptRecord],
        cutoff: Optional[datetime] = None,
    ) -> Tuple[List[LeaderboardEntry], LeaderboardStats]:
        profiles_by_id = {p.id: p for p in profiles}
        groups = group_by_user(filter_attempts(attempts, cutoff))

        candidates: List[LeaderboardEntry] = []
        score_sum = 0.0
        score_count = 0
        top_score = 0.0
        for user_id, user_attempts in groups.items():
            profile = profiles_by_id.get(user_id)
            if profile is None or not is_eligible(profile):
                continue
            scores = [a.percentage for a in user_attempts]
            entry = self._build_entry(profile, user_attempts, scores)
            candidates.append(entry)
            score_sum += sum(scores)
            score_count += len(user_attempts)
            top_score = max(top_score, entry.best_score)

        ranked = assign_ranks(candidates, global_sort_key)
        stats = LeaderboardStats(
            total_users=len(ranked),
            total_quizzes=sum(e.total_quizzes for e in ranked),
            # Weighted by attempts, unlike each entry's own average
            average_score=_round2(score_sum / score_count) if score_count else 0,
            top_score=_round2(top_score),
        )
        return ranked, stats

    def _build_entry(
        self, profile: UserProfile, attempts: Sequence[AttemptRecord], scores: Sequence[float]
    ) -> LeaderboardEntry:
        total_quizzes = len(attempts)
        best, _ = select_best_attempt(attempts)
        total_time = sum(a.minutes for a in attempts)
        dates = [a.date_taken for a in attempts if a.date_taken is not None]
        return LeaderboardEntry(
            id=profile.id,
            display_name=resolve_display_name(profile),
            email=profile.email,
            photo_url=profile.photo_url,
            total_quizzes=total_quizzes,
            average_score=_round2(sum(scores) / len(scores)),
            total_score=sum(a.score or 0 for a in attempts),
            max_score=sum(a.max_score or 0 for a in attempts),
            best_score=_round2(best.percentage),
            total_completion_time=total_time,
            average_completion_time=math.floor(total_time / total_quizzes + 0.5),
            badges=calculate_badges(profile, attempts),
            last_quiz_date=max(dates) if dates else None,
        )


class QuizLeaderboardAggregator:
    """Builds the per-quiz leaderboard: every attempt stamped, best attempt per user ranked."""

    def aggregate(
        self,
        attempts: Iterable[AttemptRecord],
        profiles_by_id: Dict[str, UserProfile],
        cutoff: Optional[datetime] = None,
        limit: int = DEFAULT_QUIZ_LIMIT,
    ) -> Tuple[List[QuizLeaderboardEntry], List[QuizLeaderboardEntry], QuizLeaderboardStats]:
        groups = group_by_user(filter_attempts(attempts, cutoff))

        stamped: List[QuizLeaderboardEntry] = []
        best_entries: List[QuizLeaderboardEntry] = []
        for user_id, user_attempts in groups.items():
            profile = profiles_by_id.get(user_id)
            # Ineligible users are dropped before any of their attempts is emitted
            if profile is None or not is_eligible(profile):
                continue
            entries = stamp_attempts(profile, user_attempts)
            stamped.extend(entries)
            best_entries.extend(e for e in entries if e.is_best_attempt)

        ranked = assign_ranks(best_entries, quiz_sort_key)
        ranks = {e.id: e.rank for e in ranked}
        stamped = [replace(e, rank=ranks[e.id]) if e.is_best_attempt else e for e in stamped]

        leaderboard = ranked[:limit] if limit and limit > 0 else ranked
        return leaderboard, stamped, self._stats(ranked, len(stamped))

    def _stats(self, best_entries: Sequence[QuizLeaderboardEntry], total_attempts: int) -> QuizLeaderboardStats:
        if not best_entries:
            return QuizLeaderboardStats(total_attempts=total_attempts)
        scores = [e.percentage_score for e in best_entries]
        times = [e.time_taken for e in best_entries if e.time_taken > 0]
        return QuizLeaderboardStats(
            total_attempts=total_attempts,
            total_users=len(best_entries),
            average_score=_round2(sum(scores) / len(scores)),
            best_score=_round2(max(scores)),
            fastest_time=min(times) if times else None,
        )


def stamp_attempts(profile: UserProfile, attempts: Sequence[AttemptRecord]) -> List[QuizLeaderboardEntry]:
    """Turn one user's attempts (in arrival order) into numbered entries with the best one flagged."""
    _, flags = select_best_attempt(attempts)
    display_name = resolve_display_name(profile)
    return [
        QuizLeaderboardEntry(
            id=profile.id,
            attempt_id=attempt.id,
            display_name=display_name,
            email=profile.email,
            photo_url=profile.photo_url,
            score=attempt.score or 0,
            percentage_score=attempt.percentage,
            time_taken=attempt.minutes,
            attempt_number=number,
            is_best_attempt=is_best,
            date_taken=attempt.date_taken,
        )
        for number, (attempt, is_best) in enumerate(zip(attempts, flags), start=1)
    ]


class LeaderboardService:
    """
    Public entry point for the leaderboard views.

    Stores and caller identity are injected per instance; the service keeps
    no state between calls, so one instance per request is the usual shape.
    """

    def __init__(
        self,
        profile_store: ProfileStore,
        attempt_store: AttemptStore,
        caller_id: Optional[str],
        fetch_limit: int = DEFAULT_FETCH_LIMIT,
        profile_workers: int = 4,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.profiles = profile_store
        self.attempts = attempt_store
        self.caller_id = caller_id
        self.fetch_limit = fetch_limit
        self.profile_workers = max(1, profile_workers)
        self.clock = clock
        self.global_aggregator = LeaderboardAggregator()
        self.quiz_aggregator = QuizLeaderboardAggregator()

    def _require_caller(self) -> str:
        if not self.caller_id:
            raise Unauthenticated()
        return self.caller_id

    def _load_profiles(self, user_ids: Iterable[str]) -> Dict[str, UserProfile]:
        """Fetch profiles for ``user_ids`` (in parallel when allowed) and join them by id."""
        ids = list(user_ids)
        if self.profile_workers == 1 or len(ids) <= 1:
            found = [self.profiles.get_profile(uid) for uid in ids]
        else:
            # Leaving the with-block waits for every lookup before aggregation starts
            with ThreadPoolExecutor(max_workers=min(self.profile_workers, len(ids))) as pool:
                found = list(pool.map(self.profiles.get_profile, ids))
        return {uid: profile for uid, profile in zip(ids, found) if profile is not None}

    # ---- global view ----

    def get_global_leaderboard(self, time_filter: TimeFilter = TimeFilter.ALL_TIME) -> LeaderboardResult:
        caller_id = self._require_caller()
        now = self.clock()
        cutoff = resolve_cutoff(time_filter, now)

        def compute(mode: AccessMode):
            try:
                if mode is AccessMode.FULL:
                    profiles = self.profiles.list_profiles()
                    attempts = self.attempts.list_attempts(since=cutoff, limit=self.fetch_limit)
                else:
                    profiles = list(self._load_profiles([caller_id]).values())
                    attempts = self.attempts.list_attempts(
                        user_id=caller_id, since=cutoff, limit=self.fetch_limit
                    )
            except NotFound:
                return [], LeaderboardStats()
            return self.global_aggregator.aggregate(profiles, attempts, cutoff)

        fallback = DegradedAccessFallback("global", caller_id)
        leaderboard, stats = fallback.run(compute)
        logger.info(
            "global_leaderboard_built filter=%s users=%s attempts=%s degraded=%s",
            time_filter.value, stats.total_users, stats.total_quizzes, fallback.degraded,
        )
        return LeaderboardResult(
            leaderboard=leaderboard,
            stats=stats,
            generated_at=now,
            degraded=fallback.degraded,
            warning=fallback.warning,
        )

    def get_top_performers(self, limit: int = DEFAULT_TOP_PERFORMERS) -> LeaderboardResult:
        result = self.get_global_leaderboard(TimeFilter.ALL_TIME)
        return replace(result, leaderboard=result.leaderboard[: max(0, limit)])

    def get_user_rank(self, user_id: str) -> Optional[int]:
        result = self.get_global_leaderboard(TimeFilter.ALL_TIME)
        if result.degraded:
            # A rank among the caller's own records says nothing about the others
            return None
        for entry in result.leaderboard:
            if entry.id == user_id:
                return entry.rank
        return None

    # ---- per-quiz view ----

    def get_quiz_leaderboard(
        self,
        quiz_id: str,
        limit: int = DEFAULT_QUIZ_LIMIT,
        time_filter: TimeFilter = TimeFilter.ALL_TIME,
    ) -> QuizLeaderboardResult:
        caller_id = self._require_caller()
        now = self.clock()
        cutoff = resolve_cutoff(time_filter, now)

        def compute(mode: AccessMode):
            scope = None if mode is AccessMode.FULL else caller_id
            try:
                attempts = filter_attempts(
                    self.attempts.list_attempts(
                        quiz_id=quiz_id, user_id=scope, since=cutoff, limit=self.fetch_limit
                    ),
                    cutoff,
                )
                profiles = self._load_profiles(group_by_user(attempts).keys())
            except NotFound:
                return [], [], QuizLeaderboardStats()
            return self.quiz_aggregator.aggregate(attempts, profiles, limit=limit)

        fallback = DegradedAccessFallback(f"quiz:{quiz_id}", caller_id)
        leaderboard, attempts, stats = fallback.run(compute)
        logger.info(
            "quiz_leaderboard_built quiz_id=%s filter=%s users=%s attempts=%s degraded=%s",
            quiz_id, time_filter.value, stats.total_users, stats.total_attempts, fallback.degraded,
        )
        return QuizLeaderboardResult(
            quiz_id=quiz_id,
            leaderboard=leaderboard,
            attempts=attempts,
            stats=stats,
            generated_at=now,
            degraded=fallback.degraded,
            warning=fallback.warning,
        )

    def get_user_quiz_rank(self, quiz_id: str, user_id: str) -> Optional[int]:
        # Unbounded so users past the display limit still get their rank
        result = self.get_quiz_leaderboard(quiz_id, limit=0)
        if result.degraded:
            return None
        for entry in result.leaderboard:
            if entry.id == user_id:
                return entry.rank
        return None

    def get_user_attempts(
        self, quiz_id: str, user_id: str, time_filter: TimeFilter = TimeFilter.ALL_TIME
    ) -> List[QuizLeaderboardEntry]:
        """
        Every attempt ``user_id`` made at ``quiz_id``, most recent first.

        ``attempt_number`` counts chronologically (1 = oldest). Whether the
        caller may read another user's attempts is decided by the store or
        the session layer, not here.
        """
        self._require_caller()
        cutoff = resolve_cutoff(time_filter, self.clock())
        try:
            profile = self.profiles.get_profile(user_id)
            if profile is None or not is_eligible(profile):
                return []
            attempts = filter_attempts(
                self.attempts.list_attempts(
                    quiz_id=quiz_id, user_id=user_id, since=cutoff, limit=self.fetch_limit
                ),
                cutoff,
            )
        except NotFound:
            return []
        if not attempts:
            return []

        floor = datetime.min.replace(tzinfo=timezone.utc)
        chronological = sorted(
            attempts, key=lambda a: as_utc(a.date_taken) if a.date_taken is not None else floor
        )
        return list(reversed(stamp_attempts(profile, chronological)))
