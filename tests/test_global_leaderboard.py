"""Global (cross-quiz) leaderboard aggregation."""

import pytest

from services.errors import Unauthenticated
from services.leaderboard_service import LeaderboardAggregator
from services.time_window import TimeFilter


@pytest.fixture
def population(make_profile, make_attempt):
    profiles = [
        make_profile("ace", nickname="Ace", display_name="Alice"),
        make_profile("bee", nickname="Bee"),
        make_profile("nonick", nickname=""),
        make_profile("optout", nickname="Hidden", leaderboard_enabled=False),
        make_profile("banned", nickname="Gone", status="banned"),
        make_profile("root", role="admin", display_name="Root Admin"),
        make_profile("idle_admin", role="admin"),
    ]
    attempts = [
        make_attempt("ace", pct=100, minutes=5, quiz_id="q1", score=10, days_ago=1),
        make_attempt("ace", pct=80, minutes=2, quiz_id="q1", score=8, days_ago=2),
        make_attempt("ace", pct=90, minutes=4, quiz_id="q2", score=9, days_ago=40),
        make_attempt("bee", pct=95, minutes=6, quiz_id="q1", score=19, max_score=20, days_ago=3),
        make_attempt("nonick", pct=100, minutes=1, days_ago=1),
        make_attempt("optout", pct=100, minutes=1, days_ago=1),
        make_attempt("banned", pct=100, minutes=1, days_ago=1),
        make_attempt("root", pct=60, minutes=10, quiz_id="q3", score=6, days_ago=400),
        make_attempt("ghost", pct=100, minutes=1, days_ago=1),
    ]
    return profiles, attempts


def test_only_eligible_users_with_attempts_are_listed(make_service, population):
    result = make_service(*population).get_global_leaderboard()
    ids = [e.id for e in result.leaderboard]
    assert ids == ["bee", "ace", "root"]
    assert result.stats.total_users == 3
    assert not result.degraded
    assert result.warning is None


def test_entry_aggregates(make_service, population):
    result = make_service(*population).get_global_leaderboard()
    ace = next(e for e in result.leaderboard if e.id == "ace")
    assert ace.display_name == "Ace"
    assert ace.total_quizzes == 3
    assert ace.average_score == 90.0
    assert ace.best_score == 100.0
    assert ace.total_score == 27
    assert ace.max_score == 30
    assert ace.total_completion_time == 11
    assert ace.average_completion_time == 4
    assert ace.last_quiz_date == population[1][0].date_taken
    assert ace.badges == ["First Quiz", "High Achiever", "Perfect Score", "Speed Demon"]

    root = next(e for e in result.leaderboard if e.id == "root")
    assert root.display_name == "Root Admin"


def test_stats_are_attempt_weighted(make_service, population):
    stats = make_service(*population).get_global_leaderboard().stats
    assert stats.total_quizzes == 5
    # (100 + 80 + 90 + 95 + 60) / 5 attempts, not the mean of user averages
    assert stats.average_score == 85.0
    assert stats.top_score == 100.0


def test_time_filter_narrows_attempts(make_service, population):
    result = make_service(*population).get_global_leaderboard(TimeFilter.WEEKLY)
    assert [e.id for e in result.leaderboard] == ["bee", "ace"]
    ace = result.leaderboard[1]
    assert ace.total_quizzes == 2
    assert ace.average_score == 90.0


def test_time_filter_is_passed_to_store(make_service, population, now):
    service = make_service(*population, fetch_limit=123)
    service.get_global_leaderboard(TimeFilter.MONTHLY)
    call = service.attempts.calls[0]
    assert call["limit"] == 123
    assert (now - call["since"]).days == 30


def test_ties_on_average_break_by_quiz_count(make_service, make_profile, make_attempt):
    profiles = [make_profile("one"), make_profile("two")]
    attempts = [
        make_attempt("one", pct=80),
        make_attempt("two", pct=80),
        make_attempt("two", pct=80),
    ]
    ranked = make_service(profiles, attempts).get_global_leaderboard().leaderboard
    assert [(e.id, e.rank) for e in ranked] == [("two", 1), ("one", 2)]


def test_zero_attempt_admin_is_not_listed(make_service, make_profile):
    result = make_service([make_profile("root", role="admin")], []).get_global_leaderboard()
    assert result.leaderboard == []
    assert result.stats.total_users == 0
    assert result.stats.average_score == 0


def test_requires_caller(make_service, population):
    with pytest.raises(Unauthenticated):
        make_service(*population, caller_id=None).get_global_leaderboard()


def test_idempotent_over_same_snapshot(make_service, population):
    service = make_service(*population)
    first = service.get_global_leaderboard()
    second = service.get_global_leaderboard()
    assert [(e.id, e.rank) for e in first.leaderboard] == [(e.id, e.rank) for e in second.leaderboard]
    assert first.stats == second.stats
    assert first.to_dict() == second.to_dict()


def test_top_performers_and_rank_lookup(make_service, population):
    service = make_service(*population)
    top = service.get_top_performers(2)
    assert [e.id for e in top.leaderboard] == ["bee", "ace"]
    assert top.stats.total_users == 3
    assert service.get_user_rank("ace") == 2
    assert service.get_user_rank("nonick") is None


def test_aggregator_can_run_on_plain_collections(population):
    profiles, attempts = population
    entries, stats = LeaderboardAggregator().aggregate(profiles, attempts)
    assert [e.rank for e in entries] == [1, 2, 3]
    assert stats.total_users == 3


def test_serialized_shape(make_service, population):
    payload = make_service(*population).get_global_leaderboard().to_dict()
    assert set(payload) == {"leaderboard", "stats", "degraded", "warning", "generatedAt"}
    row = payload["leaderboard"][0]
    assert row["displayName"] == "Bee"
    assert row["rank"] == 1
    assert row["lastQuizDate"].startswith("2025-06-12")
    assert payload["stats"] == {"totalUsers": 3, "totalQuizzes": 5, "averageScore": 85.0, "topScore": 100.0}


def test_nan_percentage_counts_as_zero(make_service, make_profile, make_attempt):
    attempts = [
        make_attempt("ace", pct=float("nan"), minutes=1, score=0),
        make_attempt("ace", pct=80, minutes=2),
    ]
    result = make_service([make_profile("ace")], attempts).get_global_leaderboard()
    ace = result.leaderboard[0]
    assert ace.best_score == 80
    assert ace.average_score == 40
    assert result.stats.average_score == 40
    assert result.stats.top_score == 80


def test_average_completion_time_rounds_half_up(make_service, make_profile, make_attempt):
    attempts = [
        make_attempt("ace", pct=50, minutes=2),
        make_attempt("ace", pct=60, minutes=3),
    ]
    ace = make_service([make_profile("ace")], attempts).get_global_leaderboard().leaderboard[0]
    assert ace.average_completion_time == 3
