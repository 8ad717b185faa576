# services/badges.py - achievement labels derived from a user's attempts in the active window
from typing import List, Sequence

from services.leaderboard_models import AttemptRecord, UserProfile

# (threshold, label) pairs; every threshold reached adds its label
VOLUME_BADGES = [
    (1, "First Quiz"),
    (5, "Quiz Explorer"),
    (10, "Quiz Enthusiast"),
    (25, "Quiz Master"),
    (50, "Quiz Legend"),
]
# Only the highest tier reached is awarded
AVERAGE_BADGES = [
    (95, "Perfectionist"),
    (85, "High Achiever"),
    (75, "Good Student"),
]
PERFECT_SCORE_BADGES = [
    (1, "Perfect Score"),
    (5, "Consistency King"),
    (10, "Flawless Performer"),
]
HIGH_SCORE_BADGES = [
    (10, "Top Performer"),
    (20, "Elite Scorer"),
]
HIGH_SCORE_THRESHOLD = 90
SPEED_DEMON_MINUTES = 120
# Attempt count only; there is no consecutive-day check behind this badge
WEEKLY_WARRIOR_QUIZZES = 7


def _valid_scores(attempts: Sequence[AttemptRecord]) -> List[float]:
    return [s for s in (a.percentage for a in attempts) if s >= 0]


def calculate_badges(profile: UserProfile, attempts: Sequence[AttemptRecord]) -> List[str]:
    """Return badge labels in a fixed order; empty when no attempt carries a usable score."""
    badges: List[str] = []
    scores = _valid_scores(attempts)
    if not scores:
        return badges

    total_quizzes = len(attempts)
    average = sum(scores) / len(scores)
    perfect = sum(1 for s in scores if s == 100)
    high = sum(1 for s in scores if s >= HIGH_SCORE_THRESHOLD)

    badges.extend(label for threshold, label in VOLUME_BADGES if total_quizzes >= threshold)

    for threshold, label in AVERAGE_BADGES:
        if average >= threshold:
            badges.append(label)
            break

    badges.extend(label for threshold, label in PERFECT_SCORE_BADGES if perfect >= threshold)
    badges.extend(label for threshold, label in HIGH_SCORE_BADGES if high >= threshold)

    times = [a.minutes for a in attempts if a.minutes > 0]
    if times and sum(times) / len(times) < SPEED_DEMON_MINUTES:
        badges.append("Speed Demon")

    if total_quizzes >= WEEKLY_WARRIOR_QUIZZES:
        badges.append("Weekly Warrior")

    return badges
