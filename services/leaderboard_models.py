# services/leaderboard_models.py - plain data types consumed and produced by the leaderboard engine
"""
Snapshot types read from the record store (UserProfile, AttemptRecord) and
the view models the engine hands back to its callers. Everything here is
request-scoped: built from one fetched snapshot, never persisted.
"""

import enum
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


class Role(enum.Enum):
    ADMIN = "admin"
    STANDARD_USER = "user"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Role":
        # Anything that is not explicitly an admin goes through the standard gates
        if value == cls.ADMIN.value:
            return cls.ADMIN
        return cls.STANDARD_USER


class AccountStatus(enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    WARNED = "warned"
    BANNED = "banned"

    @classmethod
    def parse(cls, value: Optional[str]) -> "AccountStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.ACTIVE


@dataclass(frozen=True)
class UserProfile:
    id: str
    display_name: str
    email: str = ""
    role: Role = Role.STANDARD_USER
    status: AccountStatus = AccountStatus.ACTIVE
    photo_url: Optional[str] = None
    nickname: Optional[str] = None
    leaderboard_enabled: Optional[bool] = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def _number_or_zero(value: Optional[float]) -> float:
    # Missing and NaN values both count as 0
    if value is None or math.isnan(value):
        return 0
    return value


@dataclass(frozen=True)
class AttemptRecord:
    """One completed quiz submission."""
    id: str
    user_id: str
    quiz_id: str
    score: float = 0
    max_score: float = 0
    percentage_score: Optional[float] = None
    time_taken: Optional[float] = None  # minutes
    date_taken: Optional[datetime] = None

    @property
    def percentage(self) -> float:
        return _number_or_zero(self.percentage_score)

    @property
    def minutes(self) -> float:
        return _number_or_zero(self.time_taken)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class LeaderboardEntry:
    """Global leaderboard row: one eligible user aggregated across every quiz."""
    id: str
    display_name: str
    email: str
    photo_url: Optional[str]
    total_quizzes: int
    average_score: float
    total_score: float
    max_score: float
    best_score: float
    total_completion_time: float
    average_completion_time: float
    badges: List[str]
    last_quiz_date: Optional[datetime] = None
    rank: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "photoURL": self.photo_url,
            "email": self.email,
            "totalQuizzes": self.total_quizzes,
            "averageScore": self.average_score,
            "totalScore": self.total_score,
            "maxScore": self.max_score,
            "bestScore": self.best_score,
            "totalCompletionTime": self.total_completion_time,
            "averageCompletionTime": self.average_completion_time,
            "rank": self.rank,
            "badges": list(self.badges),
            "lastQuizDate": _iso(self.last_quiz_date),
        }


@dataclass(frozen=True)
class QuizLeaderboardEntry:
    """Per-quiz row: one attempt of one eligible user."""
    id: str
    attempt_id: str
    display_name: str
    email: str
    photo_url: Optional[str]
    score: float
    percentage_score: float
    time_taken: float
    attempt_number: int
    is_best_attempt: bool
    date_taken: Optional[datetime] = None
    # Only best attempts are ranked
    rank: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "attemptId": self.attempt_id,
            "displayName": self.display_name,
            "photoURL": self.photo_url,
            "email": self.email,
            "score": self.score,
            "percentageScore": self.percentage_score,
            "timeTaken": self.time_taken,
            "rank": self.rank,
            "attemptNumber": self.attempt_number,
            "isBestAttempt": self.is_best_attempt,
            "dateTaken": _iso(self.date_taken),
        }


@dataclass(frozen=True)
class LeaderboardStats:
    total_users: int = 0
    total_quizzes: int = 0
    average_score: float = 0
    top_score: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalUsers": self.total_users,
            "totalQuizzes": self.total_quizzes,
            "averageScore": self.average_score,
            "topScore": self.top_score,
        }


@dataclass(frozen=True)
class QuizLeaderboardStats:
    total_attempts: int = 0
    total_users: int = 0
    average_score: float = 0
    best_score: float = 0
    fastest_time: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalAttempts": self.total_attempts,
            "totalUsers": self.total_users,
            "averageScore": self.average_score,
            "bestScore": self.best_score,
            # "no data" is reported as 0 to API callers
            "fastestTime": self.fastest_time if self.fastest_time is not None else 0,
        }


@dataclass(frozen=True)
class LeaderboardResult:
    leaderboard: List[LeaderboardEntry]
    stats: LeaderboardStats
    generated_at: datetime
    degraded: bool = False
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "leaderboard": [entry.to_dict() for entry in self.leaderboard],
            "stats": self.stats.to_dict(),
            "degraded": self.degraded,
            "warning": self.warning,
            "generatedAt": self.generated_at.isoformat(),
        }


@dataclass(frozen=True)
class QuizLeaderboardResult:
    quiz_id: str
    leaderboard: List[QuizLeaderboardEntry]
    stats: QuizLeaderboardStats
    generated_at: datetime
    attempts: List[QuizLeaderboardEntry] = field(default_factory=list)
    degraded: bool = False
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quizId": self.quiz_id,
            "leaderboard": [entry.to_dict() for entry in self.leaderboard],
            "attempts": [entry.to_dict() for entry in self.attempts],
            "stats": self.stats.to_dict(),
            "degraded": self.degraded,
            "warning": self.warning,
            "generatedAt": self.generated_at.isoformat(),
        }
