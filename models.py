from datetime import datetime, timezone

from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy

from services.leaderboard_models import AccountStatus, AttemptRecord, Role, UserProfile

db = SQLAlchemy()


class User(UserMixin, db.Model):
    # Stable external id (document key), not an autoincrement
    id = db.Column(db.String(128), primary_key=True)
    display_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    photo_url = db.Column(db.String(512), nullable=True)
    role = db.Column(db.String(16), nullable=False, default=Role.STANDARD_USER.value)
    status = db.Column(db.String(16), nullable=False, default=AccountStatus.ACTIVE.value)
    # Leaderboard opt-in fields
    nickname = db.Column(db.String(80), nullable=True)
    leaderboard_enabled = db.Column(db.Boolean, nullable=True)  # NULL counts as enabled

    def to_profile(self) -> UserProfile:
        return UserProfile(
            id=self.id,
            display_name=self.display_name,
            email=self.email,
            role=Role.parse(self.role),
            status=AccountStatus.parse(self.status),
            photo_url=self.photo_url,
            nickname=self.nickname,
            leaderboard_enabled=self.leaderboard_enabled,
        )


class QuizAttempt(db.Model):
    __tablename__ = "quiz_attempt"
    __table_args__ = (
        # Index for a user's own attempt history (self-scoped queries)
        db.Index("idx_attempt_user_date", "user_id", "date_taken"),
        # Index for per-quiz leaderboard queries
        db.Index("idx_attempt_quiz_date", "quiz_id", "date_taken"),
        db.Index("idx_attempt_date", "date_taken"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(128), db.ForeignKey("user.id"), nullable=False)
    quiz_id = db.Column(db.String(128), nullable=False)
    score = db.Column(db.Float, nullable=False, default=0)
    max_score = db.Column(db.Float, nullable=False, default=0)
    # 0-100; may be missing on legacy records
    percentage_score = db.Column(db.Float, nullable=True)
    # Elapsed minutes, fractional
    time_taken = db.Column(db.Float, nullable=True)
    # Use timezone-aware UTC timestamps to avoid deprecation warnings and ambiguity
    date_taken = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    def to_record(self) -> AttemptRecord:
        date_taken = self.date_taken
        if date_taken is not None and date_taken.tzinfo is None:
            # SQLite drops tzinfo on the way back
            date_taken = date_taken.replace(tzinfo=timezone.utc)
        return AttemptRecord(
            id=str(self.id),
            user_id=self.user_id,
            quiz_id=self.quiz_id,
            score=self.score or 0,
            max_score=self.max_score or 0,
            percentage_score=self.percentage_score,
            time_taken=self.time_taken,
            date_taken=date_taken,
        )
