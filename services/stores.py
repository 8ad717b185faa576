# services/stores.py - read-only record store capabilities used by the leaderboard engine
"""
The engine only talks to two capabilities:

- ProfileStore: ``list_profiles()`` and ``get_profile(user_id)``
- AttemptStore: ``list_attempts(quiz_id=None, user_id=None, since=None, limit=None)``

Both may raise ``AccessDenied`` when a query reaches beyond the caller's
read scope, and ``UpstreamFailure`` for any other store error. The SQL
implementations below sit on the Flask-SQLAlchemy models.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from models import QuizAttempt, User, db
from services.errors import AccessDenied, UpstreamFailure
from services.leaderboard_models import AttemptRecord, UserProfile

logger = logging.getLogger(__name__)

READ_SCOPE_ALL = "all"
READ_SCOPE_SELF = "self"


class ProfileStore:
    def list_profiles(self) -> List[UserProfile]:
        raise NotImplementedError

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        raise NotImplementedError


class AttemptStore:
    def list_attempts(
        self,
        quiz_id: Optional[str] = None,
        user_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[AttemptRecord]:
        raise NotImplementedError


class SqlProfileStore(ProfileStore):
    def __init__(self, app=None):
        # Keep a handle on the real app so lookups from worker threads can push a context
        self._app = app if app is not None else current_app._get_current_object()

    def list_profiles(self) -> List[UserProfile]:
        try:
            return [u.to_profile() for u in User.query.order_by(User.id).all()]
        except SQLAlchemyError as e:
            logger.error("profile_list_failed error=%s", e, exc_info=True)
            raise UpstreamFailure("Could not load user profiles") from e

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        if has_app_context():
            return self._get_profile(user_id)
        with self._app.app_context():
            return self._get_profile(user_id)

    def _get_profile(self, user_id: str) -> Optional[UserProfile]:
        try:
            user = db.session.get(User, user_id)
        except SQLAlchemyError as e:
            logger.error("profile_lookup_failed user_id=%s error=%s", user_id, e, exc_info=True)
            raise UpstreamFailure(f"Could not load profile {user_id}") from e
        return user.to_profile() if user is not None else None


class SqlAttemptStore(AttemptStore):
    """
    Attempt store with a read scope emulating document-store security rules.

    With ``read_scope="self"`` a non-admin viewer may only list their own
    attempts; anything broader raises ``AccessDenied``.
    """

    def __init__(self, viewer: Optional[UserProfile] = None, read_scope: str = READ_SCOPE_ALL):
        if read_scope not in (READ_SCOPE_ALL, READ_SCOPE_SELF):
            raise ValueError(f"Unknown attempt read scope: {read_scope!r}")
        self.viewer = viewer
        self.read_scope = read_scope

    def _check_scope(self, user_id: Optional[str]) -> None:
        if self.read_scope == READ_SCOPE_ALL:
            return
        if self.viewer is not None and self.viewer.is_admin:
            return
        if self.viewer is None or user_id != self.viewer.id:
            raise AccessDenied("Attempts of other users are not readable by this caller")

    def list_attempts(
        self,
        quiz_id: Optional[str] = None,
        user_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[AttemptRecord]:
        self._check_scope(user_id)

        query = QuizAttempt.query
        if quiz_id is not None:
            query = query.filter(QuizAttempt.quiz_id == quiz_id)
        if user_id is not None:
            query = query.filter(QuizAttempt.user_id == user_id)
        if since is not None:
            if since.tzinfo is not None:
                since = since.astimezone(timezone.utc)
            query = query.filter(QuizAttempt.date_taken >= since)
        # Newest first so the limit drops the oldest attempts
        query = query.order_by(QuizAttempt.date_taken.desc(), QuizAttempt.id.desc())
        if limit:
            query = query.limit(limit)
        try:
            rows = query.all()
        except SQLAlchemyError as e:
            logger.error(
                "attempt_list_failed quiz_id=%s user_id=%s error=%s", quiz_id, user_id, e, exc_info=True
            )
            raise UpstreamFailure("Could not load quiz attempts") from e
        # Hand back in arrival order: oldest first
        return [row.to_record() for row in reversed(rows)]
