"""Shared fixtures: in-memory record stores and record factories."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from services.errors import AccessDenied, UpstreamFailure
from services.leaderboard_models import AccountStatus, AttemptRecord, Role, UserProfile
from services.leaderboard_service import LeaderboardService
from services.stores import AttemptStore, ProfileStore

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


class FakeProfileStore(ProfileStore):
    def __init__(self, profiles, deny_list=False):
        self._profiles = {p.id: p for p in profiles}
        self.deny_list = deny_list
        self.lookups = []

    def list_profiles(self):
        if self.deny_list:
            raise AccessDenied("profiles are not listable")
        return list(self._profiles.values())

    def get_profile(self, user_id):
        self.lookups.append(user_id)
        return self._profiles.get(user_id)


class FakeAttemptStore(AttemptStore):
    """
    ``self_only_for``: deny any query not scoped to that user id.
    ``broken``: raise UpstreamFailure on broad queries; ``broken="all"`` on every query.
    """

    def __init__(self, attempts, self_only_for=None, broken=None):
        self._attempts = list(attempts)
        self.self_only_for = self_only_for
        self.broken = broken
        self.calls = []

    def list_attempts(self, quiz_id=None, user_id=None, since=None, limit=None):
        self.calls.append({"quiz_id": quiz_id, "user_id": user_id, "since": since, "limit": limit})
        if self.broken == "all" or (self.broken and user_id is None):
            raise UpstreamFailure("store offline")
        if self.self_only_for is not None and user_id != self.self_only_for:
            raise AccessDenied("broad attempt queries are not allowed")
        rows = [
            a
            for a in self._attempts
            if (quiz_id is None or a.quiz_id == quiz_id)
            and (user_id is None or a.user_id == user_id)
            and (since is None or (a.date_taken is not None and a.date_taken >= since))
        ]
        # The tail survives the limit, as the newest rows do in the SQL store
        return rows[-limit:] if limit else rows


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_profile():
    def _make(user_id, nickname=None, role="user", status="active", leaderboard_enabled=None, **kw):
        if nickname is None and role == "user":
            nickname = user_id.capitalize()
        return UserProfile(
            id=user_id,
            display_name=kw.pop("display_name", f"{user_id} account"),
            email=kw.pop("email", f"{user_id}@example.com"),
            role=Role.parse(role),
            status=AccountStatus.parse(status),
            nickname=nickname,
            leaderboard_enabled=leaderboard_enabled,
            **kw,
        )

    return _make


@pytest.fixture
def make_attempt():
    ids = itertools.count(1)

    def _make(user_id, pct=None, minutes=None, quiz_id="q1", days_ago=1, score=None, max_score=10):
        if score is None:
            score = (pct or 0) / 100 * max_score
        return AttemptRecord(
            id=f"a{next(ids)}",
            user_id=user_id,
            quiz_id=quiz_id,
            score=score,
            max_score=max_score,
            percentage_score=pct,
            time_taken=minutes,
            date_taken=NOW - timedelta(days=days_ago) if days_ago is not None else None,
        )

    return _make


@pytest.fixture
def make_service():
    def _make(profiles, attempts, caller_id="admin", profile_kwargs=None, attempt_kwargs=None, **kw):
        profile_store = FakeProfileStore(profiles, **(profile_kwargs or {}))
        attempt_store = FakeAttemptStore(attempts, **(attempt_kwargs or {}))
        kw.setdefault("clock", lambda: NOW)
        service = LeaderboardService(profile_store, attempt_store, caller_id, **kw)
        return service

    return _make
