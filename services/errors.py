"""Errors raised by the record stores and the leaderboard engine."""


class LeaderboardError(Exception):
    """Base class for leaderboard failures."""


class AccessDenied(LeaderboardError):
    """The caller's query reaches beyond what the store lets them read.

    Recoverable: the engine retries once, scoped to the caller's own records.
    """


class NotFound(LeaderboardError):
    """The requested user or quiz has no data."""


class Unauthenticated(LeaderboardError):
    """No caller identity is available."""

    def __init__(self, message: str = "You must be logged in to view the leaderboard"):
        super().__init__(message)


class UpstreamFailure(LeaderboardError):
    """The store failed for a reason unrelated to permissions."""


class FallbackFailed(LeaderboardError):
    """The self-scoped retry failed after the broad fetch was refused."""

    def __init__(self, original: Exception):
        super().__init__(f"Leaderboard unavailable: {original}")
        self.original = original
