# services/eligibility.py - who may appear on a leaderboard, and under which name
from typing import Callable, Dict

from services.leaderboard_models import AccountStatus, Role, UserProfile

HIDDEN_STATUSES = {AccountStatus.BANNED, AccountStatus.INACTIVE}


def _admin_is_eligible(profile: UserProfile) -> bool:
    return True


def _standard_user_is_eligible(profile: UserProfile) -> bool:
    if not profile.nickname or not profile.nickname.strip():
        return False
    # Missing flag means opted in
    if profile.leaderboard_enabled is False:
        return False
    return profile.status not in HIDDEN_STATUSES


_ELIGIBILITY_RULES: Dict[Role, Callable[[UserProfile], bool]] = {
    Role.ADMIN: _admin_is_eligible,
    Role.STANDARD_USER: _standard_user_is_eligible,
}


def is_eligible(profile: UserProfile) -> bool:
    """Apply the eligibility rule registered for the profile's role."""
    return _ELIGIBILITY_RULES[profile.role](profile)


def resolve_display_name(profile: UserProfile) -> str:
    """Standard users are shown by nickname, admins by their account name."""
    if profile.role is Role.STANDARD_USER and profile.nickname and profile.nickname.strip():
        return profile.nickname.strip()
    return profile.display_name
