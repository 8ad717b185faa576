import pytest

from services.eligibility import is_eligible, resolve_display_name
from services.leaderboard_models import Role


def test_standard_user_with_nickname_is_eligible(make_profile):
    assert is_eligible(make_profile("ace", nickname="Ace"))


@pytest.mark.parametrize("nickname", ["", "   "])
def test_blank_nickname_is_not_eligible(make_profile, nickname):
    assert not is_eligible(make_profile("bob", nickname=nickname))


def test_opted_out_user_is_not_eligible(make_profile):
    assert not is_eligible(make_profile("ace", nickname="Ace", leaderboard_enabled=False))


def test_missing_opt_in_flag_counts_as_enabled(make_profile):
    assert is_eligible(make_profile("ace", nickname="Ace", leaderboard_enabled=None))
    assert is_eligible(make_profile("ace", nickname="Ace", leaderboard_enabled=True))


@pytest.mark.parametrize("status, expected", [
    ("active", True),
    ("warned", True),
    ("banned", False),
    ("inactive", False),
])
def test_account_status_gate(make_profile, status, expected):
    assert is_eligible(make_profile("ace", nickname="Ace", status=status)) is expected


def test_admin_bypasses_every_gate(make_profile):
    admin = make_profile("root", role="admin", status="banned", leaderboard_enabled=False)
    assert admin.role is Role.ADMIN
    assert admin.nickname is None
    assert is_eligible(admin)


def test_unknown_role_goes_through_standard_gates(make_profile):
    profile = make_profile("mod", nickname="", role="moderator")
    assert profile.role is Role.STANDARD_USER
    assert not is_eligible(profile)


def test_display_name_resolution(make_profile):
    assert resolve_display_name(make_profile("ace", nickname="Ace", display_name="Alice A.")) == "Ace"
    admin = make_profile("root", role="admin", nickname="Boss", display_name="Root Admin")
    assert resolve_display_name(admin) == "Root Admin"
