# routes/leaderboard_routes.py - JSON endpoints over the leaderboard engine
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from services.errors import AccessDenied, FallbackFailed, Unauthenticated, UpstreamFailure
from services.leaderboard_service import LeaderboardService
from services.stores import SqlAttemptStore, SqlProfileStore
from services.time_window import parse_time_filter

leaderboard_bp = Blueprint("leaderboard", __name__, url_prefix="/api")


def _caller_profile():
    if not current_user.is_authenticated:
        return None
    return current_user.to_profile()


def _build_service() -> LeaderboardService:
    caller = _caller_profile()
    cfg = current_app.config
    return LeaderboardService(
        profile_store=SqlProfileStore(),
        attempt_store=SqlAttemptStore(viewer=caller, read_scope=cfg["ATTEMPT_READ_SCOPE"]),
        caller_id=caller.id if caller else None,
        fetch_limit=cfg["LEADERBOARD_FETCH_LIMIT"],
        profile_workers=cfg["PROFILE_LOOKUP_WORKERS"],
    )


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer")


@leaderboard_bp.errorhandler(ValueError)
def _bad_request(e):
    return jsonify(error=str(e)), 400


@leaderboard_bp.errorhandler(Unauthenticated)
def _unauthenticated(e):
    return jsonify(error=str(e)), 401


@leaderboard_bp.errorhandler(AccessDenied)
def _forbidden(e):
    current_app.logger.warning("leaderboard_forbidden user=%s error=%s", current_user.get_id(), e)
    return jsonify(error=str(e)), 403


@leaderboard_bp.errorhandler(UpstreamFailure)
@leaderboard_bp.errorhandler(FallbackFailed)
def _unavailable(e):
    current_app.logger.error("leaderboard_unavailable error=%s", e)
    return jsonify(error="Leaderboard is temporarily unavailable. Please try again later."), 503


@leaderboard_bp.route("/leaderboard")
@login_required
def global_leaderboard():
    time_filter = parse_time_filter(request.args.get("timeFilter"))
    result = _build_service().get_global_leaderboard(time_filter)
    return jsonify(result.to_dict())


@leaderboard_bp.route("/leaderboard/top")
@login_required
def top_performers():
    limit = _int_arg("limit", current_app.config["TOP_PERFORMERS_LIMIT"])
    result = _build_service().get_top_performers(limit)
    return jsonify(result.to_dict())


@leaderboard_bp.route("/leaderboard/rank/<user_id>")
@login_required
def user_rank(user_id):
    rank = _build_service().get_user_rank(user_id)
    return jsonify(userId=user_id, rank=rank)


@leaderboard_bp.route("/quizzes/<quiz_id>/leaderboard")
@login_required
def quiz_leaderboard(quiz_id):
    limit = _int_arg("limit", current_app.config["QUIZ_LEADERBOARD_LIMIT"])
    time_filter = parse_time_filter(request.args.get("timeFilter"))
    result = _build_service().get_quiz_leaderboard(quiz_id, limit, time_filter)
    return jsonify(result.to_dict())


@leaderboard_bp.route("/quizzes/<quiz_id>/attempts/<user_id>")
@login_required
def user_attempts(quiz_id, user_id):
    # Non-admins can only see their own attempts
    caller = _caller_profile()
    if caller.id != user_id and not caller.is_admin:
        raise AccessDenied("You don't have permission to view other users' attempts")
    time_filter = parse_time_filter(request.args.get("timeFilter"))
    entries = _build_service().get_user_attempts(quiz_id, user_id, time_filter)
    return jsonify(quizId=quiz_id, userId=user_id, attempts=[e.to_dict() for e in entries])


@leaderboard_bp.route("/quizzes/<quiz_id>/rank/<user_id>")
@login_required
def user_quiz_rank(quiz_id, user_id):
    rank = _build_service().get_user_quiz_rank(quiz_id, user_id)
    return jsonify(quizId=quiz_id, userId=user_id, rank=rank)
