"""Functional endpoint-by-endpoint verification script.
Run inside the virtual environment:
  python functional_check.py
Seeds an in-memory database and outputs a tuple of
(status_code, heuristic_content_ok) per endpoint.
"""

from datetime import datetime, timedelta, timezone

from flask_login import FlaskLoginClient

from app import create_app
from models import QuizAttempt, User, db


def _seed():
    now = datetime.now(timezone.utc)
    db.session.add_all([
        User(id="check_player", display_name="Check Player", email="player@check.local", nickname="Player"),
        User(id="check_admin", display_name="Check Admin", email="admin@check.local", role="admin"),
    ])
    db.session.commit()
    db.session.add_all([
        QuizAttempt(user_id="check_player", quiz_id="general", score=7, max_score=10,
                    percentage_score=70, time_taken=3, date_taken=now - timedelta(days=3)),
        QuizAttempt(user_id="check_player", quiz_id="general", score=10, max_score=10,
                    percentage_score=100, time_taken=2, date_taken=now - timedelta(days=1)),
        QuizAttempt(user_id="check_admin", quiz_id="general", score=9, max_score=10,
                    percentage_score=90, time_taken=4, date_taken=now - timedelta(days=2)),
    ])
    db.session.commit()


def run_checks():
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    app.test_client_class = FlaskLoginClient
    results = {}
    with app.app_context():
        db.create_all()
        _seed()

    # Anonymous callers are rejected
    anon = app.test_client().get("/api/leaderboard")
    results["anonymous"] = (anon.status_code, anon.status_code == 401)

    c = app.test_client(user=User(id="check_player"))

    glob = c.get("/api/leaderboard?timeFilter=weekly")
    body = glob.get_json() or {}
    results["global"] = (glob.status_code, len(body.get("leaderboard", [])) == 2)

    top = c.get("/api/leaderboard/top?limit=1")
    results["top"] = (top.status_code, len((top.get_json() or {}).get("leaderboard", [])) == 1)

    quiz = c.get("/api/quizzes/general/leaderboard")
    body = quiz.get_json() or {}
    results["quiz"] = (quiz.status_code, body.get("stats", {}).get("totalAttempts") == 3)

    rank = c.get("/api/quizzes/general/rank/check_player")
    results["quiz_rank"] = (rank.status_code, (rank.get_json() or {}).get("rank") == 1)

    mine = c.get("/api/quizzes/general/attempts/check_player")
    attempts = (mine.get_json() or {}).get("attempts", [])
    results["own_attempts"] = (mine.status_code, [a["attemptNumber"] for a in attempts] == [2, 1])

    theirs = c.get("/api/quizzes/general/attempts/check_admin")
    results["other_attempts"] = (theirs.status_code, theirs.status_code == 403)

    bad = c.get("/api/leaderboard?timeFilter=daily")
    results["bad_filter"] = (bad.status_code, bad.status_code == 400)

    # 404
    notf = c.get("/no_such_page_xyz")
    results["404"] = (notf.status_code, notf.status_code == 404)

    health = c.get("/healthz")
    results["healthz"] = (health.status_code, (health.get_json() or {}).get("db") is True)

    results["security_headers"] = (
        200,
        health.headers.get("X-Content-Type-Options") == "nosniff",
    )

    return results


if __name__ == "__main__":
    for k, v in run_checks().items():
        print(f"{k}: {v}")
