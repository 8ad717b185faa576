# config.py - configuration constants
import os
from pathlib import Path

# Create instance folder if it doesn't exist
INSTANCE_PATH = Path(__file__).parent / 'instance'
INSTANCE_PATH.mkdir(exist_ok=True)

# Database file will be stored in the instance folder
DB_PATH = INSTANCE_PATH / 'leaderboard.db'


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey")
    # Use DATABASE_URL for production, fallback to SQLite for local development
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{DB_PATH.absolute()}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    INSTANCE_PATH = str(INSTANCE_PATH)
    # - pool_pre_ping checks connections before use to avoid stale/expired sockets
    # - pool_recycle forces periodic reconnects to reduce SSL/idle issues
    # - pool_timeout controls how long to wait for a connection from the pool
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": _int_env("SQLALCHEMY_POOL_RECYCLE", 280),
        "pool_timeout": _int_env("SQLALCHEMY_POOL_TIMEOUT", 10),
    }

    # Upper bound on attempt records pulled from the store per fetch
    LEADERBOARD_FETCH_LIMIT = _int_env("LEADERBOARD_FETCH_LIMIT", 500)
    QUIZ_LEADERBOARD_LIMIT = _int_env("QUIZ_LEADERBOARD_LIMIT", 50)
    TOP_PERFORMERS_LIMIT = _int_env("TOP_PERFORMERS_LIMIT", 10)
    # Thread pool size for per-user profile lookups (1 = sequential)
    PROFILE_LOOKUP_WORKERS = _int_env("PROFILE_LOOKUP_WORKERS", 4)

    # "all": every signed-in user may list every attempt
    # "self": non-admins may only list their own attempts (broad queries are denied)
    ATTEMPT_READ_SCOPE = os.getenv("ATTEMPT_READ_SCOPE", "all")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
