# app.py - application factory for the leaderboard API
import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_login import LoginManager
from sqlalchemy import inspect, text

from config import Config
from models import User, db
from routes.leaderboard_routes import leaderboard_bp

login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id):
    try:
        u = db.session.get(User, user_id)
        if u is None:
            logging.getLogger(__name__).info("load_user miss id=%s", user_id)
        return u
    except Exception:
        logging.getLogger(__name__).exception("load_user failed id=%s", user_id)
        return None


@login_manager.unauthorized_handler
def _unauthorized():
    return jsonify(error="You must be logged in to view the leaderboard"), 401


def create_app(test_config: dict | None = None):
    # Load environment variables from .env when running locally
    load_dotenv()
    app = Flask(__name__, instance_path=Config.INSTANCE_PATH)
    app.config.from_object(Config)

    # Allow overriding config for testing
    if test_config:
        app.config.update(test_config)

    # SQLite in-memory (used by tests) doesn't support certain pool options; prune them
    uri = app.config.get('SQLALCHEMY_DATABASE_URI', '')
    if uri.startswith('sqlite') and (':memory:' in uri):
        engine_opts = dict(app.config.get('SQLALCHEMY_ENGINE_OPTIONS', {}))
        for k in ('pool_timeout', 'pool_recycle'):
            engine_opts.pop(k, None)
        app.config['SQLALCHEMY_ENGINE_OPTIONS'] = engine_opts

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    # For local SQLite: auto-create tables if missing
    with app.app_context():
        inspector = inspect(db.engine)
        if uri.startswith('sqlite:///') and not (
            inspector.has_table('user') and inspector.has_table('quiz_attempt')
        ):
            db.create_all()
            app.logger.info("sqlite schema initialized")

    app.register_blueprint(leaderboard_bp)

    @app.errorhandler(404)
    def not_found(e):
        return jsonify(error="Not found"), 404

    @app.errorhandler(500)
    def internal_error(e):
        app.logger.exception("Unhandled server error")
        return jsonify(error="Internal server error"), 500

    # Health check endpoint for uptime monitoring
    @app.route('/healthz', methods=['GET'])
    def healthz():
        status = {"status": "ok", "db": False}
        try:
            db.session.execute(text("SELECT 1"))
            status["db"] = True
        except Exception as e:
            app.logger.warning("healthz db ping failed: %s", str(e))
        # Set HEALTHZ_STRICT=1 to return 503 when db is unreachable
        strict = os.environ.get("HEALTHZ_STRICT", "0") == "1"
        code = 200 if (status["db"] or not strict) else 503
        return status, code

    @app.after_request
    def set_security_headers(resp):
        resp.headers.setdefault('X-Content-Type-Options', 'nosniff')
        resp.headers.setdefault('Cache-Control', 'no-store')
        return resp

    # Basic logging configuration with LOG_LEVEL override
    log_level_name = str(app.config.get('LOG_LEVEL', 'INFO')).upper()
    level = getattr(logging, log_level_name, logging.INFO)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s %(message)s')
    app.logger.info("startup log_level=%s db_url_scheme=%s", log_level_name, uri.split(':')[0])

    return app
