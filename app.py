import os
import logging
import traceback
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify, request
from flask_login import LoginManager

from utils.helpers import PROJECT_ROOT, load_config
from database import db
from database.models import User as DBUser, Team as DBTeam
from database.match_store import MatchStore
from engine.live_scoring import DEFAULT_MAX_RETRIES, LiveScoringService
from engine.scoring_models import DEFAULT_MAX_PLAYERS, DEFAULT_RECENT_BALLS_WINDOW
from auth.user_auth import register_user, verify_user
from routes.auth_routes import register_auth_routes
from routes.match_routes import register_match_routes


def _configure_logging(config):
    log_config = config.get("logging", {}) or {}
    level = getattr(logging, str(log_config.get("level", "INFO")).upper(), logging.INFO)
    log_path = log_config.get("file") or os.path.join("logs", "execution.log")
    if not os.path.isabs(log_path):
        log_path = os.path.join(PROJECT_ROOT, log_path)
    os.makedirs(os.path.dirname(log_path), exist_ok=True)

    # Clear existing handlers to avoid duplicates
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    # File handler for persistent logging
    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(level)

    # Console handler for terminal visibility
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=[file_handler, console_handler])
    return level


# ────── App Factory ──────
def create_app():
    # --- Flask setup ---
    app = Flask(__name__)
    config = load_config()

    # --- Secret key setup ---
    secret = config.get("app", {}).get("secret_key")
    if not secret or not isinstance(secret, str):
        secret = os.getenv("FLASK_SECRET_KEY", None)
        if not secret:
            secret = os.urandom(24).hex()
            print("[WARN] Using random Flask SECRET_KEY, sessions won't persist across restarts")
    app.config["SECRET_KEY"] = secret
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"

    # --- Database ---
    db_uri = (
        os.getenv("LIVESCORERX_TEST_DB_URI")
        or config.get("database", {}).get("uri")
        or "sqlite:///" + os.path.join(PROJECT_ROOT, "livescorerx.db")
    )
    app.config["SQLALCHEMY_DATABASE_URI"] = db_uri
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    db.init_app(app)

    # --- Logging setup (logs to file + terminal) ---
    level = _configure_logging(config)
    app.logger = logging.getLogger("LiveScorerX")
    app.logger.setLevel(level)

    # --- Flask-Login setup ---
    login_manager = LoginManager(app)

    @login_manager.user_loader
    def load_user(email):
        return db.session.get(DBUser, email)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Unauthorized", "message": "Login required"}), 401

    # --- Request logging ---
    @app.before_request
    def log_request():
        app.logger.info(f"{request.remote_addr} {request.method} {request.path}")

    # --- Live scoring wiring ---
    scoring_config = config.get("scoring", {}) or {}
    max_retries = scoring_config.get("max_retries", DEFAULT_MAX_RETRIES)
    recent_balls_window = scoring_config.get("recent_balls_window", DEFAULT_RECENT_BALLS_WINDOW)
    max_players = scoring_config.get("max_players_per_team", DEFAULT_MAX_PLAYERS)

    def make_store():
        return MatchStore(db.session)

    def make_service(store):
        return LiveScoringService(
            store,
            max_retries=max_retries,
            recent_balls_window=recent_balls_window,
            max_players_per_team=max_players,
        )

    # ───── Routes ─────
    register_auth_routes(
        app,
        db=db,
        register_user=register_user,
        verify_user=verify_user,
        DBUser=DBUser,
    )
    register_match_routes(
        app,
        db=db,
        DBTeam=DBTeam,
        make_store=make_store,
        make_service=make_service,
    )

    with app.app_context():
        db.create_all()

    app.logger.info(f"[Startup] LiveScorerX ready (db={db_uri}, max_retries={max_retries})")
    return app

# ────── Run Server ──────
if __name__ == "__main__":
    try:
        app = create_app()

        HOST = "127.0.0.1"
        PORT = 7860

        print("✅ LiveScorerX is up and running!")
        print(f"🌐 Access the API at: http://{HOST}:{PORT}")
        print("🔐 Press Ctrl+C to stop the server.\n")

        app.run(host=HOST, port=PORT, debug=True, use_reloader=False)

    except Exception as e:
        print("❌ Failed to start LiveScorerX:")
        traceback.print_exc()
