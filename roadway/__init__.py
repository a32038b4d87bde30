"""
Roadway API application factory.

create_app() loads config (APP_CONFIG, default ProdConfig), binds the rate
limiter and the Supabase clients, connects the notification receivers to the
moderation events, then registers the blueprints, JSON error handlers and the
admin CLI commands. Domain logic lives in roadway.services.
"""

from __future__ import annotations
import os
from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException
from dotenv import load_dotenv
from .extensions import limiter
from .routes.posts import posts_bp
from .routes.admin import admin_bp
from .routes.notifications import notifications_bp
from .services import notifications, supabase_client
from .utils.errors import ModerationError, sanitize_error

MIN_SECRET_KEY_LEN = 32


def _check_production_settings(app: Flask, cfg_path: str) -> None:
    """
    Refuse to start a production app with a missing or short secret key, with
    DEBUG on, or without the service role key that every moderation write needs.
    Test and dev configs skip the check.
    """
    if "ProdConfig" not in cfg_path or app.config.get("TESTING", False):
        return

    problems = []

    if not os.getenv("FLASK_SECRET_KEY"):
        problems.append("FLASK_SECRET_KEY is not set")
    elif len(app.config.get("SECRET_KEY", "")) < MIN_SECRET_KEY_LEN:
        problems.append(f"FLASK_SECRET_KEY must be at least {MIN_SECRET_KEY_LEN} characters")

    if app.config.get("DEBUG", False):
        problems.append("DEBUG is enabled")

    if not app.config.get("SUPABASE_SERVICE_ROLE_KEY"):
        problems.append("SUPABASE_SERVICE_ROLE_KEY is not set; posts and trust counters cannot be written")

    if problems:
        raise RuntimeError("Refusing to start with unsafe production settings:\n" + "\n".join(f"  - {p}" for p in problems))

    app.logger.info("Production settings check passed")


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ModerationError)
    def handle_moderation_error(error: ModerationError):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        # Routing errors (404/405/429) keep their own status and description
        if isinstance(error, HTTPException):
            return jsonify({"success": False, "error": error.description}), error.code
        message = sanitize_error(error, "database", "Unhandled request error")
        return jsonify({"success": False, "error": message}), 500


def create_app() -> Flask:
    # Real environment variables win over a local .env
    load_dotenv(override=False)

    app = Flask(__name__)

    cfg_path = os.getenv("APP_CONFIG", "roadway.config.ProdConfig")
    try:
        app.config.from_object(cfg_path)
    except (ImportError, AttributeError) as e:
        app.logger.warning(f"Config {cfg_path} not found, using Flask defaults: {e}")

    _check_production_settings(app, cfg_path)

    app.json.sort_keys = app.config.get("JSON_SORT_KEYS", False)

    limiter.init_app(app)
    limiter.enabled = app.config.get("RATELIMIT_ENABLED", True)

    supabase_client.init_supabase(app)
    notifications.register_receivers()

    @app.after_request
    def set_api_headers(resp: Response) -> Response:
        # JSON-only API: nothing here should be framed, sniffed or cached
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Cache-Control"] = "no-store"
        return resp

    @app.route("/health")
    def health():
        return jsonify({"status": "OK", "message": "Roadway API server is running"})

    for blueprint in (posts_bp, admin_bp, notifications_bp):
        app.register_blueprint(blueprint)

    _register_error_handlers(app)

    from roadway.cli import moderation_check_command, set_admin_command, trust_status_command
    for command in (set_admin_command, trust_status_command, moderation_check_command):
        app.cli.add_command(command)

    return app
