import logging
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, render_template, request, session

from app.adminkit.admin import bp as dashboard_bp
from app.adminkit.auth import bp as auth_bp, load_request_context
from app.adminkit.config import load_config
from app.adminkit.db import init_db, teardown_db_session
from app.adminkit.mail import mailer_from_config
from app.adminkit.modules.accounts.admin import bp as accounts_bp
from app.adminkit.oauth import google_client_from_config
from app.adminkit.panel import bp as panel_bp
from app.adminkit.routes import bp as routes_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=int(app.config.get("SESSION_LIFETIME_HOURS") or 24))
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "-"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os

        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.extensions["mailer"] = mailer_from_config(app.config)
    app.extensions["google_oauth"] = google_client_from_config(app.config)
    if app.config.get("MAIL_BACKEND") == "smtp" and not app.config.get("SMTP_USERNAME"):
        app.logger.warning("MAIL CONFIG: MAIL_BACKEND=smtp without SMTP_USERNAME; relying on an open relay.")

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(dashboard_bp, url_prefix="/dashboard")
    app.register_blueprint(accounts_bp, url_prefix="/dashboard")
    app.register_blueprint(panel_bp, url_prefix="/panel")

    @app.before_request
    def _request_setup():
        load_request_context()
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        session.permanent = True
        return None

    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return render_template("errors/500.html"), 500

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return render_template("errors/404.html"), 404

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
