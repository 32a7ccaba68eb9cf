from flask import Blueprint, current_app, g, render_template
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.adminkit.db import db_session

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return render_template("public/index.html")


@bp.get("/health")
def health():
    """Readiness: the app is up and the database answers a trivial query."""
    try:
        db_session().execute(text("SELECT 1"))
    except SQLAlchemyError:
        current_app.logger.exception("Health check: database unreachable (request_id=%s)", getattr(g, "request_id", None))
        return {"ok": False, "database": "unavailable"}, 503
    return {"ok": True, "database": "ok"}


@bp.get("/healthz")
def healthz():
    # Liveness only; never touches the database.
    return "ok", 200
