# payouts_api/extensions.py
import os
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from sqlalchemy.engine import make_url

db = SQLAlchemy()
migrate = Migrate()

PG_DRIVER = "postgresql+psycopg"

# applied to server databases only; sqlite keeps SQLAlchemy's own pool
POOL_OPTIONS = {
    "pool_pre_ping": True,
    "pool_recycle": 270,
    "pool_size": 5,
    "max_overflow": 2,
    "pool_timeout": 30,
}


def normalize_db_url(url: str) -> str:
    """Any PostgreSQL URL (Heroku "postgres://", psycopg2, bare) -> psycopg 3 driver."""
    if not url:
        return url
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    parsed = make_url(url)
    if parsed.get_backend_name() == "postgresql" and parsed.drivername != PG_DRIVER:
        parsed = parsed.set(drivername=PG_DRIVER)
    return parsed.render_as_string(hide_password=False)


def init_db(app):
    url = normalize_db_url(os.getenv("DATABASE_URL") or app.config.get("SQLALCHEMY_DATABASE_URI") or "")
    app.config["SQLALCHEMY_DATABASE_URI"] = url
    if not url.startswith("sqlite"):
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", dict(POOL_OPTIONS))
    db.init_app(app)
