from __future__ import annotations

import os
from pathlib import Path

import click
from dotenv import load_dotenv
from flask import Flask
from flask_migrate import upgrade as migrate_upgrade
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.middleware.proxy_fix import ProxyFix

from .errors import register_error_handlers
from .extensions import csrf, db, login_manager, migrate
from .seed import ensure_seed_data, seed_demo_data


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


def _database_uri(app: Flask) -> str:
    db_uri = (os.getenv("DATABASE_URL") or "").strip()
    if not db_uri:
        return f"sqlite:///{(Path(app.instance_path) / 'campus.db').as_posix()}"
    # SQLAlchemy only accepts the postgresql:// scheme.
    if db_uri.startswith("postgres://"):
        db_uri = db_uri.replace("postgres://", "postgresql://", 1)
    return db_uri


def create_app(config: dict | None = None) -> Flask:
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    # Respect X-Forwarded-* headers from the reverse proxy.
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    app.config.from_mapping(
        SECRET_KEY=os.getenv("SECRET_KEY", "dev-secret-change-me"),
        SQLALCHEMY_DATABASE_URI=None,
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        SQLALCHEMY_ENGINE_OPTIONS={"pool_pre_ping": True},
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        SESSION_COOKIE_SECURE=_env_flag("SESSION_COOKIE_SECURE", "false"),
        REMEMBER_COOKIE_HTTPONLY=True,
        WTF_CSRF_ENABLED=_env_flag("WTF_CSRF_ENABLED", "true"),
        WTF_CSRF_TIME_LIMIT=None,
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        SEED_DATA=_env_flag("SEED_DATA", "true"),
        SEED_DEMO_DATA=_env_flag("SEED_DEMO_DATA", "false"),
    )
    if config:
        app.config.update(config)
    if not app.config["SQLALCHEMY_DATABASE_URI"]:
        app.config["SQLALCHEMY_DATABASE_URI"] = _database_uri(app)
    db_uri = app.config["SQLALCHEMY_DATABASE_URI"]

    app.logger.setLevel(app.config["LOG_LEVEL"])

    Path(app.instance_path).mkdir(parents=True, exist_ok=True)

    db.init_app(app)
    login_manager.init_app(app)
    csrf.init_app(app)
    migrate.init_app(app, db, directory=str(Path(__file__).resolve().parent.parent / "migrations"))

    from .main.routes import bp as main_bp
    from .auth.routes import bp as auth_bp
    from .events.routes import bp as events_bp
    from .clubs.routes import bp as clubs_bp
    from .users.routes import bp as users_bp
    from .admin.routes import bp as admin_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(events_bp)
    app.register_blueprint(clubs_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(admin_bp)

    register_error_handlers(app)

    @app.cli.command("seed-demo")
    def seed_demo_command():
        """Load demo events, clubs and a student account."""
        if seed_demo_data():
            click.echo("Demo data created.")
        else:
            click.echo("Events or clubs already exist; nothing to do.")

    with app.app_context():
        if app.testing:
            auto_migrate = False
        elif os.getenv("AUTO_MIGRATE") is None:
            # Default: auto-migrate only for local SQLite.
            auto_migrate = db_uri.startswith("sqlite")
        else:
            auto_migrate = _env_flag("AUTO_MIGRATE", "false")

        if auto_migrate:
            try:
                migrate_upgrade()
            except Exception as e:
                app.logger.warning("Auto-migrate failed (continuing): %s", e)
        elif app.config.get("AUTO_CREATE_DB", _env_flag("AUTO_CREATE_DB", "true")):
            db.create_all()

        try:
            if app.config["SEED_DATA"]:
                ensure_seed_data()
            if app.config["SEED_DEMO_DATA"]:
                seed_demo_data()
        except SQLAlchemyError as e:
            db.session.rollback()
            # This can happen if the DB schema hasn't been migrated yet.
            app.logger.warning("Skipping seed (database not ready yet): %s", e)

    return app
