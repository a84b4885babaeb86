"""Fábrica Flask da API ChefOS.

`db` e `csrf` vivem aqui porque todos os models importam `from .. import db`;
por isso os blueprints só são importados dentro de create_app.
"""

import logging
import os
import sqlite3
import time

from flask import Flask, current_app, has_app_context
from flask_sqlalchemy import SQLAlchemy
from flask_sqlalchemy.session import Session as FsaSession
from flask_wtf import CSRFProtect
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

retry_logger = logging.getLogger("db.retry")

# Mensagens do SQLite para SQLITE_BUSY / SQLITE_LOCKED
SQLITE_LOCK_MARKERS = (
    "database is locked",
    "database is busy",
    "database table is locked",
    "sqlite_busy",
)

# Aplicados em toda conexão nova (journal_mode tratado à parte)
SQLITE_PRAGMAS = (
    "foreign_keys=ON",
    "busy_timeout=1000",
    "synchronous=NORMAL",
)


def is_sqlite_lock(error: BaseException) -> bool:
    msg = str(error).lower()
    return any(marker in msg for marker in SQLITE_LOCK_MARKERS)


def _retry_policy(default_retries: int, default_backoff: float) -> tuple[int, float]:
    if not has_app_context():
        return default_retries, default_backoff
    cfg = current_app.config
    return (
        int(cfg.get("DB_COMMIT_RETRIES", default_retries)),
        float(cfg.get("DB_COMMIT_BACKOFF", default_backoff)),
    )


class RetrySession(FsaSession):
    """Session whose commit() survives a short-lived SQLite writer lock.

    The cron jobs and the API write to the same database file; a commit that
    hits "database is locked" is rolled back and retried with exponential
    backoff before the error is allowed to propagate.
    """

    def commit(self) -> None:  # type: ignore[override]
        retries, backoff = _retry_policy(5, 0.1)
        for attempt in range(retries + 1):
            try:
                super().commit()
                return
            except OperationalError as exc:
                if attempt == retries or not is_sqlite_lock(exc):
                    retry_logger.error("Commit failed after %s retries: %s", attempt, exc)
                    raise
                super().rollback()
                retry_logger.debug("SQLite locked; commit retry %s/%s", attempt + 1, retries)
                time.sleep(backoff * (2**attempt))


db = SQLAlchemy(session_options={"class_": RetrySession})
csrf = CSRFProtect()


@event.listens_for(Engine, "connect")
def _sqlite_pragmas_on_connect(dbapi_connection, connection_record):
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    cur = dbapi_connection.cursor()
    try:
        # WAL: leitura da API não bloqueia enquanto o cron escreve
        cur.execute("PRAGMA journal_mode=WAL")
    except sqlite3.OperationalError:
        # bancos em memória não aceitam WAL
        pass
    for pragma in SQLITE_PRAGMAS:
        cur.execute(f"PRAGMA {pragma}")
    cur.close()


def _import_models() -> None:
    from .auth import models as _auth_models  # noqa: F401
    from .core import models as _core_models  # noqa: F401
    from .gating import models as _gating_models  # noqa: F401
    from .pnl import models as _pnl_models  # noqa: F401
    from .prep import models as _prep_models  # noqa: F401
    from .referrals import models as _referral_models  # noqa: F401
    from .todos import models as _todo_models  # noqa: F401
    from .vendors import models as _vendor_models  # noqa: F401


def _register_blueprints(app: Flask) -> None:
    from .auth.auth import auth_bp  # noqa: WPS433
    from .core.core import core_bp  # noqa: WPS433
    from .gating.gating import gating_bp  # noqa: WPS433
    from .pnl.pnl import pnl_bp  # noqa: WPS433
    from .prep.prep import prep_bp  # noqa: WPS433
    from .referrals.referrals import referrals_bp  # noqa: WPS433
    from .todos.todos import todos_bp  # noqa: WPS433
    from .vendors.vendors import vendors_bp  # noqa: WPS433

    mounts = (
        (core_bp, None),
        (auth_bp, "/auth"),
        (gating_bp, "/gating"),
        (todos_bp, "/todos"),
        (referrals_bp, "/referrals"),
        (prep_bp, "/prep"),
        (vendors_bp, "/vendors"),
        (pnl_bp, "/pnl"),
    )
    for bp, prefix in mounts:
        # API JSON com bearer token: CSRF não se aplica
        csrf.exempt(bp)
        app.register_blueprint(bp, url_prefix=prefix)


def _prepare_schema(app: Flask) -> None:
    if app.config.get("TESTING"):
        # Testes usam create_all direto (banco temporário por teste)
        with app.app_context():
            _import_models()
            db.create_all()
        return
    if not app.config.get("AUTO_ALEMBIC_UPGRADE"):
        return
    from alembic import command as alembic_command
    from alembic.config import Config as AlembicConfig

    with app.app_context():
        try:
            alembic_command.upgrade(AlembicConfig("alembic.ini"), "head")
        except Exception:
            # app sobe mesmo assim; `alembic upgrade head` manual resolve
            logging.getLogger("chefos").exception("Alembic upgrade failed")


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object("config.Config")
    if config_object:
        app.config.from_object(config_object)
    os.makedirs(app.instance_path, exist_ok=True)

    logging.getLogger("chefos").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    csrf.init_app(app)
    _register_blueprints(app)

    from .cli import register_commands  # noqa: WPS433
    from .errors import register_error_handlers  # noqa: WPS433

    register_error_handlers(app)
    register_commands(app)
    _prepare_schema(app)

    @app.route("/health")
    def health():
        return {"status": "ok"}

    return app
