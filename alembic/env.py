from __future__ import annotations

from logging.config import fileConfig
from typing import Any

from alembic import context as _context  # type: ignore[attr-defined]

# Expose name 'context' with flexible typing for attribute access used by Alembic
context: Any = _context

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def get_app():
    from chefos import create_app

    return create_app()


app = get_app()


def _target_metadata():
    from chefos import _import_models, db

    _import_models()
    return db.metadata


def run_migrations_offline() -> None:
    with app.app_context():
        context.configure(
            url=app.config["SQLALCHEMY_DATABASE_URI"],
            target_metadata=_target_metadata(),
            literal_binds=True,
            dialect_opts={"paramstyle": "named"},
            render_as_batch=True,
        )
        with context.begin_transaction():
            context.run_migrations()


def run_migrations_online() -> None:
    from chefos import db as _db

    with app.app_context():
        with _db.engine.connect() as connection:
            # batch mode: SQLite não suporta ALTER TABLE completo
            context.configure(
                connection=connection,
                target_metadata=_target_metadata(),
                render_as_batch=True,
            )
            with context.begin_transaction():
                context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
