# migrations/env.py
"""
Alembic environment for the invoicing schema.

Two ways in:
  - ``flask db upgrade`` (Flask-Migrate): engine and metadata come from the app.
  - plain ``alembic -c migrations/alembic.ini upgrade head`` with DATABASE_URL
    set, e.g. from a deploy job that does not build the app.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine

# <root>/migrations/env.py -> make "invoicing" importable from <root>
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from invoicing.settings import _normalize_db_url  # noqa: E402

config = context.config

if config.config_file_name:
    try:
        fileConfig(config.config_file_name, disable_existing_loggers=False)
    except KeyError:
        # alembic.ini without [loggers]
        pass

logger = logging.getLogger("alembic.env")

STANDALONE_URL = _normalize_db_url(os.getenv("DATABASE_URL"))


def _flask_migrate():
    from flask import current_app

    return current_app.extensions["migrate"]


def _metadata():
    if STANDALONE_URL:
        from invoicing import models  # noqa: F401  registers the tables
        from invoicing.extensions import db

        return db.metadata
    return _flask_migrate().db.metadata


def _database_url() -> str:
    if STANDALONE_URL:
        return STANDALONE_URL
    return _flask_migrate().db.engine.url.render_as_string(hide_password=False)


def _skip_empty_autogenerate(ctx, revision, directives):
    cmd_opts = getattr(config, "cmd_opts", None)
    if cmd_opts and getattr(cmd_opts, "autogenerate", False):
        if directives[0].upgrade_ops.is_empty():
            directives[:] = []
            logger.info("Models and database agree; no revision written.")


def _configure_args() -> dict:
    args = {} if STANDALONE_URL else dict(_flask_migrate().configure_args or {})
    args.setdefault("process_revision_directives", _skip_empty_autogenerate)
    args.setdefault("compare_type", True)
    return args


# ConfigParser interpolation: a literal % in a password must be doubled
config.set_main_option("sqlalchemy.url", _database_url().replace("%", "%%"))


def run_migrations_offline():
    """Emit SQL to stdout instead of touching the database."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=_metadata(),
        literal_binds=True,
        **_configure_args(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    if STANDALONE_URL:
        engine = create_engine(STANDALONE_URL)
    else:
        engine = _flask_migrate().db.engine

    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=_metadata(), **_configure_args())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
