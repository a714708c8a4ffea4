"""Alembic environment for the journal tables; the URL comes from ``load_settings``."""

from __future__ import annotations

from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import create_engine, pool

from voicelog.config import load_settings
from voicelog.infra.db.schema import METADATA

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)

DATABASE_URL = load_settings().database_url


def _configure(**kwargs: Any) -> None:
    context.configure(target_metadata=METADATA, compare_type=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    _configure(url=DATABASE_URL, literal_binds=True, dialect_opts={"paramstyle": "named"})
else:
    engine = create_engine(DATABASE_URL, poolclass=pool.NullPool)
    with engine.connect() as connection:
        _configure(connection=connection)
