"""Alembic environment for the scan tables; the URL comes from app settings unless -x url=... is given."""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool

os.environ.setdefault("APP_ENV", "dev")
from app.core.config import get_settings

# Registers users, repositories, scans, vulnerabilities and activities on Base.metadata.
from app.models import Base

config = context.config
if config.config_file_name is not None and config.get_section("formatters") is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def migration_url() -> str:
    """-x url=... wins over DATABASE_URL, e.g. to render SQL for another database."""
    return context.get_x_argument(as_dictionary=True).get("url") or get_settings().DATABASE_URL


def _configure_options(url: str) -> dict:
    # String widths on vulnerabilities bound model output; compare them on autogenerate.
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    url = migration_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = migration_url()
    connectable = create_engine(url, poolclass=NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_options(url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
