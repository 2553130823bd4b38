"""Alembic environment configuration.

URL resolution: DATABASE_URL_MIGRATIONS > DATABASE_URL > alembic.ini.
Online migrations use build_engine() so the Supabase TLS policy applies.
"""

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context

# Add apps/api to path so qresolve_api imports resolve without an install.
sys.path.insert(0, str(Path(__file__).parent.parent / "apps" / "api"))

from qresolve_api.config.env import get_migrations_database_url  # noqa: E402
from qresolve_api.db.engine import build_engine  # noqa: E402
from qresolve_api.db.models import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

database_url = get_migrations_database_url(fallback=config.get_main_option("sqlalchemy.url"))

if not database_url:
    raise ValueError(
        "Database URL not configured. "
        "Set DATABASE_URL_MIGRATIONS or DATABASE_URL environment variable, "
        "or configure sqlalchemy.url in alembic.ini."
    )

config.set_main_option("sqlalchemy.url", database_url)


def include_object(obj, name, type_, reflected, compare_to) -> bool:
    """Only compare public tables; auth.* belongs to Supabase."""
    if type_ == "table" and getattr(obj, "schema", None) not in (None, "public"):
        return False
    return True


def run_migrations_offline() -> None:
    """Emit SQL without a DB connection."""
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against the database.

    Raises:
        RuntimeError: Unsafe sslmode for Supabase in production
    """
    connectable = build_engine(database_url)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
