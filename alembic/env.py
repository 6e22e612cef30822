"""
Alembic environment for the bookshop directory.

DATABASE_URL comes from indiebookshop settings so migrations and the app
always target the same database. Only the directory tables are tracked.
"""
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from indiebookshop.core.config import get_settings
from indiebookshop.core.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
DIRECTORY_TABLES = frozenset(target_metadata.tables)


def include_name(name, type_, parent_names):
    """Ignore tables other services keep in the same database."""
    if type_ == "table":
        return name in DIRECTORY_TABLES
    return True


def _configure_kwargs(url: str) -> dict:
    # SQLite cannot ALTER most columns in place; batch mode rebuilds the table
    return {
        "target_metadata": target_metadata,
        "include_name": include_name,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit SQL for the pending revisions without connecting."""
    url = get_settings().database_url
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_settings().database_url
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = url
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
