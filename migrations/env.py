"""Migration runner for the broker's artifact, agreement and audit tables.

The target database comes from the broker settings (``DATABASE_URL``), so
migrations and the running service always agree on where the data lives.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from dataspace_broker.config import get_settings
from dataspace_broker.db import audit_models, models  # noqa: F401
from dataspace_broker.db.base import Base, get_database_url

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)


def _broker_database_url() -> str:
    return get_database_url(get_settings().database_url)


def _configure(**options) -> None:
    context.configure(target_metadata=Base.metadata, compare_type=True, **options)
    with context.begin_transaction():
        context.run_migrations()


def migrate_to_script() -> None:
    """Emit the migration SQL without connecting."""
    _configure(
        url=_broker_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )


def migrate_database() -> None:
    """Apply the migrations to the broker database."""
    engine = create_engine(_broker_database_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        # ALTER TABLE on SQLite only works through batch operations
        _configure(
            connection=connection,
            render_as_batch=connection.dialect.name == "sqlite",
        )


if context.is_offline_mode():
    migrate_to_script()
else:
    migrate_database()
