import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool, text, create_engine

from app.core.config import settings
from app.db.session import Base

# Import all models so Alembic sees them in metadata
from app.models.user import User  # noqa: F401
from app.models.bus import Bus, Seat  # noqa: F401
from app.models.stop import Stop, StopPoint  # noqa: F401
from app.models.trip import Trip  # noqa: F401
from app.models.holiday import Holiday  # noqa: F401
from app.models.coupon import Coupon  # noqa: F401
from app.models.booking import BookingGroup, SeatReservation  # noqa: F401
from app.models.passenger import Passenger  # noqa: F401
from app.models.payment import Payment  # noqa: F401
from app.models.audit_log import AuditLog  # noqa: F401


def ensure_alembic_version_table(connection) -> None:
    # Alembic defaults alembic_version.version_num to VARCHAR(32); widen it on Postgres
    # so longer revision ids fit.
    if connection.dialect.name != "postgresql":
        return
    connection.execute(
        text("CREATE TABLE IF NOT EXISTS alembic_version (version_num VARCHAR(64) NOT NULL);")
    )
    connection.execute(text("ALTER TABLE alembic_version ALTER COLUMN version_num TYPE VARCHAR(64);"))


config = context.config

# sqlalchemy.url always comes from the runtime DATABASE_URL
db_url = getattr(settings, "DATABASE_URL", None) or os.getenv("DATABASE_URL")
if not db_url:
    raise RuntimeError("DATABASE_URL is not set (check .env / app.core.config.settings)")

config.set_main_option("sqlalchemy.url", db_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    url = config.get_main_option("sqlalchemy.url")
    connectable = create_engine(url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        # configure() must run before any DDL, or begin_transaction() never commits.
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            ensure_alembic_version_table(connection)
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
