#!/usr/bin/env python3
"""
Container entrypoint: wait for the database, migrate to head, seed the demo
route, then replace this process with uvicorn.
"""
import logging
import os
import sys

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
logger = logging.getLogger("start_api")


def migrate(database_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(os.path.join(os.path.dirname(os.path.abspath(__file__)), "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(cfg, "head")


def seed(database_url: str) -> None:
    # fresh engine: the app engine may predate the tables created by migrate()
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from app.seed import run as run_seed

    engine = create_engine(database_url, pool_pre_ping=True)
    try:
        run_seed(sessionmaker(autocommit=False, autoflush=False, bind=engine)())
    finally:
        engine.dispose()


def main() -> None:
    import wait_for_db  # noqa: F401
    from app.core.config import settings

    migrate(settings.DATABASE_URL)
    if os.getenv("SEED_DEMO", "1") == "1":
        seed(settings.DATABASE_URL)
    port = os.getenv("PORT", "8000")
    logger.info("starting uvicorn on :%s", port)
    os.execv(sys.executable, [sys.executable, "-m", "uvicorn", "app.main:app", "--host", "0.0.0.0", "--port", port])


if __name__ == "__main__":
    main()
