"""Block until the configured Postgres accepts connections (no-op for SQLite)."""
import logging
import os
import time
from urllib.parse import urlparse

import psycopg2

from app.core.config import settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [wait_for_db] %(message)s")
logger = logging.getLogger("wait_for_db")

DATABASE_URL = settings.DATABASE_URL


def wait(url: str, timeout_s: int) -> None:
    if not url.startswith("postgresql"):
        logger.info("%s is not Postgres; nothing to wait for.", url.split(":", 1)[0])
        return

    # SQLAlchemy URL may carry a driver suffix
    p = urlparse(url.replace("postgresql+psycopg2://", "postgresql://"))
    host = p.hostname or "db"
    port = p.port or 5432
    user = p.username or "busbook"
    password = p.password or "busbook"
    dbname = (p.path or "/busbook").lstrip("/") or "busbook"

    start = time.time()
    logger.info("Waiting for Postgres at %s:%s db=%s user=%s (timeout=%ss)", host, port, dbname, user, timeout_s)
    while True:
        try:
            conn = psycopg2.connect(host=host, port=port, user=user, password=password, dbname=dbname)
            conn.close()
            logger.info("Postgres is ready.")
            return
        except psycopg2.OperationalError as e:
            if time.time() - start > timeout_s:
                logger.error("Timed out waiting for DB. Last error: %s", e)
                raise
            time.sleep(1)


wait(DATABASE_URL, int(os.getenv("DB_WAIT_TIMEOUT", "60")))
