# app/db/init_db.py
import logging

from app.db.base_class import Base
from app.db.session import engine
import app.models  # noqa: F401  registers every table on Base.metadata

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create missing tables for local development."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables checked and created if necessary")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
