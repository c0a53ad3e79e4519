from chatrelay.db.database import init_db
from chatrelay.config import settings
import logging

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def main():
    """Create the chat tables in the configured database"""
    logger.info(f"Initializing database at {settings.DATABASE_URL}")
    init_db()
    logger.info("Database initialization completed")


if __name__ == "__main__":
    main()
