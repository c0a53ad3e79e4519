from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import declarative_base, sessionmaker
from chatrelay.config import settings
import logging

logger = logging.getLogger(__name__)

# Configure SQLAlchemy engine based on database type
if settings.DB_TYPE == "sqlite":
    SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False}  # Needed for SQLite
    )
else:
    # PostgreSQL configuration
    SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL
    engine = create_engine(SQLALCHEMY_DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


# Dependency to get DB session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create any missing tables. Existing chat history is left untouched."""
    from chatrelay.models.chat import ChatSession, ChatMessage, Attachment  # noqa: F401  avoid circular imports

    bind = bind or engine
    logger.info("Creating missing tables...")
    Base.metadata.create_all(bind=bind)

    inspector = inspect(bind)
    tables = inspector.get_table_names()
    logger.info(f"Available tables: {tables}")
    for table in tables:
        columns = inspector.get_columns(table)
        logger.debug(f"Table {table} schema:")
        for column in columns:
            logger.debug(f"  {column['name']}: {column['type']}")
