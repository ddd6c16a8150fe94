import logging

from studyroom.core.database import db_manager
from studyroom.core.exceptions import DatabaseError

# registers every table on Base.metadata
from studyroom.attendance import models  # noqa: F401

logger = logging.getLogger(__name__)


async def init_database():
    """Create missing tables"""
    try:
        logger.info("Starting database initialization...")

        await db_manager.check_connection()
        logger.info("Database connection verified")

        await db_manager.create_tables()
        logger.info("Database tables created/verified")

    except DatabaseError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during database initialization: {e}")
        raise DatabaseError(f"Database initialization failed: {str(e)}")
