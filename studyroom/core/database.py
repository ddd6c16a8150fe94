import logging
from contextlib import asynccontextmanager
from functools import wraps
from typing import Callable, TypeVar, Any, AsyncGenerator, AsyncIterator, Iterator, List, Sequence
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import text
from sqlalchemy.exc import (
    SQLAlchemyError,
    OperationalError,
    DisconnectionError,
    TimeoutError,
)
from asyncpg.exceptions import (
    ConnectionFailureError,
    ConnectionDoesNotExistError,
)
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import (
    DATABASE_URL,
    DB_RETRY_ATTEMPTS,
    DB_RETRY_DELAY,
    DB_RETRY_BACKOFF_FACTOR,
    BATCH_OPERATION_LIMIT,
)
from .exceptions import DatabaseConnectionError, DatabaseTimeoutError

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (
    OperationalError,
    DisconnectionError,
    TimeoutError,
    ConnectionFailureError,
    ConnectionDoesNotExistError,
    ConnectionError,
)


def _engine_options(url: str) -> dict:
    # SQLite (tests, local runs) does not accept queue pool sizing
    if url.startswith("sqlite"):
        return {"echo": False}
    return {
        "echo": False,
        "pool_size": 20,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
    }


engine = create_async_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")


def _retrying(
    max_attempts: int,
    delay: float,
    backoff_factor: float = DB_RETRY_BACKOFF_FACTOR,
    exceptions: tuple = RETRYABLE_ERRORS,
    name: str = "database_operation",
) -> AsyncRetrying:
    def log_attempt(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        logger.warning(
            f"Database operation failed (attempt {retry_state.attempt_number}/{max_attempts}): {str(error)}",
            extra={
                "function": name,
                "attempt": retry_state.attempt_number,
                "max_attempts": max_attempts,
                "exception_type": type(error).__name__,
            },
        )

    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=delay, exp_base=backoff_factor, max=30),
        retry=retry_if_exception_type(exceptions),
        before_sleep=log_attempt,
    )


def db_retry(
    max_attempts: int = None,
    delay: float = None,
    backoff_factor: float = DB_RETRY_BACKOFF_FACTOR,
    exceptions: tuple = None,
) -> Callable[[F], F]:
    """
    Retry decorator for async database operations

    Args:
        max_attempts: Attempts before giving up (config default)
        delay: Initial delay between attempts (config default)
        backoff_factor: Delay multiplier
        exceptions: Exception types that trigger a retry
    """
    if max_attempts is None:
        max_attempts = DB_RETRY_ATTEMPTS

    if delay is None:
        delay = DB_RETRY_DELAY

    if exceptions is None:
        exceptions = RETRYABLE_ERRORS

    def decorator(func: F) -> F:
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            retrying = _retrying(max_attempts, delay, backoff_factor, exceptions, func.__name__)
            try:
                async for attempt in retrying:
                    with attempt:
                        return await func(*args, **kwargs)
            except RetryError as e:
                last_exception = e.last_attempt.exception()
                logger.error(
                    f"Database operation failed after {max_attempts} attempts: {str(last_exception)}",
                    extra={
                        "function": func.__name__,
                        "max_attempts": max_attempts,
                        "final_exception": str(last_exception),
                    },
                )
                if isinstance(last_exception, TimeoutError):
                    raise DatabaseTimeoutError(func.__name__, 30) from last_exception
                raise DatabaseConnectionError(
                    f"Database connection failed after {max_attempts} attempts"
                ) from last_exception

        return async_wrapper

    return decorator


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a database session"""
    session = async_session()
    try:
        yield session
    except Exception as e:
        await session.rollback()
        logger.error(f"Session error: {str(e)}")
        raise
    finally:
        await session.close()


@asynccontextmanager
async def acquire_session(
    session_factory: async_sessionmaker = None,
) -> AsyncIterator[AsyncSession]:
    """
    Open a session for a scheduled job and prove the connection works.

    Connection acquisition is retried; if it still fails the job run is
    aborted with DatabaseConnectionError. Nothing has been written at that
    point, so no persisted state is affected.
    """
    session_factory = session_factory or async_session
    session = session_factory()
    try:
        try:
            async for attempt in _retrying(
                DB_RETRY_ATTEMPTS, DB_RETRY_DELAY, name="acquire_session"
            ):
                with attempt:
                    await session.connection()
        except RetryError as e:
            logger.error(
                f"Failed to acquire database session after {DB_RETRY_ATTEMPTS} attempts",
                extra={"final_exception": str(e.last_attempt.exception())},
            )
            raise DatabaseConnectionError(
                f"Database connection failed after {DB_RETRY_ATTEMPTS} attempts"
            ) from e
        yield session
    finally:
        await session.close()


def chunked(items: Sequence[T], size: int = BATCH_OPERATION_LIMIT) -> Iterator[List[T]]:
    """Split writes into batches no larger than the per-commit ceiling"""
    if size < 1:
        raise ValueError("Batch size must be >= 1")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


class DatabaseManager:
    """Engine-level operations"""

    @staticmethod
    @db_retry()
    async def create_tables():
        """Create all tables"""
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error(f"Failed to create database tables: {str(e)}")
            raise

    @staticmethod
    @db_retry()
    async def check_connection():
        """Check database connectivity"""
        try:
            async with engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Database connection check successful")
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database connection check failed: {str(e)}")
            raise

    @staticmethod
    async def close_connections():
        """Dispose the engine pool"""
        try:
            await engine.dispose()
            logger.info("Database connections closed successfully")
        except Exception as e:
            logger.error(f"Error closing database connections: {str(e)}")


db_manager = DatabaseManager()


def db_operation(func: F) -> F:
    """
    Logging decorator for CRUD operations
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        operation_name = func.__name__

        try:
            logger.debug(f"Starting database operation: {operation_name}")
            result = await func(*args, **kwargs)
            logger.debug(f"Database operation completed: {operation_name}")
            return result

        except SQLAlchemyError as e:
            logger.error(
                f"SQLAlchemy error in {operation_name}: {str(e)}",
                extra={"operation": operation_name, "exception_type": type(e).__name__},
            )
            raise

    return wrapper
