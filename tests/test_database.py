import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from studyroom.core.database import chunked, db_retry
from studyroom.core.exceptions import DatabaseConnectionError


def connection_lost():
    return OperationalError("SELECT 1", {}, ConnectionError("server closed the connection"))


async def test_db_retry_recovers_from_a_dropped_connection():
    calls = []

    @db_retry(max_attempts=3, delay=0)
    async def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise connection_lost()
        return "ok"

    assert await flaky() == "ok"
    assert len(calls) == 3


async def test_db_retry_gives_up_with_a_connection_error():
    calls = []

    @db_retry(max_attempts=2, delay=0)
    async def down():
        calls.append(1)
        raise connection_lost()

    with pytest.raises(DatabaseConnectionError):
        await down()
    assert len(calls) == 2


async def test_db_retry_does_not_retry_other_errors():
    calls = []

    @db_retry(max_attempts=3, delay=0)
    async def duplicate():
        calls.append(1)
        raise IntegrityError("INSERT", {}, Exception("unique"))

    with pytest.raises(IntegrityError):
        await duplicate()
    assert len(calls) == 1


def test_chunked_respects_the_batch_size():
    assert list(chunked(list(range(5)), 2)) == [[0, 1], [2, 3], [4]]
    with pytest.raises(ValueError):
        list(chunked([1], 0))
