from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from typing import Any, Self, TypeVar
from uuid import UUID, uuid4

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pymongo import AsyncMongoClient
from pymongo.asynchronous.cursor import AsyncCursor
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_exponential

from aidfusion.config import Config
from aidfusion.errors import UnavailableError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class MongoModel(BaseModel):
    id: UUID = Field(alias="_id", serialization_alias="id", default_factory=uuid4)

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        json_schema_serialization_defaults_required=True,
    )

    def to_mongo(self) -> dict[str, Any]:
        """Convert the model to a dictionary for MongoDB storage with _id field."""
        data = self.model_dump()
        if "id" in data:
            data["_id"] = data.pop("id")  # Rename id → _id for MongoDB
        return data

    @classmethod
    async def list_cursor(cls, cursor: AsyncCursor[dict[str, Any]]) -> list[Self]:
        """Iterate over an AsyncCursor and return a list of model instances."""
        return [cls.model_validate(item) async for item in cursor]


class MongoPool:
    """Process-wide MongoDB connection pool.

    Constructed once at startup and injected into Core. The underlying
    client multiplexes concurrent requests over a bounded pool of
    connections; every operation is capped by ``database_timeout_ms``.
    """

    def __init__(self, config: Config) -> None:
        self._client: AsyncMongoClient[dict[str, Any]] = AsyncMongoClient(
            config.database_url,
            uuidRepresentation="standard",
            maxPoolSize=config.database_max_pool_size,
            timeoutMS=config.database_timeout_ms,
            serverSelectionTimeoutMS=config.database_timeout_ms,
        )
        self.database: AsyncDatabase[dict[str, Any]] = self._client.get_database(config.database_name)

    async def open(self) -> None:
        """Verify the server is reachable before serving requests."""
        with storage_errors("ping"):
            await self._client.admin.command("ping")
        logger.info("mongo_pool_opened", database=self.database.name)

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("mongo_pool_closed")


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate driver failures into UnavailableError.

    DuplicateKeyError passes through untouched: callers map it to a domain error.
    """
    try:
        yield
    except DuplicateKeyError:
        raise
    except PyMongoError as e:
        logger.error("storage_unavailable", operation=operation, error=str(e))
        raise UnavailableError("Storage is temporarily unavailable") from e


MAX_READ_RETRY_DELAY = 2.0


async def retry_read(operation: str, read: Callable[[], Awaitable[T]], attempts: int, base_delay: float = 0.1) -> T:
    """Run an idempotent read, retrying with exponential backoff while storage is unavailable."""

    async def guarded() -> T:
        with storage_errors(operation):
            return await read()

    def log_retry(state: RetryCallState) -> None:
        delay = state.next_action.sleep if state.next_action is not None else 0
        logger.warning("storage_read_retry", operation=operation, attempt=state.attempt_number, delay=delay)

    retrying = AsyncRetrying(
        retry=retry_if_exception_type(UnavailableError),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=base_delay, max=MAX_READ_RETRY_DELAY),
        before_sleep=log_retry,
        reraise=True,
    )
    return await retrying(guarded)
