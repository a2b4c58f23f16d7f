from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Union

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import ConfigurationError as MongoConfigurationError

from milestone_db.core.errors import ClosedStore, ConfigurationError


logger = logging.getLogger(__name__)

# Resolves to a database handle: anything with get_collection(name) and a .client
ConnectionFactory = Callable[[], Awaitable[Any]]
ConnectionSource = Union[str, ConnectionFactory]


class ConnectionState(str):
    connecting = "connecting"
    open = "open"
    closed = "closed"


class ConnectionManager:
    """Owns the single database handle shared by every store operation.

    The handle is resolved once, in a background task started by ``open()`` or by
    the first ``resolve()``. Concurrent callers await the same task, so a failed
    connect is re-raised to each of them with its original error.
    """

    def __init__(self, mongo: ConnectionSource, **options: Any) -> None:
        if isinstance(mongo, str):
            if not mongo.strip():
                raise ConfigurationError("Connection URI is empty")
        elif not callable(mongo):
            raise ConfigurationError(
                f"Expected a MongoDB URI or an async connection factory, got {type(mongo).__name__}"
            )
        self._source = mongo
        self._options: Dict[str, Any] = options
        self._connecting: asyncio.Task | None = None
        self._handle: Any = None
        self.state: str = ConnectionState.connecting

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.open

    def open(self) -> asyncio.Task:
        if self.state == ConnectionState.closed:
            raise ClosedStore()
        if self._connecting is None:
            self._connecting = asyncio.ensure_future(self._connect())
        return self._connecting

    async def resolve(self) -> Any:
        if self.state == ConnectionState.closed:
            raise ClosedStore()
        await self.open()
        # close() may have run while we were waiting on the connect task
        if self.state == ConnectionState.closed:
            raise ClosedStore()
        return self._handle

    async def close(self) -> None:
        if self.state == ConnectionState.closed:
            raise ClosedStore()
        connecting = self.open()
        try:
            handle = await connecting
        finally:
            # Torn down even when the connect failed; later callers get ClosedStore
            closed_meanwhile = self.state == ConnectionState.closed
            self._handle = None
            self._connecting = None
            self.state = ConnectionState.closed
        if closed_meanwhile:
            raise ClosedStore()
        result = handle.client.close()
        if inspect.isawaitable(result):
            await result
        logger.info("Milestone store connection closed")

    async def _connect(self) -> Any:
        if callable(self._source):
            handle = await self._source()
        else:
            handle = await self._connect_uri(self._source)
        if self.state != ConnectionState.closed:
            self._handle = handle
            self.state = ConnectionState.open
        return handle

    async def _connect_uri(self, uri: str) -> Any:
        try:
            client = AsyncIOMotorClient(uri, **self._options)
        except MongoConfigurationError as exc:
            raise ConfigurationError(f"Invalid connection URI: {exc}") from exc
        try:
            database = client.get_default_database()
        except MongoConfigurationError as exc:
            client.close()
            raise ConfigurationError(f"Connection URI has no database name: {exc}") from exc
        try:
            await database.command("ping")
        except BaseException:
            # The failed connect task never hands the client to close()
            client.close()
            raise
        logger.info("Connected to MongoDB database %s", database.name)
        return database
