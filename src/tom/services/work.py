"""Unit of work: one connection and one transaction, finished by one commit."""

import structlog
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncTransaction


class UnitOfWork:
    """An open connection with a begun transaction.

    ``commit`` persists and releases both; ``dispose`` releases them without
    committing, which rolls the transaction back. Either leaves the unit
    closed, and closing twice is harmless.
    """

    def __init__(
        self,
        connection: AsyncConnection,
        transaction: AsyncTransaction,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._connection = connection
        self._transaction = transaction
        self._is_open = True
        self._logger = logger or structlog.get_logger(__name__)

    @classmethod
    async def create(
        cls,
        engine: AsyncEngine,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> "UnitOfWork":
        """Open a connection on ``engine`` and begin a transaction on it."""
        connection = await engine.connect()
        try:
            transaction = await connection.begin()
        except BaseException:
            await connection.close()
            raise
        work = cls(connection, transaction, logger)
        work._logger.debug("unit_of_work_opened")
        return work

    @property
    def connection(self) -> AsyncConnection:
        return self._connection

    @property
    def transaction(self) -> AsyncTransaction:
        return self._transaction

    @property
    def is_open(self) -> bool:
        return self._is_open

    async def commit(self) -> None:
        """Commit the transaction, then release it and the connection."""
        try:
            await self._transaction.commit()
        finally:
            await self._release()
        self._logger.debug("unit_of_work_committed")

    async def dispose(self) -> None:
        """Release the transaction and connection without committing."""
        if not self._is_open:
            return
        await self._release()
        self._logger.debug("unit_of_work_disposed")

    async def _release(self) -> None:
        self._is_open = False
        try:
            await self._transaction.close()
        finally:
            await self._connection.close()

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()
