"""MySQL administration client.

Talks to the shared database engine with the administrative account:
health probing, and per-project database/user management.
"""

import asyncio
import logging

import aiomysql

from containerflow.config import MySQLConfig
from containerflow.logging_schema import LogEvent

logger = logging.getLogger(__name__)

# Errors meaning "engine not reachable (yet)" rather than a bad statement
_UNREACHABLE = (aiomysql.OperationalError, OSError, asyncio.TimeoutError)


class MySQLAdmin:
    """Administrative access to the shared MySQL engine.

    Connections are opened per call; the stack issues a handful of
    statements per project so a pool would only hold idle sockets.
    """

    def __init__(self, config: MySQLConfig) -> None:
        self._config = config

    async def _connect(self) -> aiomysql.Connection:
        return await aiomysql.connect(
            host=self._config.host,
            port=self._config.port,
            user=self._config.root_user,
            password=self._config.root_password,
            connect_timeout=self._config.connect_timeout,
            autocommit=True,
        )

    async def ping(self) -> bool:
        """Return True when the engine accepts an administrative connection."""
        try:
            conn = await self._connect()
        except _UNREACHABLE as exc:
            logger.debug("MySQL not reachable: %s", exc)
            return False
        try:
            await conn.ping(reconnect=False)
            return True
        except _UNREACHABLE as exc:
            logger.debug("MySQL ping failed: %s", exc)
            return False
        finally:
            conn.close()

    async def create_database_with_user(
        self, db_name: str, db_user: str, db_password: str
    ) -> None:
        """Create database and user, granting the user full access to it.

        db_name and db_user must already be sanitised identifiers
        ([A-Za-z0-9_]); the password is passed as a bound parameter.
        """
        conn = await self._connect()
        try:
            async with conn.cursor() as cur:
                await cur.execute(f"CREATE DATABASE IF NOT EXISTS `{db_name}`")
                await cur.execute(
                    "CREATE USER IF NOT EXISTS %s@'%%' IDENTIFIED BY %s",
                    (db_user, db_password),
                )
                await cur.execute(f"GRANT ALL PRIVILEGES ON `{db_name}`.* TO %s@'%%'", (db_user,))
                await cur.execute("FLUSH PRIVILEGES")
        finally:
            conn.close()
        logger.info(
            "Created MySQL database and user: %s",
            db_name,
            extra={"event": LogEvent.DATABASE_CREATED, "database": db_name, "user": db_user},
        )

    async def drop_database_and_user(self, db_name: str, db_user: str) -> None:
        """Drop database and user if they exist."""
        conn = await self._connect()
        try:
            async with conn.cursor() as cur:
                await cur.execute(f"DROP DATABASE IF EXISTS `{db_name}`")
                await cur.execute("DROP USER IF EXISTS %s@'%%'", (db_user,))
                await cur.execute("FLUSH PRIVILEGES")
        finally:
            conn.close()
        logger.info(
            "Dropped MySQL database and user: %s",
            db_name,
            extra={"event": LogEvent.DATABASE_DROPPED, "database": db_name, "user": db_user},
        )
