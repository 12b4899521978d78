"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol that all adapters must implement.
All methods are ``async def`` -- the library is async-first.

Usage:
    from db_mirror.adapters.base import DatabaseClient

    async def do_work(client: DatabaseClient) -> None:
        rows = await client.fetch_all(
            "SELECT TABLE_NAME AS name FROM information_schema.TABLES"
            " WHERE TABLE_SCHEMA = :db",
            {"db": "shop"},
        )
        await client.execute("ALTER TABLE `users` ADD COLUMN `email` varchar(255) NULL")
        await client.close()
"""

from typing import Any, Protocol


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement.

    The plan executor only needs ``execute()``; the introspector only
    needs ``fetch_all()``.

    All methods are async -- callers must ``await`` every operation.
    """

    async def fetch_all(
        self, sql: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Run a read query and return every row.

        Args:
            sql: Query text using ``:name`` bind parameters.
            params: Optional dict of bind parameter values.

        Returns:
            List of dicts keyed by column label, one per row.  Empty list
            if no rows.

        Example:
            rows = await client.fetch_all(
                "SELECT SCHEMA_NAME AS name FROM information_schema.SCHEMATA"
            )
        """
        ...

    async def execute(self, sql: str) -> None:
        """Execute one DDL statement verbatim.

        The statement is sent to the driver as-is: no bind parameter
        parsing, so colons and percent signs inside literals are safe.

        Args:
            sql: Complete SQL statement.

        Raises:
            Exception: Whatever the driver raises; the plan executor wraps
                it in ``ExecutionError``.

        Example:
            await client.execute("DROP VIEW `active_users`")
        """
        ...

    async def close(self) -> None:
        """Close database connection and clean up resources."""
        ...
