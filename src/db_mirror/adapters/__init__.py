"""Database adapters package.

Provides the ``DatabaseClient`` Protocol and the async MySQL adapter.

Usage:
    from db_mirror.adapters import DatabaseClient, AsyncMySQLAdapter
"""

from db_mirror.adapters.base import DatabaseClient
from db_mirror.adapters.mysql import AsyncMySQLAdapter

__all__ = [
    "DatabaseClient",
    "AsyncMySQLAdapter",
]
