"""db-mirror: dump MySQL schemas to documents and mirror them back.

Captures tables, views, columns and indexes of a MySQL-family database
into a portable JSON or XLSX document, and compiles the minimal DDL that
makes a live database match such a document.

Usage:
    from db_mirror import AsyncMySQLAdapter, SchemaIntrospector
    from db_mirror import normalize_schema, build_write_plan, apply_plan
    from db_mirror import read_schema_file, write_schema_file
    from db_mirror import load_db_config, resolve_connection
"""

__version__ = "0.1.0"

# Adapters
from db_mirror.adapters.base import DatabaseClient
from db_mirror.adapters.mysql import AsyncMySQLAdapter

# Config
from db_mirror.config.loader import load_db_config
from db_mirror.config.models import DatabaseConfig, DatabaseProfile

# Documents
from db_mirror.document import read_schema_file, write_schema_file

# Factory
from db_mirror.factory import (
    ConnectionSettings,
    ProfileNotFoundError,
    get_adapter,
    resolve_connection,
    resolve_url,
)

# Schema
from db_mirror.schema.introspector import LiveSchema, SchemaIntrospector
from db_mirror.schema.models import SchemaDocument
from db_mirror.schema.normalizer import normalize_schema
from db_mirror.schema.plan import apply_plan, build_write_plan

__all__ = [
    # Adapters
    "DatabaseClient",
    "AsyncMySQLAdapter",
    # Config
    "load_db_config",
    "DatabaseProfile",
    "DatabaseConfig",
    # Documents
    "read_schema_file",
    "write_schema_file",
    # Factory
    "get_adapter",
    "resolve_connection",
    "resolve_url",
    "ConnectionSettings",
    "ProfileNotFoundError",
    # Schema
    "SchemaDocument",
    "normalize_schema",
    "SchemaIntrospector",
    "LiveSchema",
    "build_write_plan",
    "apply_plan",
]
