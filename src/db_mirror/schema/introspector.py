"""MySQL schema introspection via information_schema.

This module reads the live database through a ``DatabaseClient``:
- Objects (tables and views), engine and collation
- Columns: type, nullability, default kind, extra, comment, generation
- Indexes from ``information_schema.STATISTICS``
- Verbatim CREATE statements (``SHOW CREATE TABLE`` / ``SHOW CREATE VIEW``)

The plan compiler never talks to the database.  It reads through the
narrow ``LiveSchemaReader`` protocol, implemented by the in-memory
``LiveSchema`` snapshot that ``SchemaIntrospector.snapshot()`` builds
fresh on every run.

Usage:
    adapter = AsyncMySQLAdapter(url)
    introspector = SchemaIntrospector(adapter)

    document = await introspector.dump("shop")      # dump mode
    live = await introspector.snapshot("shop")      # write mode
    plan = build_write_plan(desired.objects, live, "shop")
"""

import logging
import re
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, Protocol

from db_mirror.adapters.base import DatabaseClient
from db_mirror.schema.models import (
    DEFAULT_CHARACTER_SET,
    DEFAULT_COLLATION,
    ColumnSchema,
    DatabaseInfo,
    IndexSchema,
    LiveObject,
    ObjectSchema,
    SchemaDocument,
    TableOptions,
)
from db_mirror.schema.normalizer import index_sort_key, normalize_indexes
from db_mirror.schema.render import quote_identifier

logger = logging.getLogger(__name__)

_EXPRESSION_DEFAULT = re.compile(
    r"^(CURRENT_TIMESTAMP(?:\(\d*\))?|NOW\(\)|UUID\(\)|NULL|\(.+\))$",
    re.IGNORECASE | re.DOTALL,
)


class LiveSchemaReader(Protocol):
    """Read-only view of the live schema consumed by the plan compiler."""

    def list_objects(self, schema: str) -> list[LiveObject]:
        """All tables and views in *schema*."""
        ...

    def describe_fields(self, schema: str, name: str) -> list[ColumnSchema]:
        """Columns of an object, ordered by position."""
        ...

    def describe_indexes(self, schema: str, name: str) -> list[IndexSchema]:
        """Indexes of a table grouped by name, ``PRIMARY`` first."""
        ...

    def describe_table_options(self, schema: str, name: str) -> TableOptions:
        """Engine and collation of a table."""
        ...


class LiveSchema:
    """In-memory ``LiveSchemaReader`` over one schema snapshot.

    The *schema* argument of the read methods is accepted for protocol
    compatibility; a snapshot always describes exactly one schema.

    Example:
        >>> live = LiveSchema([ObjectSchema(name="v", type="view", create_sql="x")])
        >>> live.list_objects("shop")
        [LiveObject(name='v', is_view=True)]
    """

    def __init__(self, objects: Iterable[ObjectSchema] = ()):
        self._objects: dict[str, ObjectSchema] = {obj.name: obj for obj in objects}

    @classmethod
    def from_document(cls, document: SchemaDocument) -> "LiveSchema":
        """Treat a document as if it were the live state."""
        return cls(document.objects)

    def list_objects(self, schema: str) -> list[LiveObject]:
        return [
            LiveObject(name=obj.name, is_view=obj.is_view)
            for obj in sorted(self._objects.values(), key=lambda o: o.name)
        ]

    def describe_fields(self, schema: str, name: str) -> list[ColumnSchema]:
        obj = self._objects.get(name)
        if obj is None:
            return []
        return sorted(obj.fields, key=lambda f: (f.position, f.name))

    def describe_indexes(self, schema: str, name: str) -> list[IndexSchema]:
        obj = self._objects.get(name)
        if obj is None or obj.is_view:
            return []
        return sorted(obj.indexes, key=index_sort_key)

    def describe_table_options(self, schema: str, name: str) -> TableOptions:
        obj = self._objects.get(name)
        if obj is None:
            return TableOptions()
        return TableOptions(engine=obj.engine, collation=obj.collation)


def detect_default(
    column_default: Any, nullable: bool, extra: str
) -> tuple[str, str]:
    """Classify an ``information_schema.COLUMNS.COLUMN_DEFAULT`` value.

    Returns:
        ``(default_kind, default_value)``.

    Examples:
        >>> detect_default(None, True, "")
        ('null', '')
        >>> detect_default("CURRENT_TIMESTAMP", False, "DEFAULT_GENERATED")
        ('expression', 'CURRENT_TIMESTAMP')
        >>> detect_default("0", False, "")
        ('literal', '0')
    """
    if column_default is None:
        return ("null" if nullable else "none", "")

    value = str(column_default)
    if "default_generated" in extra.lower() or _EXPRESSION_DEFAULT.match(value.strip()):
        return ("expression", value)
    return ("literal", value)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


class SchemaIntrospector:
    """Introspects a MySQL schema through a ``DatabaseClient``.

    Usage:
        introspector = SchemaIntrospector(adapter)
        if await introspector.database_exists("shop"):
            document = await introspector.dump("shop")
    """

    def __init__(self, adapter: DatabaseClient):
        """Initialize with a connected adapter.

        Args:
            adapter: Any ``DatabaseClient``; only ``fetch_all()`` is used.
        """
        self._adapter = adapter

    async def database_exists(self, schema: str) -> bool:
        """Check whether *schema* exists on the server."""
        rows = await self._adapter.fetch_all(
            "SELECT 1 AS present FROM information_schema.SCHEMATA"
            " WHERE SCHEMA_NAME = :db LIMIT 1",
            {"db": schema},
        )
        return bool(rows)

    async def fetch_database_info(self, schema: str) -> DatabaseInfo:
        """Read name, default charset and default collation of *schema*."""
        rows = await self._adapter.fetch_all(
            """
            SELECT
                SCHEMA_NAME AS name,
                DEFAULT_CHARACTER_SET_NAME AS charset,
                DEFAULT_COLLATION_NAME AS collation
            FROM information_schema.SCHEMATA
            WHERE SCHEMA_NAME = :db
            """,
            {"db": schema},
        )
        row = rows[0] if rows else {}
        return DatabaseInfo(
            name=_text(row.get("name")) or schema,
            default_character_set=_text(row.get("charset")) or DEFAULT_CHARACTER_SET,
            default_collation=_text(row.get("collation")) or DEFAULT_COLLATION,
        )

    async def _fetch_tables(self, schema: str) -> list[dict[str, Any]]:
        return await self._adapter.fetch_all(
            """
            SELECT
                TABLE_NAME AS name,
                TABLE_TYPE AS table_type,
                ENGINE AS engine,
                TABLE_COLLATION AS collation
            FROM information_schema.TABLES
            WHERE TABLE_SCHEMA = :db
            ORDER BY TABLE_NAME
            """,
            {"db": schema},
        )

    async def list_objects(self, schema: str) -> list[LiveObject]:
        """List tables and views in *schema*, ordered by name."""
        return [
            LiveObject(
                name=_text(row["name"]),
                is_view=_text(row.get("table_type")).upper() == "VIEW",
            )
            for row in await self._fetch_tables(schema)
        ]

    async def describe_fields(self, schema: str, name: str) -> list[ColumnSchema]:
        """Get columns for an object, ordered by ordinal position."""
        rows = await self._adapter.fetch_all(
            """
            SELECT
                COLUMN_NAME AS name,
                COLUMN_TYPE AS column_type,
                IS_NULLABLE AS is_nullable,
                COLUMN_DEFAULT AS column_default,
                EXTRA AS extra,
                COLUMN_KEY AS column_key,
                COLLATION_NAME AS collation,
                COLUMN_COMMENT AS comment,
                ORDINAL_POSITION AS position,
                GENERATION_EXPRESSION AS generation_expression
            FROM information_schema.COLUMNS
            WHERE TABLE_SCHEMA = :db
              AND TABLE_NAME = :table
            ORDER BY ORDINAL_POSITION
            """,
            {"db": schema, "table": name},
        )

        fields = []
        for row in rows:
            nullable = _text(row.get("is_nullable")).upper() == "YES"
            extra = _text(row.get("extra"))
            default_kind, default_value = detect_default(
                row.get("column_default"), nullable, extra
            )
            fields.append(
                ColumnSchema(
                    name=_text(row["name"]),
                    position=int(row.get("position") or 0),
                    type=_text(row.get("column_type")),
                    nullable=nullable,
                    default_kind=default_kind,
                    default_value=default_value,
                    extra=extra,
                    key=_text(row.get("column_key")),
                    collation=_text(row.get("collation")),
                    comment=_text(row.get("comment")),
                    generation_expression=_text(row.get("generation_expression")),
                )
            )
        logger.debug("Read %d columns for %s.%s", len(fields), schema, name)
        return fields

    async def describe_indexes(self, schema: str, name: str) -> list[IndexSchema]:
        """Get indexes for a table, grouped by name with ``PRIMARY`` first."""
        rows = await self._adapter.fetch_all(
            """
            SELECT
                INDEX_NAME AS name,
                NON_UNIQUE AS non_unique,
                INDEX_TYPE AS index_type,
                SEQ_IN_INDEX AS seq,
                COLUMN_NAME AS column_name,
                SUB_PART AS sub_part
            FROM information_schema.STATISTICS
            WHERE TABLE_SCHEMA = :db
              AND TABLE_NAME = :table
            ORDER BY INDEX_NAME, SEQ_IN_INDEX
            """,
            {"db": schema, "table": name},
        )

        # Accumulate columns per index name, then normalize once.
        grouped: dict[str, dict[str, Any]] = {}
        for row in rows:
            index_name = _text(row["name"])
            if index_name not in grouped:
                grouped[index_name] = {
                    "name": index_name,
                    "unique": int(row.get("non_unique") or 0) == 0,
                    "type": _text(row.get("index_type")).upper() or "BTREE",
                    "columns": [],
                }
            grouped[index_name]["columns"].append(
                (
                    int(row.get("seq") or 0),
                    {"name": _text(row.get("column_name")), "length": row.get("sub_part")},
                )
            )

        for index in grouped.values():
            index["columns"] = [col for _, col in sorted(index["columns"], key=lambda c: c[0])]

        return list(normalize_indexes(list(grouped.values()), name))

    async def describe_table_options(self, schema: str, name: str) -> TableOptions:
        """Get engine and collation for a table."""
        rows = await self._adapter.fetch_all(
            """
            SELECT ENGINE AS engine, TABLE_COLLATION AS collation
            FROM information_schema.TABLES
            WHERE TABLE_SCHEMA = :db AND TABLE_NAME = :table
            """,
            {"db": schema, "table": name},
        )
        row = rows[0] if rows else {}
        return TableOptions(
            engine=_text(row.get("engine")), collation=_text(row.get("collation"))
        )

    async def fetch_create_sql(self, schema: str, name: str, is_view: bool) -> str:
        """Get the verbatim CREATE statement for a table or view."""
        kind = "VIEW" if is_view else "TABLE"
        target = f"{quote_identifier(schema)}.{quote_identifier(name)}"
        # text() treats ":word" as a bind parameter.
        target = target.replace(":", "\\:")
        rows = await self._adapter.fetch_all(f"SHOW CREATE {kind} {target}")
        if not rows:
            return ""
        for key, value in rows[0].items():
            if str(key).lower().startswith("create "):
                return _text(value).strip()
        return ""

    async def _read_object(
        self, schema: str, row: dict[str, Any], with_create_sql: bool
    ) -> ObjectSchema:
        name = _text(row["name"])
        is_view = _text(row.get("table_type")).upper() == "VIEW"
        create_sql = ""
        if with_create_sql:
            create_sql = await self.fetch_create_sql(schema, name, is_view)
        return ObjectSchema(
            name=name,
            type="view" if is_view else "table",
            engine="" if is_view else _text(row.get("engine")),
            collation=_text(row.get("collation")),
            create_sql=create_sql,
            fields=tuple(await self.describe_fields(schema, name)),
            indexes=() if is_view else tuple(await self.describe_indexes(schema, name)),
        )

    async def dump(self, schema: str) -> SchemaDocument:
        """Introspect the full schema into a portable document.

        Args:
            schema: Database (schema) name.

        Returns:
            ``SchemaDocument`` with every table and view, including their
            verbatim CREATE statements and a ``generated_at`` timestamp.
        """
        objects = [
            await self._read_object(schema, row, with_create_sql=True)
            for row in await self._fetch_tables(schema)
        ]
        return SchemaDocument(
            database=await self.fetch_database_info(schema),
            objects=tuple(objects),
            generated_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        )

    async def snapshot(self, schema: str) -> LiveSchema:
        """Read the live structure once into a ``LiveSchemaReader``.

        CREATE statements are not needed for planning and are skipped.
        """
        objects = [
            await self._read_object(schema, row, with_create_sql=False)
            for row in await self._fetch_tables(schema)
        ]
        logger.debug("Snapshot of '%s': %d objects", schema, len(objects))
        return LiveSchema(objects)
