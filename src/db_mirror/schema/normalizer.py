"""Schema normalization: loosely-structured documents -> canonical model.

Accepts every document shape the dump/write tool has produced or users
have hand-written over time:

- ``objects`` as a list, or as a mapping keyed by object name
- separate ``tables`` and ``views`` collections
- fields as a list or a name-keyed mapping, with alias keys
- indexes as a list or a JSON-encoded string
- tabular worksheets (one row per field, see ``schema_from_worksheets``)

Defaults are applied deterministically so that normalizing identical input
always yields an identical ``SchemaDocument``.  The plan compiler relies on
this for idempotence.

Usage:
    from db_mirror.schema.normalizer import normalize_schema

    doc = normalize_schema(json.loads(text))
    for obj in doc.objects:
        print(obj.name, obj.type, len(obj.fields))
"""

import json
import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from db_mirror.schema.errors import InputFormatError
from db_mirror.schema.models import (
    DEFAULT_CHARACTER_SET,
    DEFAULT_COLLATION,
    PRIMARY_INDEX,
    ColumnSchema,
    DatabaseInfo,
    IndexColumn,
    IndexSchema,
    ObjectSchema,
    SchemaDocument,
)

logger = logging.getLogger(__name__)

# Fixed header of the tabular (worksheet) form, one row per field.
TABULAR_HEADERS: tuple[str, ...] = (
    "kind",
    "table_name",
    "field_name",
    "position",
    "column_type",
    "nullable",
    "default_kind",
    "default_value",
    "extra",
    "key",
    "collation",
    "comment",
    "generation_expression",
    "indexes_json",
    "table_engine",
    "table_collation",
    "create_sql",
)

_TRUE_TOKENS = frozenset({"yes", "y", "1", "true", "on", "null"})
_FALSE_TOKENS = frozenset({"no", "n", "0", "false", "off"})
_DEFAULT_KINDS = frozenset({"none", "null", "literal", "expression"})


# ------------------------------------------------------------------
# Scalar helpers
# ------------------------------------------------------------------


def parse_yes_no(value: Any, default: bool) -> bool:
    """Parse a yes/no token.

    Booleans pass through.  Strings are trimmed and case-folded;
    ``yes, y, 1, true, on, null`` are true and ``no, n, 0, false, off``
    are false.  Empty or unrecognized tokens return *default*.

    Examples:
        >>> parse_yes_no(" YES ", False)
        True
        >>> parse_yes_no("off", True)
        False
        >>> parse_yes_no("maybe", True)
        True
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    token = str(value).strip().lower()
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    return default


def normalize_header(label: Any) -> str:
    """Normalize a worksheet header label into a field key.

    Examples:
        >>> normalize_header(" Field Name ")
        'field_name'
        >>> normalize_header("Table-Engine (opt)")
        'table_engine_opt'
    """
    key = str(label if label is not None else "").strip().lower()
    key = re.sub(r"[\s\-.]+", "_", key)
    return re.sub(r"[^a-z0-9_]", "", key)


def _pick(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the value of the first key present with a non-None value."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return default


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    text = _text(value).strip()
    if not text:
        return default
    try:
        return int(float(text))
    except ValueError:
        return default


def _to_bool(value: Any) -> bool:
    if isinstance(value, (bool, int, float)):
        return bool(value)
    return parse_yes_no(value, False)


def _as_named_list(collection: Any, what: str) -> list[dict[str, Any]]:
    """Turn a list, or a mapping keyed by name, into a list of mappings.

    Mapping keys are promoted to ``name`` when the element omits it.
    Non-mapping elements are skipped.
    """
    if collection is None:
        return []
    items: list[dict[str, Any]] = []
    if isinstance(collection, Mapping):
        for name, element in collection.items():
            if not isinstance(element, Mapping):
                continue
            element = dict(element)
            if element.get("name") is None:
                element["name"] = str(name)
            items.append(element)
        return items
    if isinstance(collection, Sequence) and not isinstance(collection, (str, bytes)):
        return [dict(element) for element in collection if isinstance(element, Mapping)]
    raise InputFormatError(f"Expected a list or mapping of {what}, got {type(collection).__name__}")


def _decode_indexes(raw: Any, object_name: str) -> Any:
    if not isinstance(raw, str):
        return raw
    if not raw.strip():
        return []
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring undecodable indexes for '%s'", object_name)
        return []


# ------------------------------------------------------------------
# Database / object / field / index normalization
# ------------------------------------------------------------------


def normalize_database(raw: Mapping[str, Any]) -> DatabaseInfo:
    """Extract database metadata, falling back to top-level keys."""
    meta = raw.get("database")
    meta = meta if isinstance(meta, Mapping) else {}

    name = _text(_pick(meta, "name", "db", default=""))
    if not name:
        name = _text(_pick(raw, "db", "database_name", default=""))

    charset = _text(_pick(meta, "default_character_set", "charset", default=""))
    collation = _text(_pick(meta, "default_collation", "collation", default=""))

    return DatabaseInfo(
        name=name,
        default_character_set=charset or DEFAULT_CHARACTER_SET,
        default_collation=collation or DEFAULT_COLLATION,
    )


def normalize_field(raw: Mapping[str, Any]) -> ColumnSchema | None:
    """Normalize one field record; returns ``None`` when it has no name."""
    name = _text(_pick(raw, "field", "column_name", "name", default=""))
    if not name:
        return None

    nullable = parse_yes_no(_pick(raw, "nullable", "null", default=True), True)

    default_value = _text(_pick(raw, "default_value", "default", default=""))
    default_kind = _text(raw.get("default_kind")).strip().lower()
    if default_kind not in _DEFAULT_KINDS:
        if default_kind:
            logger.debug("Unknown default_kind %r for field '%s'", default_kind, name)
        if default_value != "":
            default_kind = "literal"
        else:
            default_kind = "null" if nullable else "none"

    return ColumnSchema(
        name=name,
        position=_to_int(_pick(raw, "position", "ordinal_position", default=0)),
        type=_text(_pick(raw, "type", "column_type", default="varchar(255)")),
        nullable=nullable,
        default_kind=default_kind,
        default_value=default_value,
        extra=_text(raw.get("extra")),
        key=_text(raw.get("key")),
        collation=_text(raw.get("collation")),
        comment=_text(raw.get("comment")),
        generation_expression=_text(raw.get("generation_expression")),
    )


def normalize_fields(raw_fields: Any, object_name: str = "") -> tuple[ColumnSchema, ...]:
    """Normalize a field collection and sort it by ``(position, name)``."""
    by_name: dict[str, ColumnSchema] = {}
    for raw in _as_named_list(raw_fields, "fields"):
        field = normalize_field(raw)
        if field is None:
            logger.debug("Discarding nameless field in '%s'", object_name)
            continue
        if field.name in by_name:
            logger.warning("Duplicate field '%s' in '%s' ignored", field.name, object_name)
            continue
        by_name[field.name] = field
    return tuple(sorted(by_name.values(), key=lambda f: (f.position, f.name)))


def _index_columns(raw_columns: Any) -> list[IndexColumn]:
    if not isinstance(raw_columns, Sequence) or isinstance(raw_columns, (str, bytes)):
        return []

    columns: list[IndexColumn] = []
    for raw in raw_columns:
        if isinstance(raw, str):
            if raw.strip():
                columns.append(IndexColumn(name=raw))
        elif isinstance(raw, Mapping):
            name = _text(raw.get("name"))
            if not name.strip():
                continue
            length = _pick(raw, "length", "sub_part")
            length = None if _text(length).strip() == "" else _to_int(length)
            columns.append(IndexColumn(name=name, length=length))
    return columns


def index_sort_key(index: IndexSchema) -> tuple[int, str]:
    """Sort key placing ``PRIMARY`` first, then by name."""
    return (0 if index.name == PRIMARY_INDEX else 1, index.name)


def normalize_indexes(raw_indexes: Any, object_name: str = "") -> tuple[IndexSchema, ...]:
    """Normalize an index collection (list or JSON-encoded string).

    Entries without a name or without any non-blank column are discarded.
    """
    raw_indexes = _decode_indexes(raw_indexes, object_name)
    if isinstance(raw_indexes, Mapping):
        raw_indexes = _as_named_list(raw_indexes, "indexes")
    if not isinstance(raw_indexes, Sequence) or isinstance(raw_indexes, (str, bytes)):
        return ()

    by_name: dict[str, IndexSchema] = {}
    for raw in raw_indexes:
        if not isinstance(raw, Mapping):
            continue
        name = _text(raw.get("name"))
        columns = _index_columns(raw.get("columns"))
        if not name or not columns:
            logger.debug("Discarding incomplete index %r in '%s'", name, object_name)
            continue
        if name in by_name:
            logger.warning("Duplicate index '%s' in '%s' ignored", name, object_name)
            continue
        index_type = _text(raw.get("type")).strip().upper() or "BTREE"
        by_name[name] = IndexSchema(
            name=name,
            unique=_to_bool(raw.get("unique", False)),
            type=index_type,
            columns=tuple(columns),
        )
    return tuple(sorted(by_name.values(), key=index_sort_key))


def normalize_object(
    raw: Mapping[str, Any], keep_incomplete: bool = False
) -> ObjectSchema | None:
    """Normalize one table/view record.

    Returns ``None`` for a nameless object, and for an object with neither
    fields nor a usable ``create_sql`` unless *keep_incomplete* is set.
    """
    name = _text(_pick(raw, "name", "table_name", default=""))
    if not name:
        logger.debug("Discarding nameless object")
        return None

    type_raw = _text(_pick(raw, "type", "kind", default="table")).strip().lower()
    fields = normalize_fields(_pick(raw, "fields", "columns"), name)
    create_sql = _text(_pick(raw, "create_sql", "sql", default=""))

    if not fields and not create_sql.strip() and not keep_incomplete:
        logger.warning("Dropping '%s': no fields and no create_sql", name)
        return None

    return ObjectSchema(
        name=name,
        type="view" if type_raw == "view" else "table",
        engine=_text(_pick(raw, "engine", "table_engine", default="")),
        collation=_text(_pick(raw, "collation", "table_collation", default="")),
        create_sql=create_sql,
        fields=fields,
        indexes=normalize_indexes(raw.get("indexes"), name),
    )


def _extract_objects(raw: Mapping[str, Any]) -> list[dict[str, Any]]:
    if raw.get("objects") is not None:
        return _as_named_list(raw["objects"], "objects")

    objects = _as_named_list(raw.get("tables"), "tables")
    for view in _as_named_list(raw.get("views"), "views"):
        view["type"] = "view"
        objects.append(view)
    return objects


def normalize_schema(raw: Any, keep_incomplete: bool = False) -> SchemaDocument:
    """Normalize a decoded document into a ``SchemaDocument``.

    Args:
        raw: Decoded document (typically from JSON, or from
            ``schema_from_worksheets``).
        keep_incomplete: Keep objects that have neither fields nor
            ``create_sql`` so that the plan compiler reports them,
            instead of dropping them here.

    Returns:
        Canonical ``SchemaDocument``.

    Raises:
        InputFormatError: If *raw* is not a mapping, or an object
            collection is neither a list nor a mapping.

    Example:
        >>> doc = normalize_schema({"tables": {"users": {"fields": {"id": {"type": "int"}}}}})
        >>> doc.objects[0].fields[0].name
        'id'
    """
    if not isinstance(raw, Mapping):
        raise InputFormatError(
            f"Schema document must be a mapping, got {type(raw).__name__}"
        )

    objects: dict[str, ObjectSchema] = {}
    for raw_object in _extract_objects(raw):
        obj = normalize_object(raw_object, keep_incomplete=keep_incomplete)
        if obj is None:
            continue
        if obj.name in objects:
            logger.warning("Duplicate object '%s' ignored", obj.name)
            continue
        objects[obj.name] = obj

    generated_at = raw.get("generated_at")
    return SchemaDocument(
        database=normalize_database(raw),
        objects=tuple(objects.values()),
        generated_at=_text(generated_at) if generated_at is not None else None,
    )


# ------------------------------------------------------------------
# Tabular (worksheet) input
# ------------------------------------------------------------------


def _row_is_empty(row: Mapping[str, str]) -> bool:
    return all(value.strip() == "" for value in row.values())


def schema_from_worksheets(
    worksheets: Mapping[str, Sequence[Sequence[Any]]],
) -> dict[str, Any]:
    """Rebuild a raw document from tabular worksheets.

    Each worksheet holds one object: a header row followed by one row per
    field.  Object-level metadata is only present on the first data row,
    so the first non-empty value of each metadata column wins.

    Args:
        worksheets: Mapping of sheet name to rows (header first).

    Returns:
        Raw document ``{"objects": [...]}`` for ``normalize_schema``.
    """
    objects: list[dict[str, Any]] = []

    for sheet_name, rows in worksheets.items():
        if not rows:
            continue
        header = [normalize_header(label) for label in rows[0]]
        if not any(header):
            continue

        meta: dict[str, str] = {}
        fields: list[dict[str, Any]] = []

        for row_number, row in enumerate(rows[1:], start=2):
            assoc = {
                key: _text(row[idx] if idx < len(row) else None)
                for idx, key in enumerate(header)
                if key
            }
            if _row_is_empty(assoc):
                continue

            for key in ("table_name", "kind", "table_engine", "table_collation",
                        "create_sql", "indexes_json"):
                if not meta.get(key) and assoc.get(key, "").strip():
                    meta[key] = assoc[key]

            field_name = assoc.get("field_name") or assoc.get("column_name") or ""
            if not field_name:
                continue

            field: dict[str, Any] = {
                "name": field_name,
                "position": assoc["position"] if "position" in assoc else row_number,
                "type": _pick(assoc, "column_type", "type", default="varchar(255)"),
                "nullable": assoc.get("nullable", "YES"),
                "default_value": _pick(assoc, "default_value", "default", default=""),
            }
            for key in ("default_kind", "extra", "key", "collation", "comment",
                        "generation_expression"):
                if key in assoc:
                    field[key] = assoc[key]
            fields.append(field)

        create_sql = meta.get("create_sql", "")
        if not fields and not create_sql:
            continue

        kind = meta.get("kind", "").strip().lower()
        objects.append({
            "name": meta.get("table_name") or str(sheet_name),
            "type": "view" if kind == "view" else "table",
            "engine": meta.get("table_engine", ""),
            "collation": meta.get("table_collation", ""),
            "create_sql": create_sql,
            "fields": fields,
            "indexes": meta.get("indexes_json", ""),
        })

    return {"objects": objects}
