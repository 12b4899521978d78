"""SQL rendering for MySQL DDL fragments.

Pure functions turning canonical models into DDL text.  Every identifier
is backtick-quoted and every string literal is single-quoted with the
quote character doubled, so document content can never break out of its
SQL position.  Table options (engine, collation, charset) are never
quoted: they are interpolated only when they match ``SAFE_IDENTIFIER``
and are otherwise omitted (or rejected in strict mode).

Usage:
    from db_mirror.schema.render import create_table_sql, quote_identifier

    sql = create_table_sql(obj)
    drop = f"DROP TABLE {quote_identifier(obj.name)}"
"""

import logging
import re

from db_mirror.schema.errors import (
    InputFormatError,
    MissingTableDefinitionError,
    MissingViewDefinitionError,
    UnsafeIdentifierError,
)
from db_mirror.schema.models import (
    DEFAULT_CHARACTER_SET,
    DEFAULT_COLLATION,
    ColumnSchema,
    IndexSchema,
    ObjectSchema,
)
from db_mirror.schema.signature import strip_generation_marker

logger = logging.getLogger(__name__)

SAFE_IDENTIFIER = re.compile(r"^[A-Za-z0-9_]+$")

# Expression defaults MySQL accepts without surrounding parentheses.
_BARE_EXPRESSION_DEFAULT = re.compile(
    r"^(CURRENT_TIMESTAMP(\(\d*\))?|NOW\(\d*\)|LOCALTIME(STAMP)?(\(\d*\))?|NULL|\(.*\))$",
    re.IGNORECASE | re.DOTALL,
)

# DEFINER=`user`@`host` in the statement header, between CREATE and VIEW.
_DEFINER_CLAUSE = re.compile(
    r"^(CREATE\s+(?:OR\s+REPLACE\s+)?(?:ALGORITHM\s*=\s*\w+\s+)?)"
    r"DEFINER\s*=\s*(?:`[^`]*`|'[^']*'|[^\s@]+)(?:@(?:`[^`]*`|'[^']*'|\S+))?\s+",
    re.IGNORECASE,
)


# ------------------------------------------------------------------
# Quoting
# ------------------------------------------------------------------


def quote_identifier(identifier: str) -> str:
    """Backtick-quote an identifier, doubling embedded backticks.

    Examples:
        >>> quote_identifier("order")
        '`order`'
        >>> quote_identifier("a`b")
        '`a``b`'
    """
    return "`" + identifier.replace("`", "``") + "`"


def quote_string(value: str) -> str:
    """Single-quote a string literal.

    Quotes are doubled; backslashes are doubled too because MySQL treats
    them as escapes in the default SQL mode.

    Examples:
        >>> quote_string("it's")
        "'it''s'"
    """
    return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"


def is_safe_identifier(value: str) -> bool:
    """True when *value* may be interpolated bare (engine, collation...)."""
    return bool(SAFE_IDENTIFIER.match(value))


def safe_option(option: str, value: str, strict: bool = False) -> str | None:
    """Return *value* when safe to interpolate, else ``None``.

    Blank values are ``None`` without complaint.  Unsafe values are logged
    and dropped, or raise ``UnsafeIdentifierError`` when *strict*.
    """
    value = value.strip()
    if not value:
        return None
    if is_safe_identifier(value):
        return value
    if strict:
        raise UnsafeIdentifierError(option, value)
    logger.warning("Omitting unsafe %s value %r", option, value)
    return None


# ------------------------------------------------------------------
# Columns and indexes
# ------------------------------------------------------------------


def _default_clause(field: ColumnSchema) -> str:
    kind = field.default_kind
    if kind == "null":
        return " DEFAULT NULL"
    if kind == "literal":
        return " DEFAULT " + quote_string(field.default_value)
    if kind == "expression":
        expression = field.default_value.strip()
        if not _BARE_EXPRESSION_DEFAULT.match(expression):
            expression = f"({expression})"
        return " DEFAULT " + expression
    return ""


def column_definition_sql(field: ColumnSchema, strict: bool = False) -> str:
    """Render a full column definition (name, type, modifiers).

    Generated columns render as ``AS (expr) STORED|VIRTUAL`` and carry
    no nullability/default clauses.

    Raises:
        InputFormatError: If the field has a blank name or type.

    Examples:
        >>> column_definition_sql(ColumnSchema(name="id", type="int", nullable=False))
        '`id` int NOT NULL'
    """
    column_type = field.type.strip()
    if not field.name or not column_type:
        raise InputFormatError(
            f"Invalid field definition while generating SQL: {field.name!r}"
        )

    sql = f"{quote_identifier(field.name)} {column_type}"
    extra = field.extra.strip()

    if field.is_generated:
        storage = "STORED" if "stored" in extra.lower() else "VIRTUAL"
        sql += f" AS ({field.generation_expression.strip()}) {storage}"
        if field.comment:
            sql += " COMMENT " + quote_string(field.comment)
        return sql

    collation = safe_option("column collation", field.collation, strict)
    if collation:
        sql += f" COLLATE {collation}"

    sql += " NULL" if field.nullable else " NOT NULL"
    sql += _default_clause(field)

    clean_extra = strip_generation_marker(extra)
    if clean_extra:
        sql += " " + clean_extra

    if field.comment:
        sql += " COMMENT " + quote_string(field.comment)

    return sql


def index_columns_sql(index: IndexSchema) -> str:
    """Render ``(`a`, `b`(10))`` for an index's column list."""
    parts = []
    for column in index.columns:
        part = quote_identifier(column.name)
        if column.length is not None:
            part += f"({int(column.length)})"
        parts.append(part)
    return "(" + ", ".join(parts) + ")"


def index_definition_sql(index: IndexSchema, with_add: bool = False) -> str:
    """Render an index definition for CREATE TABLE or ``ALTER ... ADD``.

    Examples:
        >>> from db_mirror.schema.models import IndexColumn
        >>> pk = IndexSchema(name="PRIMARY", unique=True, columns=(IndexColumn(name="id"),))
        >>> index_definition_sql(pk, with_add=True)
        'ADD PRIMARY KEY (`id`)'
    """
    prefix = "ADD " if with_add else ""
    columns = index_columns_sql(index)
    index_type = index.type.upper()

    if index.is_primary:
        return f"{prefix}PRIMARY KEY {columns}"
    if index_type == "FULLTEXT":
        kind = "FULLTEXT KEY"
    elif index_type == "SPATIAL":
        kind = "SPATIAL KEY"
    elif index.unique:
        kind = "UNIQUE KEY"
    else:
        kind = "KEY"
    return f"{prefix}{kind} {quote_identifier(index.name)} {columns}"


def drop_index_sql(index_name: str) -> str:
    """Render the ALTER TABLE operation dropping an index."""
    if index_name == "PRIMARY":
        return "DROP PRIMARY KEY"
    return "DROP INDEX " + quote_identifier(index_name)


# ------------------------------------------------------------------
# Whole statements
# ------------------------------------------------------------------


def create_table_sql(obj: ObjectSchema, strict: bool = False) -> str:
    """Build the CREATE TABLE statement for a table.

    A non-empty ``create_sql`` is used verbatim (minus a trailing ``;``).
    Otherwise the statement is synthesized from fields and indexes.

    Raises:
        MissingTableDefinitionError: No fields and no ``create_sql``.
    """
    create_sql = obj.create_sql.strip()
    if create_sql:
        return create_sql.rstrip(";").rstrip()

    if not obj.fields:
        raise MissingTableDefinitionError(obj.name)

    fields = sorted(obj.fields, key=lambda f: (f.position, f.name))
    lines = [f"  {column_definition_sql(field, strict)}" for field in fields]
    lines.extend(f"  {index_definition_sql(index)}" for index in obj.indexes)

    sql = f"CREATE TABLE {quote_identifier(obj.name)} (\n" + ",\n".join(lines) + "\n)"

    engine = safe_option("engine", obj.engine, strict)
    if engine:
        sql += f" ENGINE={engine}"
    collation = safe_option("collation", obj.collation, strict)
    if collation:
        sql += f" COLLATE={collation}"
    return sql


def prepare_view_sql(create_sql: str, view_name: str) -> str:
    """Rewrite a stored view statement for idempotent re-application.

    Strips the ``DEFINER=`` clause (tied to the originating server) and
    forces ``CREATE OR REPLACE``.

    Raises:
        MissingViewDefinitionError: Empty *create_sql*.
        InputFormatError: The statement is not a CREATE statement.

    Examples:
        >>> prepare_view_sql(
        ...     "CREATE ALGORITHM=UNDEFINED DEFINER=`root`@`%` VIEW `v` AS select 1;", "v"
        ... )
        'CREATE OR REPLACE ALGORITHM=UNDEFINED VIEW `v` AS select 1'
    """
    sql = create_sql.strip().rstrip(";").rstrip()
    if not sql:
        raise MissingViewDefinitionError(view_name)

    sql = _DEFINER_CLAUSE.sub(lambda m: m.group(1), sql, count=1)

    if not re.match(r"^CREATE\s+OR\s+REPLACE\s+", sql, re.IGNORECASE):
        sql = re.sub(r"^CREATE\s+", "CREATE OR REPLACE ", sql, count=1, flags=re.IGNORECASE)

    if not re.match(r"^CREATE\s+", sql, re.IGNORECASE):
        raise InputFormatError(f"Invalid create_sql for view '{view_name}'.")

    return sql


def create_database_sql(
    name: str,
    charset: str = DEFAULT_CHARACTER_SET,
    collation: str = DEFAULT_COLLATION,
    strict: bool = False,
) -> str:
    """Build CREATE DATABASE, falling back to defaults for unsafe tokens."""
    charset = safe_option("character set", charset, strict) or DEFAULT_CHARACTER_SET
    collation = safe_option("collation", collation, strict) or DEFAULT_COLLATION
    return (
        f"CREATE DATABASE {quote_identifier(name)}"
        f" CHARACTER SET {charset} COLLATE {collation}"
    )
