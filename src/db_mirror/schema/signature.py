"""Comparable fingerprints for columns and indexes.

Two columns (or indexes) with equal signatures need no DDL.  Pure logic --
no I/O.
"""

import re

from db_mirror.schema.models import ColumnSchema, IndexSchema

_DEFAULT_GENERATED = re.compile(r"\bDEFAULT_GENERATED\b", re.IGNORECASE)


def strip_generation_marker(extra: str) -> str:
    """Remove the ``DEFAULT_GENERATED`` marker MySQL reports in ``EXTRA``.

    Examples:
        >>> strip_generation_marker("DEFAULT_GENERATED on update CURRENT_TIMESTAMP")
        'on update CURRENT_TIMESTAMP'
    """
    return " ".join(_DEFAULT_GENERATED.sub("", extra).split())


def column_signature(field: ColumnSchema) -> tuple:
    """Fingerprint of a column definition.

    Position is deliberately excluded; placement is compared separately
    by the plan compiler.

    Examples:
        >>> a = ColumnSchema(name="ID", type="INT ")
        >>> b = ColumnSchema(name="id", type="int")
        >>> column_signature(a) == column_signature(b)
        True
    """
    return (
        field.name.strip().lower(),
        field.type.strip().lower(),
        field.nullable,
        field.default_kind.lower(),
        field.default_value,
        strip_generation_marker(field.extra).lower(),
        field.collation.strip().lower(),
        field.comment,
        field.generation_expression.strip(),
    )


def index_signature(index: IndexSchema) -> tuple:
    """Fingerprint of an index definition.

    Examples:
        >>> from db_mirror.schema.models import IndexColumn
        >>> idx = IndexSchema(name="idx_a", unique=True, columns=(IndexColumn(name="X"),))
        >>> index_signature(idx)
        ('IDX_A', True, 'BTREE', ('x:',))
    """
    columns = tuple(
        f"{col.name.lower()}:{'' if col.length is None else col.length}"
        for col in index.columns
    )
    return (
        index.name.upper(),
        index.unique,
        (index.type or "BTREE").upper(),
        columns,
    )
