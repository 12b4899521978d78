"""Schema normalization, introspection, and write planning.

Provides the canonical schema model, document normalization
(``normalize_schema``), live introspection (``SchemaIntrospector``,
``LiveSchema``), and plan compilation and application
(``build_write_plan``, ``apply_plan``).

Usage:
    from db_mirror.schema import normalize_schema, SchemaIntrospector
    from db_mirror.schema import build_write_plan, apply_plan
"""

from db_mirror.schema.errors import (
    ExecutionError,
    InputFormatError,
    MissingTableDefinitionError,
    MissingViewDefinitionError,
    SchemaError,
    UnsafeIdentifierError,
)
from db_mirror.schema.introspector import LiveSchema, LiveSchemaReader, SchemaIntrospector
from db_mirror.schema.models import (
    ColumnSchema,
    DatabaseInfo,
    IndexColumn,
    IndexSchema,
    LiveObject,
    ObjectSchema,
    SchemaDocument,
    TableOptions,
)
from db_mirror.schema.normalizer import normalize_schema, schema_from_worksheets
from db_mirror.schema.plan import (
    ApplyResult,
    Statement,
    WritePlan,
    apply_plan,
    build_write_plan,
)
from db_mirror.schema.signature import column_signature, index_signature

__all__ = [
    # Models
    "DatabaseInfo",
    "ColumnSchema",
    "IndexColumn",
    "IndexSchema",
    "ObjectSchema",
    "SchemaDocument",
    "LiveObject",
    "TableOptions",
    # Normalization
    "normalize_schema",
    "schema_from_worksheets",
    # Signatures
    "column_signature",
    "index_signature",
    # Introspection
    "LiveSchemaReader",
    "LiveSchema",
    "SchemaIntrospector",
    # Planning
    "build_write_plan",
    "apply_plan",
    "WritePlan",
    "Statement",
    "ApplyResult",
    # Errors
    "SchemaError",
    "InputFormatError",
    "MissingTableDefinitionError",
    "MissingViewDefinitionError",
    "UnsafeIdentifierError",
    "ExecutionError",
]
