"""Pydantic models for the canonical schema snapshot.

This module contains schema-domain models:
- Document models: DatabaseInfo, ColumnSchema, IndexColumn, IndexSchema,
  ObjectSchema, SchemaDocument
- Live read models: LiveObject, TableOptions

All models are frozen.  A snapshot is built once (from a document or from
live introspection) and never mutated afterwards; ordering is settled by
the normalizer before construction.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_CHARACTER_SET = "utf8mb4"
DEFAULT_COLLATION = "utf8mb4_unicode_ci"

PRIMARY_INDEX = "PRIMARY"

ObjectType = Literal["table", "view"]
DefaultKind = Literal["none", "null", "literal", "expression"]


# ============================================================================
# Document Models
# ============================================================================


class DatabaseInfo(BaseModel):
    """Schema container metadata.

    Example:
        >>> DatabaseInfo(name="shop").default_collation
        'utf8mb4_unicode_ci'
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    default_character_set: str = DEFAULT_CHARACTER_SET
    default_collation: str = DEFAULT_COLLATION


class ColumnSchema(BaseModel):
    """Schema for a table or view column.

    ``type`` is the raw column type (``varchar(255)``, ``int unsigned``)
    and is never parsed.  ``default_value`` is read according to
    ``default_kind``.

    Example:
        >>> col = ColumnSchema(name="id", type="int", nullable=False)
        >>> col.default_kind
        'none'
    """

    model_config = ConfigDict(frozen=True)

    name: str
    position: int = 0
    type: str = "varchar(255)"
    nullable: bool = True
    default_kind: DefaultKind = "none"
    default_value: str = ""
    extra: str = ""
    key: str = ""
    collation: str = ""
    comment: str = ""
    generation_expression: str = ""

    @property
    def is_generated(self) -> bool:
        """True for computed (virtual or stored) columns."""
        return self.generation_expression.strip() != ""


class IndexColumn(BaseModel):
    """One column of an index, with optional prefix length."""

    model_config = ConfigDict(frozen=True)

    name: str
    length: int | None = None


class IndexSchema(BaseModel):
    """Schema for an index.  ``PRIMARY`` is the primary key."""

    model_config = ConfigDict(frozen=True)

    name: str
    unique: bool = False
    type: str = "BTREE"
    columns: tuple[IndexColumn, ...] = Field(min_length=1)

    @field_validator("type", mode="before")
    @classmethod
    def _canonical_type(cls, value: object) -> str:
        return str(value or "").strip().upper() or "BTREE"

    @property
    def is_primary(self) -> bool:
        return self.name == PRIMARY_INDEX


class ObjectSchema(BaseModel):
    """Schema for a table or view."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: ObjectType = "table"
    engine: str = ""
    collation: str = ""
    create_sql: str = ""
    fields: tuple[ColumnSchema, ...] = ()
    indexes: tuple[IndexSchema, ...] = ()

    @model_validator(mode="after")
    def _check_unique_names(self) -> "ObjectSchema":
        _ensure_unique([f.name for f in self.fields], f"field in '{self.name}'")
        _ensure_unique([i.name for i in self.indexes], f"index in '{self.name}'")
        return self

    @property
    def is_view(self) -> bool:
        return self.type == "view"

    def field_names(self) -> list[str]:
        """Field names in declared order."""
        return [f.name for f in self.fields]


class SchemaDocument(BaseModel):
    """A complete schema snapshot: database metadata plus ordered objects.

    Example:
        >>> doc = SchemaDocument(objects=(ObjectSchema(name="users"),))
        >>> doc.get("users").type
        'table'
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseInfo = Field(default_factory=DatabaseInfo)
    objects: tuple[ObjectSchema, ...] = ()
    generated_at: str | None = None

    @model_validator(mode="after")
    def _check_unique_objects(self) -> "SchemaDocument":
        _ensure_unique([o.name for o in self.objects], "object")
        return self

    def get(self, name: str) -> ObjectSchema | None:
        """Return the object called *name*, or ``None``."""
        for obj in self.objects:
            if obj.name == name:
                return obj
        return None

    def to_records(self) -> dict:
        """Serialize to the canonical record form (plain dicts and lists)."""
        return self.model_dump(mode="json")


# ============================================================================
# Live Read Models
# ============================================================================


class LiveObject(BaseModel):
    """An object as listed by live introspection."""

    model_config = ConfigDict(frozen=True)

    name: str
    is_view: bool = False


class TableOptions(BaseModel):
    """Table-level options read from the live store."""

    model_config = ConfigDict(frozen=True)

    engine: str = ""
    collation: str = ""


def _ensure_unique(names: list[str], what: str) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise ValueError(f"Duplicate {what} name: '{name}'")
        seen.add(name)
