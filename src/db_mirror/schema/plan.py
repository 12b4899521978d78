"""Write plan compiler -- bring a live schema in line with a document.

Compares the desired objects of a ``SchemaDocument`` against the live
schema (read through ``LiveSchemaReader``) and compiles the ordered DDL
needed to make them match, then optionally applies it via the
``DatabaseClient.execute()`` Protocol method.

Planning is pure: no I/O, no mutation of either side.  Re-planning
against the result of applying a plan yields an empty plan.

Usage:
    from db_mirror.schema.plan import apply_plan, build_write_plan
    from db_mirror.schema.introspector import SchemaIntrospector

    # 1. Snapshot the live schema
    live = await SchemaIntrospector(adapter).snapshot("shop")

    # 2. Compile the plan
    plan = build_write_plan(document.objects, live, "shop")

    # 3. Apply it
    result = await apply_plan(adapter, plan, dry_run=False, confirm=True)
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel

from db_mirror.schema.errors import ExecutionError
from db_mirror.schema.models import ColumnSchema, IndexSchema, LiveObject, ObjectSchema, TableOptions
from db_mirror.schema.normalizer import index_sort_key
from db_mirror.schema.render import (
    column_definition_sql,
    create_table_sql,
    drop_index_sql,
    index_definition_sql,
    prepare_view_sql,
    quote_identifier,
    safe_option,
)
from db_mirror.schema.signature import column_signature, index_signature

if TYPE_CHECKING:
    from db_mirror.adapters.base import DatabaseClient
    from db_mirror.schema.introspector import LiveSchemaReader

logger = logging.getLogger(__name__)

StatementAction = Literal[
    "create_table", "alter_table", "drop_table", "drop_view", "create_view"
]


# ------------------------------------------------------------------
# Plan data classes
# ------------------------------------------------------------------


@dataclass(frozen=True)
class Statement:
    """One DDL statement of a write plan.

    Example:
        stmt = Statement("DROP VIEW `v_users`", "v_users", "drop_view")
        stmt.sql
        # 'DROP VIEW `v_users`'
    """

    sql: str
    object_name: str
    action: StatementAction


@dataclass
class WritePlan:
    """Ordered DDL statements for one schema.

    Attributes:
        statements: Statements in execution order.
    """

    statements: list[Statement] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        """True if at least one statement must run."""
        return bool(self.statements)

    @property
    def sql(self) -> list[str]:
        """Plain SQL text of every statement, in order."""
        return [stmt.sql for stmt in self.statements]


class ApplyResult(BaseModel):
    """Result of applying a write plan.

    Attributes:
        success: True if every statement ran (or nothing had to run).
        executed: SQL of the statements that ran successfully, in order.
        failed: SQL of the statements that raised.
        errors: One message per failed statement.
        error: First failure message, or the reason nothing ran.
    """

    success: bool = False
    executed: list[str] = []
    failed: list[str] = []
    errors: list[str] = []
    error: str | None = None


# ------------------------------------------------------------------
# Table diff
# ------------------------------------------------------------------


def _plan_columns(
    fields: list[ColumnSchema], live_fields: list[ColumnSchema], strict: bool
) -> list[str]:
    """Column operations: ADD / MODIFY with placement, then DROP."""
    live_by_name = {col.name: (ordinal, col) for ordinal, col in enumerate(live_fields, start=1)}
    desired_names = {col.name for col in fields}

    ops: list[str] = []
    previous: str | None = None
    for ordinal, col in enumerate(fields, start=1):
        placement = " FIRST" if previous is None else f" AFTER {quote_identifier(previous)}"
        definition = column_definition_sql(col, strict)

        current = live_by_name.get(col.name)
        if current is None:
            ops.append(f"ADD COLUMN {definition}{placement}")
        else:
            live_ordinal, live_col = current
            if column_signature(col) != column_signature(live_col) or live_ordinal != ordinal:
                ops.append(f"MODIFY COLUMN {definition}{placement}")
        previous = col.name

    for live_col in live_fields:
        if live_col.name not in desired_names:
            ops.append(f"DROP COLUMN {quote_identifier(live_col.name)}")

    return ops


def _plan_indexes(
    indexes: list[IndexSchema], live_indexes: list[IndexSchema]
) -> tuple[list[str], list[str]]:
    """Index operations split into ``(drops, adds)``.

    Live-only indexes are dropped first; changed indexes are dropped and
    re-added.
    """
    desired_by_name = {index.name: index for index in indexes}
    live_by_name = {index.name: index for index in live_indexes}

    drops = [
        drop_index_sql(index.name)
        for index in live_indexes
        if index.name not in desired_by_name
    ]
    adds: list[str] = []

    for index in indexes:
        current = live_by_name.get(index.name)
        if current is None:
            adds.append(index_definition_sql(index, with_add=True))
        elif index_signature(index) != index_signature(current):
            drops.append(drop_index_sql(index.name))
            adds.append(index_definition_sql(index, with_add=True))

    return drops, adds


def _plan_options(obj: ObjectSchema, live_options: TableOptions, strict: bool) -> list[str]:
    ops: list[str] = []
    engine = safe_option("engine", obj.engine, strict)
    if engine and engine.lower() != live_options.engine.strip().lower():
        ops.append(f"ENGINE={engine}")
    collation = safe_option("collation", obj.collation, strict)
    if collation and collation.lower() != live_options.collation.strip().lower():
        ops.append(f"COLLATE={collation}")
    return ops


def alter_table_sql(
    obj: ObjectSchema, live: "LiveSchemaReader", schema_name: str, strict: bool = False
) -> str | None:
    """Build the single ALTER TABLE bringing a live table in line with *obj*.

    Operations are ordered index drops, column operations, index adds,
    then table options.  A desired table listing no fields is left alone.

    Returns:
        The ALTER TABLE statement, or ``None`` when nothing differs.
    """
    if not obj.fields:
        logger.debug("Table '%s' lists no fields; skipping ALTER", obj.name)
        return None

    fields = sorted(obj.fields, key=lambda col: (col.position, col.name))
    live_fields = live.describe_fields(schema_name, obj.name)
    column_ops = _plan_columns(fields, live_fields, strict)

    drops, adds = _plan_indexes(
        sorted(obj.indexes, key=index_sort_key),
        live.describe_indexes(schema_name, obj.name),
    )
    option_ops = _plan_options(obj, live.describe_table_options(schema_name, obj.name), strict)

    ops = drops + column_ops + adds + option_ops
    if not ops:
        return None
    return f"ALTER TABLE {quote_identifier(obj.name)} " + ", ".join(ops)


# ------------------------------------------------------------------
# Plan generation
# ------------------------------------------------------------------


def _plan_view(obj: ObjectSchema, current: LiveObject | None) -> list[Statement]:
    # Prepared before anything else so a bad view never drops a table.
    create_sql = prepare_view_sql(obj.create_sql, obj.name)

    statements = []
    if current is not None and not current.is_view:
        statements.append(
            Statement(f"DROP TABLE {quote_identifier(obj.name)}", obj.name, "drop_table")
        )
    statements.append(Statement(create_sql, obj.name, "create_view"))
    return statements


def _plan_table(
    obj: ObjectSchema,
    current: LiveObject | None,
    live: "LiveSchemaReader",
    schema_name: str,
    strict: bool,
) -> list[Statement]:
    if current is None:
        return [Statement(create_table_sql(obj, strict), obj.name, "create_table")]

    if current.is_view:
        create_sql = create_table_sql(obj, strict)
        return [
            Statement(f"DROP VIEW {quote_identifier(obj.name)}", obj.name, "drop_view"),
            Statement(create_sql, obj.name, "create_table"),
        ]

    sql = alter_table_sql(obj, live, schema_name, strict)
    if sql is None:
        return []
    return [Statement(sql, obj.name, "alter_table")]


def build_write_plan(
    desired: Iterable[ObjectSchema],
    live: "LiveSchemaReader",
    schema_name: str,
    strict: bool = False,
) -> WritePlan:
    """Compile the DDL needed to make *live* match *desired*.

    Objects are planned in the order given.  Objects that exist only in
    the live schema are left untouched.

    Args:
        desired: Normalized objects, typically ``document.objects``.
        live: Read-only view of the live schema.
        schema_name: Schema passed to every ``live`` read.
        strict: Raise ``UnsafeIdentifierError`` on unsafe engine or
            collation tokens instead of omitting them.

    Returns:
        ``WritePlan`` with statements in execution order.

    Raises:
        MissingViewDefinitionError: A view without ``create_sql``.
        MissingTableDefinitionError: A table to create with neither
            fields nor ``create_sql``.
        InputFormatError: A view statement that is not a CREATE statement,
            or a field with a blank name or type.
        UnsafeIdentifierError: Only when *strict* is set.

    Example:
        plan = build_write_plan(doc.objects, LiveSchema(), "shop")
        for stmt in plan.statements:
            print(stmt.action, stmt.sql)
    """
    live_objects = {obj.name: obj for obj in live.list_objects(schema_name)}
    plan = WritePlan()

    for obj in desired:
        current = live_objects.get(obj.name)
        if obj.is_view:
            statements = _plan_view(obj, current)
        else:
            statements = _plan_table(obj, current, live, schema_name, strict)

        logger.debug(
            "Planned %d statement(s) for %s '%s' (%s)",
            len(statements),
            obj.type,
            obj.name,
            "absent" if current is None else ("view" if current.is_view else "table"),
        )
        plan.statements.extend(statements)

    return plan


# ------------------------------------------------------------------
# Plan application
# ------------------------------------------------------------------


async def apply_plan(
    adapter: "DatabaseClient",
    plan: WritePlan,
    dry_run: bool = True,
    confirm: bool = False,
    stop_on_error: bool = True,
    on_executed: Callable[[Statement], None] | None = None,
) -> ApplyResult:
    """Execute a write plan statement by statement.

    No transaction wraps the plan: MySQL commits DDL implicitly, so a
    failure midway leaves earlier statements applied.

    Args:
        adapter: Database adapter implementing ``DatabaseClient`` Protocol.
        plan: Plan from ``build_write_plan()``.
        dry_run: If True, only report what would be done without executing.
        confirm: Must be True to actually apply the plan (safety guard).
        stop_on_error: Halt at the first failing statement.  When False,
            remaining statements are still attempted and every failure is
            recorded.
        on_executed: Optional callback invoked after each successful
            statement.

    Returns:
        ``ApplyResult`` with outcome.

    Example:
        result = await apply_plan(adapter, plan, dry_run=False, confirm=True)
        if not result.success:
            print(result.error)
    """
    result = ApplyResult()

    if not plan.has_changes:
        result.success = True
        return result

    if dry_run:
        result.success = True
        return result

    if not confirm:
        result.error = "Applying a plan requires confirm=True"
        return result

    for stmt in plan.statements:
        try:
            await adapter.execute(stmt.sql)
        except Exception as e:
            failure = ExecutionError(stmt.sql, str(e))
            logger.error("Statement failed on '%s': %s", stmt.object_name, e)
            result.failed.append(stmt.sql)
            result.errors.append(str(failure))
            if result.error is None:
                result.error = str(failure)
            if stop_on_error:
                return result
            continue

        logger.info("Executed %s on '%s'", stmt.action, stmt.object_name)
        result.executed.append(stmt.sql)
        if on_executed is not None:
            on_executed(stmt)

    result.success = not result.failed
    return result
