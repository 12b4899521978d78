"""Error taxonomy for schema normalization, planning and execution."""


class SchemaError(Exception):
    """Base class for all db-mirror schema errors."""


class InputFormatError(SchemaError):
    """Raised when a document cannot be read into any accepted shape."""


class MissingTableDefinitionError(SchemaError):
    """Raised when a table has neither fields nor a CREATE statement."""

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"Table '{table}' has no fields and no create_sql.")


class MissingViewDefinitionError(SchemaError):
    """Raised when a view has no CREATE statement."""

    def __init__(self, view: str):
        self.view = view
        super().__init__(f"View '{view}' is missing create_sql in input.")


class UnsafeIdentifierError(SchemaError):
    """Raised in strict mode when an engine/collation/charset token is unsafe."""

    def __init__(self, option: str, value: str):
        self.option = option
        self.value = value
        super().__init__(f"Unsafe {option} value rejected: {value!r}")


class ExecutionError(SchemaError):
    """Describes a statement the executor failed on.

    ``apply_plan`` records its message in ``ApplyResult`` rather than
    raising it.
    """

    def __init__(self, sql: str, message: str):
        self.sql = sql
        super().__init__(f"Failed to execute statement: {message}\n  {sql}")
