"""Tests for SQL rendering and signatures.

Verifies quoting, safe-token handling, column and index definitions,
CREATE TABLE synthesis, view preparation, and the comparison signatures.
"""

import pytest

from db_mirror.schema.errors import (
    InputFormatError,
    MissingTableDefinitionError,
    MissingViewDefinitionError,
    UnsafeIdentifierError,
)
from db_mirror.schema.models import ColumnSchema, IndexColumn, IndexSchema, ObjectSchema
from db_mirror.schema.render import (
    column_definition_sql,
    create_database_sql,
    create_table_sql,
    drop_index_sql,
    index_definition_sql,
    is_safe_identifier,
    prepare_view_sql,
    quote_identifier,
    quote_string,
    safe_option,
)
from db_mirror.schema.signature import (
    column_signature,
    index_signature,
    strip_generation_marker,
)


# ------------------------------------------------------------------
# Quoting
# ------------------------------------------------------------------


class TestQuoting:
    """Verify identifier and literal quoting."""

    def test_identifier_backticks(self):
        """Identifiers are wrapped in backticks with embedded ones doubled."""
        assert quote_identifier("users") == "`users`"
        assert quote_identifier("we`ird") == "`we``ird`"

    def test_string_quotes_doubled(self):
        """Single quotes inside literals are doubled."""
        assert quote_string("it's") == "'it''s'"

    def test_string_backslashes_doubled(self):
        """Backslashes are escaped so they survive MySQL's default mode."""
        assert quote_string("C:\\temp") == "'C:\\\\temp'"

    @pytest.mark.parametrize("token", ["InnoDB", "utf8mb4_0900_ai_ci", "MyISAM"])
    def test_safe_identifiers(self, token):
        """Word-character tokens are safe."""
        assert is_safe_identifier(token)

    @pytest.mark.parametrize("token", ["InnoDB; DROP TABLE x", "utf8 mb4", "a-b", ""])
    def test_unsafe_identifiers(self, token):
        """Anything with other characters is unsafe."""
        assert not is_safe_identifier(token)


class TestSafeOption:
    """Verify safe option handling."""

    def test_blank_is_none(self):
        """Blank values are silently absent."""
        assert safe_option("engine", "  ") is None

    def test_safe_value_returned(self):
        """Safe values are returned trimmed."""
        assert safe_option("engine", " InnoDB ") == "InnoDB"

    def test_unsafe_value_omitted(self, caplog):
        """Unsafe values are dropped with a warning."""
        with caplog.at_level("WARNING"):
            assert safe_option("engine", "InnoDB;DROP") is None
        assert "unsafe engine" in caplog.text

    def test_unsafe_value_strict_raises(self):
        """Strict mode rejects unsafe values."""
        with pytest.raises(UnsafeIdentifierError) as exc_info:
            safe_option("collation", "x y", strict=True)
        assert exc_info.value.option == "collation"
        assert exc_info.value.value == "x y"


# ------------------------------------------------------------------
# Column definitions
# ------------------------------------------------------------------


class TestColumnDefinition:
    """Verify column definition rendering."""

    def test_not_null_without_default(self):
        """NOT NULL column with no default."""
        col = ColumnSchema(name="id", type="int unsigned", nullable=False, extra="auto_increment")
        assert column_definition_sql(col) == "`id` int unsigned NOT NULL auto_increment"

    def test_default_null(self):
        """default_kind null renders DEFAULT NULL."""
        col = ColumnSchema(name="note", type="text", default_kind="null")
        assert column_definition_sql(col) == "`note` text NULL DEFAULT NULL"

    def test_literal_default_is_quoted(self):
        """Literal defaults are quoted and escaped."""
        col = ColumnSchema(
            name="status", type="varchar(20)", nullable=False,
            default_kind="literal", default_value="it's",
        )
        assert column_definition_sql(col) == "`status` varchar(20) NOT NULL DEFAULT 'it''s'"

    def test_expression_default_bare(self):
        """CURRENT_TIMESTAMP and friends render without parentheses."""
        col = ColumnSchema(
            name="created_at", type="timestamp", nullable=False,
            default_kind="expression", default_value="CURRENT_TIMESTAMP",
            extra="DEFAULT_GENERATED on update CURRENT_TIMESTAMP",
        )
        assert column_definition_sql(col) == (
            "`created_at` timestamp NOT NULL DEFAULT CURRENT_TIMESTAMP "
            "on update CURRENT_TIMESTAMP"
        )

    def test_expression_default_wrapped(self):
        """Other expressions are parenthesized."""
        col = ColumnSchema(
            name="uid", type="char(36)", nullable=False,
            default_kind="expression", default_value="uuid()",
        )
        assert column_definition_sql(col) == "`uid` char(36) NOT NULL DEFAULT (uuid())"

    def test_collation_and_comment(self):
        """Safe collation and escaped comment are rendered."""
        col = ColumnSchema(
            name="name", type="varchar(50)", collation="utf8mb4_bin",
            default_kind="null", comment="owner's name",
        )
        assert column_definition_sql(col) == (
            "`name` varchar(50) COLLATE utf8mb4_bin NULL DEFAULT NULL COMMENT 'owner''s name'"
        )

    def test_unsafe_collation_omitted(self):
        """An unsafe column collation is left out."""
        col = ColumnSchema(name="a", type="int", collation="bad;token")
        assert "COLLATE" not in column_definition_sql(col)

    def test_generated_column(self):
        """Generated columns render AS (...) STORED without null/default clauses."""
        col = ColumnSchema(
            name="total", type="decimal(10,2)", nullable=False,
            extra="STORED GENERATED", generation_expression="`price` * `qty`",
        )
        assert column_definition_sql(col) == "`total` decimal(10,2) AS (`price` * `qty`) STORED"

    def test_virtual_generated_column(self):
        """Generated columns without STORED are virtual."""
        col = ColumnSchema(
            name="upper_name", type="varchar(50)",
            extra="VIRTUAL GENERATED", generation_expression="upper(`name`)",
        )
        assert column_definition_sql(col).endswith("AS (upper(`name`)) VIRTUAL")

    def test_blank_type_rejected(self):
        """A blank type cannot be rendered."""
        with pytest.raises(InputFormatError):
            column_definition_sql(ColumnSchema(name="a", type="  "))


# ------------------------------------------------------------------
# Index definitions
# ------------------------------------------------------------------


def _index(name, *columns, unique=False, type="BTREE"):
    return IndexSchema(
        name=name,
        unique=unique,
        type=type,
        columns=tuple(IndexColumn(name=c) if isinstance(c, str) else IndexColumn(name=c[0], length=c[1]) for c in columns),
    )


class TestIndexDefinition:
    """Verify index definition rendering."""

    def test_primary(self):
        """PRIMARY renders as PRIMARY KEY without a name."""
        assert index_definition_sql(_index("PRIMARY", "id", unique=True)) == "PRIMARY KEY (`id`)"

    def test_unique_with_add(self):
        """Unique indexes render as ADD UNIQUE KEY."""
        assert (
            index_definition_sql(_index("uq_email", "email", unique=True), with_add=True)
            == "ADD UNIQUE KEY `uq_email` (`email`)"
        )

    def test_fulltext(self):
        """FULLTEXT wins over uniqueness."""
        assert index_definition_sql(_index("ft_body", "body", type="FULLTEXT")) == "FULLTEXT KEY `ft_body` (`body`)"

    def test_spatial(self):
        """SPATIAL indexes render as SPATIAL KEY."""
        assert index_definition_sql(_index("sp_loc", "loc", type="SPATIAL")) == "SPATIAL KEY `sp_loc` (`loc`)"

    def test_prefix_length(self):
        """Prefix lengths follow the column name."""
        assert (
            index_definition_sql(_index("idx_ab", "a", ("b", 10)))
            == "KEY `idx_ab` (`a`, `b`(10))"
        )

    def test_drop_forms(self):
        """PRIMARY drops as DROP PRIMARY KEY, others by name."""
        assert drop_index_sql("PRIMARY") == "DROP PRIMARY KEY"
        assert drop_index_sql("idx_a") == "DROP INDEX `idx_a`"


# ------------------------------------------------------------------
# Whole statements
# ------------------------------------------------------------------


class TestCreateTable:
    """Verify CREATE TABLE construction."""

    def test_verbatim_create_sql(self):
        """Stored create_sql is used as-is minus the trailing semicolon."""
        obj = ObjectSchema(name="t", create_sql="CREATE TABLE `t` (`id` int);  ")
        assert create_table_sql(obj) == "CREATE TABLE `t` (`id` int)"

    def test_synthesized(self):
        """Without create_sql the statement is built from fields and indexes."""
        obj = ObjectSchema(
            name="users",
            engine="InnoDB",
            collation="utf8mb4_unicode_ci",
            fields=(
                ColumnSchema(name="email", position=2, type="varchar(100)", default_kind="null"),
                ColumnSchema(name="id", position=1, type="int", nullable=False, extra="auto_increment"),
            ),
            indexes=(_index("PRIMARY", "id", unique=True), _index("uq_email", "email", unique=True)),
        )
        assert create_table_sql(obj) == (
            "CREATE TABLE `users` (\n"
            "  `id` int NOT NULL auto_increment,\n"
            "  `email` varchar(100) NULL DEFAULT NULL,\n"
            "  PRIMARY KEY (`id`),\n"
            "  UNIQUE KEY `uq_email` (`email`)\n"
            ") ENGINE=InnoDB COLLATE=utf8mb4_unicode_ci"
        )

    def test_unsafe_engine_omitted(self):
        """Unsafe table options are dropped."""
        obj = ObjectSchema(name="t", engine="InnoDB;x", fields=(ColumnSchema(name="a", type="int"),))
        assert "ENGINE" not in create_table_sql(obj)

    def test_unsafe_engine_strict(self):
        """Strict mode raises on unsafe table options."""
        obj = ObjectSchema(name="t", engine="InnoDB;x", fields=(ColumnSchema(name="a", type="int"),))
        with pytest.raises(UnsafeIdentifierError):
            create_table_sql(obj, strict=True)

    def test_missing_definition(self):
        """No fields and no create_sql cannot be created."""
        with pytest.raises(MissingTableDefinitionError, match="'ghost'"):
            create_table_sql(ObjectSchema(name="ghost"))


class TestPrepareViewSql:
    """Verify view statement preparation."""

    def test_definer_stripped_and_replace_forced(self):
        """DEFINER is removed and CREATE becomes CREATE OR REPLACE."""
        sql = prepare_view_sql(
            "CREATE ALGORITHM=UNDEFINED DEFINER=`root`@`localhost` SQL SECURITY DEFINER "
            "VIEW `v` AS select 1 AS `x`;",
            "v",
        )
        assert sql == (
            "CREATE OR REPLACE ALGORITHM=UNDEFINED SQL SECURITY DEFINER "
            "VIEW `v` AS select 1 AS `x`"
        )

    def test_quoted_definer(self):
        """Quoted definer principals are removed too."""
        sql = prepare_view_sql("CREATE DEFINER='app'@'%' VIEW v AS SELECT 1", "v")
        assert sql == "CREATE OR REPLACE VIEW v AS SELECT 1"

    def test_definer_column_in_body_kept(self):
        """A column named definer in the view body is left alone."""
        sql = prepare_view_sql(
            "CREATE VIEW `v` AS SELECT id FROM audit WHERE definer = 'bob'", "v"
        )
        assert sql == "CREATE OR REPLACE VIEW `v` AS SELECT id FROM audit WHERE definer = 'bob'"

    def test_header_definer_stripped_body_kept(self):
        """Only the header DEFINER clause is removed."""
        sql = prepare_view_sql(
            "CREATE OR REPLACE DEFINER=root@localhost VIEW v AS "
            "SELECT * FROM t WHERE definer = current_user()",
            "v",
        )
        assert sql == "CREATE OR REPLACE VIEW v AS SELECT * FROM t WHERE definer = current_user()"

    def test_existing_or_replace_kept(self):
        """An existing CREATE OR REPLACE is not doubled."""
        sql = prepare_view_sql("create or replace view v as select 1", "v")
        assert sql == "create or replace view v as select 1"

    def test_empty_raises(self):
        """Empty create_sql is a missing view definition."""
        with pytest.raises(MissingViewDefinitionError, match="'v'"):
            prepare_view_sql("  ;", "v")

    def test_non_create_rejected(self):
        """Statements that are not CREATE statements are rejected."""
        with pytest.raises(InputFormatError):
            prepare_view_sql("DROP VIEW v", "v")


class TestCreateDatabase:
    """Verify CREATE DATABASE construction."""

    def test_given_charset(self):
        """Safe charset and collation are used."""
        assert create_database_sql("shop", "latin1", "latin1_swedish_ci") == (
            "CREATE DATABASE `shop` CHARACTER SET latin1 COLLATE latin1_swedish_ci"
        )

    def test_unsafe_falls_back(self):
        """Unsafe tokens fall back to utf8mb4 defaults."""
        assert create_database_sql("shop", "latin1;", "x y") == (
            "CREATE DATABASE `shop` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )


# ------------------------------------------------------------------
# Signatures
# ------------------------------------------------------------------


class TestSignatures:
    """Verify comparison signatures."""

    def test_generation_marker_stripped(self):
        """DEFAULT_GENERATED is not part of the comparable extra."""
        assert strip_generation_marker("DEFAULT_GENERATED") == ""
        assert strip_generation_marker("auto_increment") == "auto_increment"

    def test_column_signature_ignores_case_and_whitespace(self):
        """Name, type, extra and collation compare case-insensitively."""
        a = ColumnSchema(name="Email", type="VARCHAR(100) ", collation="UTF8MB4_BIN")
        b = ColumnSchema(name="email", type="varchar(100)", collation="utf8mb4_bin")
        assert column_signature(a) == column_signature(b)

    def test_column_signature_ignores_position(self):
        """Position is compared separately, not in the signature."""
        a = ColumnSchema(name="a", position=1)
        b = ColumnSchema(name="a", position=5)
        assert column_signature(a) == column_signature(b)

    def test_column_signature_ignores_default_generated(self):
        """DEFAULT_GENERATED in live extra does not cause a diff."""
        live = ColumnSchema(
            name="ts", type="timestamp", default_kind="expression",
            default_value="CURRENT_TIMESTAMP", extra="DEFAULT_GENERATED",
        )
        desired = live.model_copy(update={"extra": ""})
        assert column_signature(live) == column_signature(desired)

    def test_column_signature_detects_comment_change(self):
        """Comments are compared exactly."""
        assert column_signature(ColumnSchema(name="a", comment="x")) != column_signature(
            ColumnSchema(name="a", comment="X")
        )

    def test_index_signature_shape(self):
        """Index signatures upper-case name and type and list col:length."""
        idx = _index("idx_ab", "A", ("b", 10), type="btree")
        assert index_signature(idx) == ("IDX_AB", False, "BTREE", ("a:", "b:10"))

    def test_index_signature_detects_uniqueness_change(self):
        """Uniqueness is part of the signature."""
        assert index_signature(_index("i", "a")) != index_signature(_index("i", "a", unique=True))
