"""Tests for reading and writing schema documents.

JSON and XLSX files are written to ``tmp_path`` and read back; the XLSX
side uses openpyxl directly to inspect the workbook layout.
"""

import json
from pathlib import Path

import pytest
from openpyxl import load_workbook

from db_mirror.document import (
    detect_format,
    dumps_json,
    read_schema_file,
    schema_to_worksheets,
    write_schema_file,
)
from db_mirror.document.worksheets import sheet_title
from db_mirror.schema.errors import InputFormatError
from db_mirror.schema.models import (
    ColumnSchema,
    DatabaseInfo,
    IndexColumn,
    IndexSchema,
    ObjectSchema,
    SchemaDocument,
)
from db_mirror.schema.normalizer import TABULAR_HEADERS


@pytest.fixture
def document() -> SchemaDocument:
    """A small document with a table and a view."""
    return SchemaDocument(
        database=DatabaseInfo(name="shop"),
        objects=(
            ObjectSchema(
                name="users",
                engine="InnoDB",
                collation="utf8mb4_unicode_ci",
                create_sql="CREATE TABLE `users` (`id` int NOT NULL)",
                fields=(
                    ColumnSchema(name="id", position=1, type="int", nullable=False, key="PRI"),
                    ColumnSchema(
                        name="nickname", position=2, type="varchar(50)",
                        default_kind="literal", default_value="=guest", comment="Café",
                    ),
                ),
                indexes=(
                    IndexSchema(name="PRIMARY", unique=True, columns=(IndexColumn(name="id"),)),
                    IndexSchema(name="idx_nick", columns=(IndexColumn(name="nickname", length=8),)),
                ),
            ),
            ObjectSchema(
                name="v_users",
                type="view",
                create_sql="CREATE VIEW `v_users` AS select `id` from `users`",
            ),
        ),
        generated_at="2024-05-01T12:00:00+00:00",
    )


# ------------------------------------------------------------------
# Format detection
# ------------------------------------------------------------------


class TestDetectFormat:
    """Verify extension-based format detection."""

    @pytest.mark.parametrize(
        "path, expected",
        [("schema.json", "json"), ("schema.js", "json"), ("out/SCHEMA.XLSX", "xlsx")],
    )
    def test_known_extensions(self, path, expected):
        """json, js and xlsx are recognized case-insensitively."""
        assert detect_format(path) == expected

    @pytest.mark.parametrize("path", ["schema.csv", "schema.xls", "schema"])
    def test_unknown_extension(self, path):
        """Other extensions are rejected."""
        with pytest.raises(InputFormatError, match="Unsupported file format"):
            detect_format(path)


# ------------------------------------------------------------------
# JSON
# ------------------------------------------------------------------


class TestJson:
    """Verify the JSON codec."""

    def test_pretty_and_unescaped(self, document):
        """Output is indented and keeps non-ASCII text and slashes as-is."""
        text = dumps_json(document)
        assert text.startswith("{\n    ")
        assert "Café" in text
        assert "\\u00e9" not in text

    def test_round_trip(self, tmp_path: Path, document):
        """Writing then reading JSON reproduces the document."""
        path = write_schema_file(document, tmp_path / "schema.json")
        assert read_schema_file(path) == document

    def test_js_extension_is_json(self, tmp_path: Path, document):
        """.js files hold the same JSON."""
        path = write_schema_file(document, tmp_path / "nested" / "schema.js")
        assert json.loads(path.read_text(encoding="utf-8"))["database"]["name"] == "shop"

    def test_malformed_json(self, tmp_path: Path):
        """Undecodable JSON is an input format error."""
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(InputFormatError, match="Failed to parse JSON"):
            read_schema_file(path)

    def test_missing_file(self, tmp_path: Path):
        """A missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            read_schema_file(tmp_path / "absent.json")

    def test_loose_shape_is_normalized(self, tmp_path: Path):
        """Hand-written shapes are normalized on read."""
        path = tmp_path / "loose.json"
        path.write_text(
            json.dumps({"db": "crm", "tables": {"leads": {"fields": {"id": {"type": "int"}}}}}),
            encoding="utf-8",
        )
        doc = read_schema_file(path)
        assert doc.database.name == "crm"
        assert doc.objects[0].name == "leads"


# ------------------------------------------------------------------
# Worksheets
# ------------------------------------------------------------------


class TestWorksheetLayout:
    """Verify the tabular layout."""

    def test_one_sheet_per_object(self, document):
        """Each object gets a sheet with the fixed header."""
        sheets = schema_to_worksheets(document)
        assert list(sheets) == ["users", "v_users"]
        assert sheets["users"][0] == list(TABULAR_HEADERS)

    def test_metadata_on_first_row_only(self, document):
        """indexes_json, engine, collation and create_sql fill row one only."""
        rows = schema_to_worksheets(document)["users"]
        first, second = rows[1], rows[2]

        assert first[:6] == ["table", "users", "id", 1, "int", "NO"]
        assert json.loads(first[13])[0]["name"] == "PRIMARY"
        assert first[14:] == ["InnoDB", "utf8mb4_unicode_ci", "CREATE TABLE `users` (`id` int NOT NULL)"]
        assert second[2] == "nickname"
        assert second[5] == "YES"
        assert second[13:] == ["", "", "", ""]

    def test_object_without_fields_gets_placeholder_row(self, document):
        """A view with no fields still gets one metadata row."""
        rows = schema_to_worksheets(document)["v_users"]
        assert len(rows) == 2
        assert rows[1][0] == "view"
        assert rows[1][2] == ""
        assert rows[1][16].startswith("CREATE VIEW")

    def test_empty_document(self):
        """No objects yields a single header-only 'schema' sheet."""
        assert schema_to_worksheets(SchemaDocument()) == {"schema": [list(TABULAR_HEADERS)]}

    def test_sheet_titles_sanitized(self):
        """Invalid characters are replaced and titles truncated to 31."""
        used: set[str] = set()
        assert sheet_title("a[b]:c*d?e/f\\g", used) == "a_b__c_d_e_f_g"
        assert len(sheet_title("x" * 40, used)) == 31

    def test_sheet_titles_deduplicated(self):
        """Titles colliding case-insensitively get a numeric suffix."""
        used: set[str] = set()
        assert sheet_title("Users", used) == "Users"
        assert sheet_title("users", used) == "users_2"
        assert sheet_title("USERS", used) == "USERS_3"


class TestXlsx:
    """Verify the XLSX codec."""

    def test_workbook_layout(self, tmp_path: Path, document):
        """The saved workbook holds one sheet per object and no default sheet."""
        path = write_schema_file(document, tmp_path / "schema.xlsx")

        workbook = load_workbook(path)
        assert workbook.sheetnames == ["users", "v_users"]
        sheet = workbook["users"]
        assert [cell.value for cell in sheet[1]] == list(TABULAR_HEADERS)

    def test_formula_like_text_stored_as_text(self, tmp_path: Path, document):
        """Values starting with '=' are not saved as formulas."""
        path = write_schema_file(document, tmp_path / "schema.xlsx")

        sheet = load_workbook(path)["users"]
        cell = sheet.cell(row=3, column=8)
        assert cell.value == "=guest"
        assert cell.data_type == "s"

    def test_round_trip_objects(self, tmp_path: Path, document):
        """Objects survive an XLSX round trip."""
        path = write_schema_file(document, tmp_path / "schema.xlsx")
        loaded = read_schema_file(path)

        assert loaded.objects == document.objects

    def test_empty_document_round_trip(self, tmp_path: Path):
        """An empty document writes a header-only sheet and reads back empty."""
        path = write_schema_file(SchemaDocument(), tmp_path / "empty.xlsx")

        assert load_workbook(path).sheetnames == ["schema"]
        assert read_schema_file(path).objects == ()
